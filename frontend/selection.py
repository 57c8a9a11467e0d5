# frontend/selection.py
# Bulk selection state shared by the list header, row checkboxes and bulk-action dialogs

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, MutableMapping, Optional, Tuple

from frontend.config import IS_DEV

SELECTION_KEY = "bulk_selected_items"


@dataclass(frozen=True)
class ListItem:
    """One row of the asset list as rendered when the page was fetched."""
    id: str
    title: str
    category: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None
    custodian: Optional[str] = None
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "ListItem":
        """Build a snapshot from a serialized item returned by GET /api/assets."""

        def name_of(value: Any) -> Optional[str]:
            if isinstance(value, dict):
                return value.get("name")
            return value

        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            category=name_of(row.get("category")),
            location=name_of(row.get("location")),
            status=row.get("status"),
            custodian=name_of(row.get("custodian")),
            tags=tuple(t["name"] for t in row.get("tags") or [] if isinstance(t, dict) and t.get("name")),
        )


def reconcile(selected: Iterable[ListItem], authoritative: Iterable[ListItem]) -> List[ListItem]:
    """
    Keep only the selected identifiers the server still returns, using the
    server's fresh snapshots in the server's order.
    """
    wanted = {item.id for item in selected}
    result: List[ListItem] = []
    seen = set()
    for item in authoritative:
        if item.id in wanted and item.id not in seen:
            seen.add(item.id)
            result.append(item)
    return result


class SelectionStore:
    """
    Ordered set of selected ListItem snapshots, keyed by identifier.

    The entries live in the injected session_state mapping (st.session_state
    in the app, a plain dict in tests), so the header, every row and the
    submitter read the same list within one rerun. Membership survives
    pagination and filter changes.
    """

    def __init__(self, session_state: MutableMapping[str, Any], key: str = SELECTION_KEY):
        self._ss = session_state
        self._key = key
        self._ss.setdefault(self._key, [])

    def _entries(self) -> List[ListItem]:
        return self._ss.setdefault(self._key, [])

    def _store(self, entries: List[ListItem]) -> None:
        self._ss[self._key] = entries
        if IS_DEV:
            print(f"[SELECTION] {len(entries)} selected")

    def add(self, item: ListItem) -> None:
        if self.is_selected(item.id):
            return
        self._store(self._entries() + [item])

    def remove(self, identifier: str) -> None:
        if not self.is_selected(identifier):
            return
        self._store([e for e in self._entries() if e.id != identifier])

    def toggle(self, item: ListItem) -> bool:
        """Flip membership for a row checkbox. Returns True if the item is now selected."""
        if self.is_selected(item.id):
            self.remove(item.id)
            return False
        self.add(item)
        return True

    def set_all(self, items: Iterable[ListItem]) -> None:
        """Replace the whole selection; repeated identifiers keep their first snapshot."""
        entries: List[ListItem] = []
        seen = set()
        for item in items:
            if item.id not in seen:
                seen.add(item.id)
                entries.append(item)
        self._store(entries)

    def clear(self) -> None:
        self._store([])

    def count(self) -> int:
        return len(self._entries())

    def is_selected(self, identifier: str) -> bool:
        return any(e.id == identifier for e in self._entries())

    def items(self) -> List[ListItem]:
        return list(self._entries())

    def ids(self) -> List[str]:
        return [e.id for e in self._entries()]
