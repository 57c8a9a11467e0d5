# frontend/list_params.py
# Asset list query parameters: parsing from the URL and echoing back as currentSearchParams

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple
from urllib.parse import urlencode

PER_PAGE_VALUES = (20, 50, 100)
DEFAULT_PER_PAGE = 20


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v]
    return [str(value)] if value else []


@dataclass(frozen=True)
class ListParams:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    search: str = ""
    category_ids: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "ListParams":
        """
        Read page / per_page / s / category from a query mapping (st.query_params
        or a dict). Unparseable or out-of-range values use the defaults.
        """
        try:
            page = int(_first(query.get("page")) or 1)
        except (TypeError, ValueError):
            page = 1
        if page < 1:
            page = 1

        try:
            per_page = int(_first(query.get("per_page")) or DEFAULT_PER_PAGE)
        except (TypeError, ValueError):
            per_page = DEFAULT_PER_PAGE
        if per_page not in PER_PAGE_VALUES:
            per_page = DEFAULT_PER_PAGE

        search = str(_first(query.get("s")) or "").strip()
        return cls(page=page, per_page=per_page, search=search, category_ids=tuple(_as_list(query.get("category"))))

    def to_api_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": self.page, "per_page": self.per_page}
        if self.search:
            params["s"] = self.search
        if self.category_ids:
            params["category"] = list(self.category_ids)
        return params

    def to_query_string(self) -> str:
        """Non-default parameters only, e.g. "page=2&s=drill"."""
        pairs: List[Tuple[str, Any]] = []
        if self.page != 1:
            pairs.append(("page", self.page))
        if self.per_page != DEFAULT_PER_PAGE:
            pairs.append(("per_page", self.per_page))
        if self.search:
            pairs.append(("s", self.search))
        pairs.extend(("category", c) for c in self.category_ids)
        return urlencode(pairs)

    def total_pages(self, total: int) -> int:
        return max(1, -(-int(total) // self.per_page))
