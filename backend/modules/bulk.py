"""
backend/modules/bulk.py

Bulk actions applied to a set of selected items in one transaction.

Identifiers the caller does not own are dropped before any write, so a
forged id never fails the request and never touches another user's rows.
Each handler returns the number of items it changed.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Callable, Dict, List, Sequence

from backend.config import IS_DEV
from backend.db import placeholders
from backend.errors import BulkActionError
from backend.models import BulkActionKind, ItemState, ItemStatus
from backend.modules.items import new_id, now_iso
from backend.tenant import execute_scoped, require_user_id


def _dedupe(values: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _owned_item_ids(conn: sqlite3.Connection, user_id: int, item_ids: List[str]) -> List[str]:
    rows = execute_scoped(
        conn,
        f"SELECT id FROM items WHERE user_id = ? AND id IN ({placeholders(item_ids)})",
        (user_id, *item_ids),
        user_id,
        label="bulk:owned",
    ).fetchall()
    owned = {r["id"] for r in rows}
    return [i for i in item_ids if i in owned]


def _require_param(params: Dict[str, Any], name: str, message: str) -> Any:
    value = params.get(name)
    if value in (None, "", []):
        raise BulkActionError(message)
    return value


def _require_owned_row(conn: sqlite3.Connection, table: str, row_id: str, user_id: int, message: str) -> None:
    row = conn.execute(f"SELECT id FROM {table} WHERE id = ? AND user_id = ?", (row_id, user_id)).fetchone()
    if not row:
        raise BulkActionError(message)


def _update_items(conn: sqlite3.Connection, user_id: int, ids: List[str], assignments: Dict[str, Any]) -> int:
    columns = [f"{name} = ?" for name in assignments]
    columns.append("updated_at = ?")
    cur = execute_scoped(
        conn,
        f"UPDATE items SET {', '.join(columns)} WHERE user_id = ? AND id IN ({placeholders(ids)})",
        (*assignments.values(), now_iso(), user_id, *ids),
        user_id,
        label="bulk:update",
    )
    return cur.rowcount


# ---------------------------------------------------------
# Handlers
# ---------------------------------------------------------
def _location(conn, user_id, ids, params) -> int:
    location_id = _require_param(params, "location_id", "Please select a location")
    _require_owned_row(conn, "locations", location_id, user_id, "Location not found")
    return _update_items(conn, user_id, ids, {"location_id": location_id})


def _category(conn, user_id, ids, params) -> int:
    category_id = _require_param(params, "category_id", "Please select a category")
    _require_owned_row(conn, "categories", category_id, user_id, "Category not found")
    return _update_items(conn, user_id, ids, {"category_id": category_id})


def _in_custody(conn, user_id, ids) -> List[str]:
    rows = execute_scoped(
        conn,
        f"SELECT id FROM items WHERE user_id = ? AND status = ? AND id IN ({placeholders(ids)})",
        (user_id, ItemStatus.in_custody.value, *ids),
        user_id,
        label="bulk:custody",
    ).fetchall()
    return [r["id"] for r in rows]


def _assign_custody(conn, user_id, ids, params) -> int:
    custodian_id = _require_param(params, "custodian_id", "Please select a custodian")
    _require_owned_row(conn, "team_members", custodian_id, user_id, "Custodian not found")

    if _in_custody(conn, user_id, ids):
        raise BulkActionError(
            "There are some unavailable assets. Please make sure you are selecting only available assets."
        )

    now = now_iso()
    conn.executemany(
        "INSERT INTO custody (id, item_id, team_member_id, created_at) VALUES (?, ?, ?, ?)",
        [(new_id(), item_id, custodian_id, now) for item_id in ids],
    )
    return _update_items(conn, user_id, ids, {"status": ItemStatus.in_custody.value})


def _release_custody(conn, user_id, ids, params) -> int:
    held = set(_in_custody(conn, user_id, ids))
    if len(held) != len(ids):
        raise BulkActionError("Some of the selected assets are not in custody.")

    conn.execute(
        f"DELETE FROM custody WHERE item_id IN ({placeholders(ids)})",
        tuple(ids),
    )
    return _update_items(conn, user_id, ids, {"status": ItemStatus.available.value})


def _trash(conn, user_id, ids, params) -> int:
    cur = execute_scoped(
        conn,
        f"DELETE FROM items WHERE user_id = ? AND id IN ({placeholders(ids)})",
        (user_id, *ids),
        user_id,
        label="bulk:trash",
    )
    return cur.rowcount


def _set_state(state: ItemState) -> Callable:
    def handler(conn, user_id, ids, params) -> int:
        return _update_items(conn, user_id, ids, {"state": state.value})
    return handler


def _tag_ids(conn, user_id, params) -> List[str]:
    tag_ids = _dedupe(_require_param(params, "tag_ids", "Please select at least one tag"))
    rows = execute_scoped(
        conn,
        f"SELECT id FROM tags WHERE user_id = ? AND id IN ({placeholders(tag_ids)})",
        (user_id, *tag_ids),
        user_id,
        label="bulk:tags",
    ).fetchall()
    if len(rows) != len(tag_ids):
        raise BulkActionError("Some of the selected tags do not exist")
    return tag_ids


def _tag_add(conn, user_id, ids, params) -> int:
    tag_ids = _tag_ids(conn, user_id, params)
    conn.executemany(
        "INSERT OR IGNORE INTO item_tags (item_id, tag_id) VALUES (?, ?)",
        [(item_id, tag_id) for item_id in ids for tag_id in tag_ids],
    )
    return _update_items(conn, user_id, ids, {})


def _tag_remove(conn, user_id, ids, params) -> int:
    tag_ids = _tag_ids(conn, user_id, params)
    conn.execute(
        f"""
        DELETE FROM item_tags
        WHERE tag_id IN ({placeholders(tag_ids)})
          AND item_id IN (SELECT id FROM items WHERE user_id = ? AND id IN ({placeholders(ids)}))
        """,
        (*tag_ids, user_id, *ids),
    )
    return _update_items(conn, user_id, ids, {})


HANDLERS: Dict[BulkActionKind, Callable[..., int]] = {
    BulkActionKind.location: _location,
    BulkActionKind.category: _category,
    BulkActionKind.assign_custody: _assign_custody,
    BulkActionKind.release_custody: _release_custody,
    BulkActionKind.trash: _trash,
    BulkActionKind.activate: _set_state(ItemState.active),
    BulkActionKind.deactivate: _set_state(ItemState.inactive),
    BulkActionKind.archive: _set_state(ItemState.archived),
    BulkActionKind.cancel: _set_state(ItemState.cancelled),
    BulkActionKind.tag_add: _tag_add,
    BulkActionKind.tag_remove: _tag_remove,
}


def apply_bulk_action(
    conn: sqlite3.Connection,
    user_id: int,
    kind: BulkActionKind,
    item_ids: Sequence[str],
    params: Dict[str, Any],
) -> int:
    """
    Apply one bulk action atomically.

    Raises:
        BulkActionError: empty selection or invalid parameters; nothing is written
    """
    user_id = require_user_id(user_id)
    kind = BulkActionKind(kind)

    ids = _dedupe(item_ids)
    if not ids:
        raise BulkActionError("Please select at least one asset")

    try:
        owned = _owned_item_ids(conn, user_id, ids)
        affected = HANDLERS[kind](conn, user_id, owned, params) if owned else 0
        conn.commit()
    except Exception:
        conn.rollback()
        raise

    if IS_DEV:
        print(f"[BULK] {kind.value}: user_id={user_id}, requested={len(ids)}, "
              f"owned={len(owned)}, affected={affected}")
    return affected
