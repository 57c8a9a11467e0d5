"""
backend/modules/items.py

Item (asset) service: create/read/update/delete, notes, main image, CSV import.

Every function takes the caller's user_id and scopes each statement to it.
Writes that match no owned row are silent no-ops that report 0 affected rows;
routes decide whether that is a 404.
"""

from __future__ import annotations

import csv
import io
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from backend.config import DEFAULT_PER_PAGE, MAX_PER_PAGE, IS_DEV
from backend.db import placeholders, row_to_dict
from backend.errors import NotFoundError, ShelfError
from backend.models import REMOVED_STATES
from backend.modules import storage
from backend.tenant import assert_rows_scoped, execute_scoped, require_user_id

ITEM_SELECT = """
    SELECT
        i.id,
        i.user_id,
        i.title,
        i.description,
        i.category_id,
        i.location_id,
        i.state,
        i.status,
        i.main_image,
        i.main_image_expiration,
        i.created_at,
        i.updated_at,
        c.name AS category_name,
        c.color AS category_color,
        l.name AS location_name,
        tm.id AS custodian_id,
        tm.name AS custodian_name
    FROM items i
    LEFT JOIN categories c ON c.id = i.category_id
    LEFT JOIN locations l ON l.id = i.location_id
    LEFT JOIN custody cu ON cu.item_id = i.id
    LEFT JOIN team_members tm ON tm.id = cu.team_member_id
"""

UPDATABLE_FIELDS = (
    "title",
    "description",
    "category_id",
    "location_id",
    "main_image",
    "main_image_expiration",
)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def clamp_per_page(per_page: Any) -> int:
    """Page sizes outside 1..MAX_PER_PAGE fall back to the default."""
    try:
        value = int(per_page)
    except (TypeError, ValueError):
        return DEFAULT_PER_PAGE
    if 1 <= value <= MAX_PER_PAGE:
        return value
    return DEFAULT_PER_PAGE


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def serialize_item(row: sqlite3.Row, tags: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Shape an ITEM_SELECT row for API responses."""
    data = row_to_dict(row)
    return {
        "id": data["id"],
        "title": data["title"],
        "description": data.get("description"),
        "state": data["state"],
        "status": data["status"],
        "category": (
            {"id": data["category_id"], "name": data["category_name"], "color": data["category_color"]}
            if data.get("category_id") else None
        ),
        "location": (
            {"id": data["location_id"], "name": data["location_name"]}
            if data.get("location_id") else None
        ),
        "custodian": (
            {"id": data["custodian_id"], "name": data["custodian_name"]}
            if data.get("custodian_id") else None
        ),
        "tags": tags or [],
        "main_image": data.get("main_image"),
        "main_image_expiration": data.get("main_image_expiration"),
        "created_at": data["created_at"],
        "updated_at": data["updated_at"],
    }


def _tags_by_item(conn: sqlite3.Connection, user_id: int, item_ids: List[str]) -> Dict[str, List[Dict[str, Any]]]:
    if not item_ids:
        return {}
    rows = conn.execute(
        f"""
        SELECT it.item_id, t.id, t.name
        FROM item_tags it
        JOIN tags t ON t.id = it.tag_id
        WHERE t.user_id = ? AND it.item_id IN ({placeholders(item_ids)})
        ORDER BY t.name
        """,
        (user_id, *item_ids),
    ).fetchall()
    result: Dict[str, List[Dict[str, Any]]] = {}
    for row in rows:
        result.setdefault(row["item_id"], []).append({"id": row["id"], "name": row["name"]})
    return result


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
def get_item(conn: sqlite3.Connection, user_id: int, item_id: str) -> Optional[Dict[str, Any]]:
    """Full item detail with notes (newest first) and QR codes, or None if not owned."""
    user_id = require_user_id(user_id)
    row = execute_scoped(
        conn,
        ITEM_SELECT + " WHERE i.id = ? AND i.user_id = ?",
        (item_id, user_id),
        user_id,
        label="get_item",
    ).fetchone()
    if not row:
        return None

    item = serialize_item(row, _tags_by_item(conn, user_id, [item_id]).get(item_id))

    notes = conn.execute(
        """
        SELECT id, content, created_at FROM notes
        WHERE item_id = ? AND user_id = ?
        ORDER BY created_at DESC, rowid DESC
        """,
        (item_id, user_id),
    ).fetchall()
    item["notes"] = [dict(n) for n in notes]

    qr_codes = conn.execute(
        "SELECT id, version, error_correction, created_at FROM qr_codes WHERE item_id = ? AND user_id = ?",
        (item_id, user_id),
    ).fetchall()
    item["qr_codes"] = [dict(q) for q in qr_codes]
    return item


def get_items(
    conn: sqlite3.Connection,
    user_id: int,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    search: Optional[str] = None,
    category_ids: Optional[Iterable[str]] = None,
    ids: Optional[Iterable[str]] = None,
    include_removed: bool = False,
) -> Dict[str, Any]:
    """
    One page of the user's items plus the total matching count.

    Page numbers start at 1. An explicit ids filter returns those items in
    any lifecycle state; otherwise archived and cancelled items are hidden
    unless include_removed is set.
    """
    user_id = require_user_id(user_id)
    take = clamp_per_page(per_page)
    page = page if page and page > 1 else 1
    skip = (page - 1) * take

    where = ["i.user_id = ?"]
    params: List[Any] = [user_id]

    if search:
        where.append("i.title LIKE ? ESCAPE '\\'")
        params.append(_like_pattern(search.strip()))

    category_ids = [c for c in (category_ids or []) if c]
    if category_ids:
        where.append(f"i.category_id IN ({placeholders(category_ids)})")
        params.extend(category_ids)

    ids = [i for i in (ids or []) if i]
    if ids:
        where.append(f"i.id IN ({placeholders(ids)})")
        params.extend(ids)
    elif not include_removed:
        where.append(f"i.state NOT IN ({placeholders(REMOVED_STATES)})")
        params.extend(REMOVED_STATES)

    where_sql = " WHERE " + " AND ".join(where)

    total = execute_scoped(
        conn,
        "SELECT COUNT(*) AS n FROM items i" + where_sql,
        params,
        user_id,
        label="get_items:count",
    ).fetchone()["n"]

    rows = execute_scoped(
        conn,
        ITEM_SELECT + where_sql + " ORDER BY i.created_at DESC, i.rowid DESC LIMIT ? OFFSET ?",
        [*params, take, skip],
        user_id,
        label="get_items",
    ).fetchall()
    assert_rows_scoped(rows, user_id, label="get_items")

    tags = _tags_by_item(conn, user_id, [r["id"] for r in rows])
    items = [serialize_item(r, tags.get(r["id"])) for r in rows]

    if IS_DEV:
        print(f"[ITEMS] List: user_id={user_id}, page={page}, per_page={take}, "
              f"search={search!r}, results={len(items)}, total={total}")

    return {"items": items, "total": total, "page": page, "per_page": take}


# ---------------------------------------------------------
# Writes
# ---------------------------------------------------------
def _require_owned(conn: sqlite3.Connection, table: str, row_id: str, user_id: int, label: str) -> None:
    row = conn.execute(f"SELECT id FROM {table} WHERE id = ? AND user_id = ?", (row_id, user_id)).fetchone()
    if not row:
        raise NotFoundError(f"{label} not found")


def get_qr(conn: sqlite3.Connection, qr_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT id, user_id, item_id FROM qr_codes WHERE id = ?", (qr_id,)).fetchone()
    return row_to_dict(row) or None


def create_item(
    conn: sqlite3.Connection,
    user_id: int,
    title: str,
    description: Optional[str] = None,
    category_id: Optional[str] = None,
    qr_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create an item and link a QR code to it.

    An existing QR code is linked only if it exists, belongs to the user and
    is not linked to another item; otherwise a fresh one is created.
    """
    user_id = require_user_id(user_id)
    if category_id:
        _require_owned(conn, "categories", category_id, user_id, "Category")

    item_id = new_id()
    now = now_iso()
    conn.execute(
        """
        INSERT INTO items (id, user_id, title, description, category_id, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (item_id, user_id, title, description, category_id, now, now),
    )

    qr = get_qr(conn, qr_id) if qr_id else None
    if qr and qr["user_id"] == user_id and qr["item_id"] is None:
        conn.execute("UPDATE qr_codes SET item_id = ? WHERE id = ? AND user_id = ?", (item_id, qr_id, user_id))
    else:
        conn.execute(
            """
            INSERT INTO qr_codes (id, user_id, item_id, version, error_correction, created_at)
            VALUES (?, ?, ?, 0, 'L', ?)
            """,
            (new_id(), user_id, item_id, now),
        )
    conn.commit()

    if IS_DEV:
        print(f"[ITEMS] Created item_id={item_id}, user_id={user_id}, linked_qr={bool(qr)}")

    return get_item(conn, user_id, item_id)


def update_item(conn: sqlite3.Connection, user_id: int, item_id: str, **fields: Any) -> int:
    """Update the given columns; returns affected rows (0 when not owned)."""
    user_id = require_user_id(user_id)
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {sorted(unknown)}")

    if fields.get("category_id"):
        _require_owned(conn, "categories", fields["category_id"], user_id, "Category")
    if fields.get("location_id"):
        _require_owned(conn, "locations", fields["location_id"], user_id, "Location")

    columns = [f"{name} = ?" for name in fields]
    params: List[Any] = list(fields.values())
    columns.append("updated_at = ?")
    params.extend([now_iso(), item_id, user_id])

    cur = execute_scoped(
        conn,
        f"UPDATE items SET {', '.join(columns)} WHERE id = ? AND user_id = ?",
        params,
        user_id,
        label="update_item",
    )
    conn.commit()
    return cur.rowcount


def delete_item(conn: sqlite3.Connection, user_id: int, item_id: str) -> int:
    user_id = require_user_id(user_id)
    cur = execute_scoped(
        conn,
        "DELETE FROM items WHERE id = ? AND user_id = ?",
        (item_id, user_id),
        user_id,
        label="delete_item",
    )
    conn.commit()
    if IS_DEV:
        print(f"[ITEMS] Delete item_id={item_id}, user_id={user_id}, affected={cur.rowcount}")
    return cur.rowcount


def update_item_main_image(
    conn: sqlite3.Connection,
    user_id: int,
    item_id: str,
    filename: str,
    content: bytes,
) -> Dict[str, Any]:
    """
    Store a resized main image and point the item at its signed URL.

    Returns the updated item, or {"error": message} when the upload fails.
    """
    if get_item(conn, user_id, item_id) is None:
        return {"error": "Item not found"}

    stored = storage.save_main_image(user_id, item_id, filename, content)
    if "error" in stored:
        return stored

    update_item(
        conn,
        user_id,
        item_id,
        main_image=stored["url"],
        main_image_expiration=stored["expires_at"],
    )
    return get_item(conn, user_id, item_id)


def create_note(conn: sqlite3.Connection, user_id: int, item_id: str, content: str) -> Optional[Dict[str, Any]]:
    """Attach a note; None when the item is not owned by user_id."""
    user_id = require_user_id(user_id)
    owned = conn.execute("SELECT id FROM items WHERE id = ? AND user_id = ?", (item_id, user_id)).fetchone()
    if not owned:
        return None

    note = {"id": new_id(), "content": content, "created_at": now_iso()}
    conn.execute(
        "INSERT INTO notes (id, user_id, item_id, content, created_at) VALUES (?, ?, ?, ?, ?)",
        (note["id"], user_id, item_id, content, note["created_at"]),
    )
    conn.commit()
    return note


def delete_note(conn: sqlite3.Connection, user_id: int, note_id: str) -> int:
    user_id = require_user_id(user_id)
    cur = execute_scoped(
        conn,
        "DELETE FROM notes WHERE id = ? AND user_id = ?",
        (note_id, user_id),
        user_id,
        label="delete_note",
    )
    conn.commit()
    return cur.rowcount


# ---------------------------------------------------------
# CSV import
# ---------------------------------------------------------
def import_items(conn: sqlite3.Connection, user_id: int, csv_text: str) -> int:
    """
    Create one item per CSV row. Columns: title (required), description,
    category (name; created when the user has none with that name).
    """
    user_id = require_user_id(user_id)
    reader = csv.DictReader(io.StringIO(csv_text))
    if not reader.fieldnames or "title" not in [f.strip().lower() for f in reader.fieldnames]:
        raise ShelfError("CSV must have a 'title' column")

    categories = {
        row["name"].lower(): row["id"]
        for row in conn.execute("SELECT id, name FROM categories WHERE user_id = ?", (user_id,))
    }

    created = 0
    for line_no, raw in enumerate(reader, start=2):
        record = {(k or "").strip().lower(): (v or "").strip() for k, v in raw.items()}
        title = record.get("title")
        if not title:
            raise ShelfError(f"Row {line_no}: title is required")

        category_id = None
        category_name = record.get("category")
        if category_name:
            category_id = categories.get(category_name.lower())
            if category_id is None:
                category_id = new_id()
                conn.execute(
                    "INSERT INTO categories (id, user_id, name, created_at) VALUES (?, ?, ?, ?)",
                    (category_id, user_id, category_name, now_iso()),
                )
                categories[category_name.lower()] = category_id

        now = now_iso()
        item_id = new_id()
        conn.execute(
            """
            INSERT INTO items (id, user_id, title, description, category_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (item_id, user_id, title, record.get("description") or None, category_id, now, now),
        )
        conn.execute(
            "INSERT INTO qr_codes (id, user_id, item_id, created_at) VALUES (?, ?, ?, ?)",
            (new_id(), user_id, item_id, now),
        )
        created += 1

    conn.commit()
    print(f"[ITEMS] Imported {created} item(s) for user_id={user_id}")
    return created
