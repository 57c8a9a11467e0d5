"""
backend/modules/catalog.py

Lookup resources items link to: categories, locations, tags, team members.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from backend.modules.items import new_id, now_iso
from backend.tenant import assert_rows_scoped, execute_scoped, require_user_id

# resource name -> (table, extra columns besides id/name)
RESOURCES = {
    "categories": ("categories", ("description", "color")),
    "locations": ("locations", ("address",)),
    "tags": ("tags", ()),
    "team_members": ("team_members", ()),
}


def list_resources(conn: sqlite3.Connection, user_id: int, resource: str) -> List[Dict[str, Any]]:
    user_id = require_user_id(user_id)
    table, extra = RESOURCES[resource]
    columns = ", ".join(("id", "user_id", "name", *extra, "created_at"))
    rows = execute_scoped(
        conn,
        f"SELECT {columns} FROM {table} WHERE user_id = ? ORDER BY name COLLATE NOCASE",
        (user_id,),
        user_id,
        label=f"list:{resource}",
    ).fetchall()
    assert_rows_scoped(rows, user_id, label=f"list:{resource}")

    result = []
    for row in rows:
        data = dict(row)
        data.pop("user_id", None)
        result.append(data)
    return result


def create_resource(
    conn: sqlite3.Connection,
    user_id: int,
    resource: str,
    name: str,
    **extra: Optional[str],
) -> Dict[str, Any]:
    user_id = require_user_id(user_id)
    table, allowed = RESOURCES[resource]
    values = {k: v for k, v in extra.items() if k in allowed and v is not None}

    record = {"id": new_id(), "name": name, **values, "created_at": now_iso()}
    columns = ["user_id", *record.keys()]
    conn.execute(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
        (user_id, *record.values()),
    )
    conn.commit()
    return record


def delete_resource(conn: sqlite3.Connection, user_id: int, resource: str, resource_id: str) -> int:
    """Returns affected rows; items pointing at a deleted category/location are unlinked."""
    user_id = require_user_id(user_id)
    table, _ = RESOURCES[resource]
    cur = execute_scoped(
        conn,
        f"DELETE FROM {table} WHERE id = ? AND user_id = ?",
        (resource_id, user_id),
        user_id,
        label=f"delete:{resource}",
    )
    conn.commit()
    return cur.rowcount
