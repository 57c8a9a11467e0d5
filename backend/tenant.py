"""
backend/tenant.py

Ownership guardrails. All user-owned queries go through these helpers so a
missing user_id filter is caught before data leaks between users.

- In DEV: emit warnings for unsafe access
- In STAGING/PROD: fail fast with HTTP 500
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional, Union

from fastapi import HTTPException

from backend.config import IS_DEV

# Tables whose rows carry a user_id column
OWNED_TABLES = ["items", "categories", "locations", "tags", "team_members", "notes", "qr_codes"]


def require_user_id(user_id: Optional[int]) -> int:
    """
    Require user_id to be present for owner-scoped operations.

    Raises:
        HTTPException(500): If user_id is missing in non-dev environments
    """
    if not user_id or user_id < 1:
        error_msg = f"[TENANT] Missing or invalid user_id: {user_id}"
        if IS_DEV:
            print(f"{error_msg} (DEV warning - continuing)")
            return user_id or 0
        print(f"{error_msg} (PRODUCTION - failing fast)")
        raise HTTPException(status_code=500, detail="Owner scope missing - this is a server error")
    return user_id


def _row_user_id(row: Union[sqlite3.Row, Dict[str, Any]]) -> Any:
    if isinstance(row, dict):
        return row.get("user_id")
    try:
        return row["user_id"]
    except (KeyError, IndexError):
        return None


def assert_rows_scoped(
    rows: Union[List[sqlite3.Row], List[Dict[str, Any]]],
    user_id: int,
    label: str = "",
) -> None:
    """
    Assert that all returned rows belong to user_id.

    Rows without a user_id column are not checked.
    """
    mismatches = [
        i for i, row in enumerate(rows or [])
        if _row_user_id(row) is not None and _row_user_id(row) != user_id
    ]
    if not mismatches:
        return

    error_msg = f"[TENANT] Ownership violation{f' in {label}' if label else ''}"
    detail_msg = f"Found {len(mismatches)} row(s) owned by another user"
    if IS_DEV:
        print(f"{error_msg}: {detail_msg}")
        return
    print(f"{error_msg}: {detail_msg} (PRODUCTION - failing fast)")
    raise HTTPException(status_code=500, detail="Ownership violation detected - this is a server error")


def execute_scoped(
    conn: sqlite3.Connection,
    sql: str,
    params: Union[tuple, list],
    user_id: int,
    label: str = "",
) -> sqlite3.Cursor:
    """
    Execute a SQL statement after checking it filters on user_id.

    Best-effort substring check: a statement touching an owned table must
    mention user_id somewhere.
    """
    require_user_id(user_id)

    sql_lower = sql.lower()
    touches_owned = any(table in sql_lower for table in OWNED_TABLES)
    if touches_owned and "user_id" not in sql_lower:
        warning_msg = f"[TENANT] Query missing 'user_id' filter{f' in {label}' if label else ''}"
        if IS_DEV:
            print(warning_msg)
            print(f"[TENANT][DEV] SQL: {sql[:100]}...")
        else:
            print(f"{warning_msg} (PRODUCTION - failing fast)")
            raise HTTPException(status_code=500, detail="Unsafe query detected - missing user_id filter")

    cur = conn.cursor()
    cur.execute(sql, params)
    return cur
