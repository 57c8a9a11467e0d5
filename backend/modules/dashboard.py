"""
backend/modules/dashboard.py

Dashboard aggregates: newest items, custodians by custody count, and items
created per month over the last year.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from backend.modules.items import get_items
from backend.tenant import execute_scoped, require_user_id

NEWEST_ITEMS = 5
MONTHS = 12


def _month_keys(today: date, months: int = MONTHS) -> List[str]:
    """YYYY-MM keys for the last `months` months, oldest first, ending with today's month."""
    keys = []
    year, month = today.year, today.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def custodians(conn: sqlite3.Connection, user_id: int) -> List[Dict[str, Any]]:
    rows = execute_scoped(
        conn,
        """
        SELECT tm.id, tm.name, COUNT(cu.id) AS count
        FROM custody cu
        JOIN team_members tm ON tm.id = cu.team_member_id
        WHERE tm.user_id = ?
        GROUP BY tm.id, tm.name
        ORDER BY count DESC, tm.name
        """,
        (user_id,),
        user_id,
        label="dashboard:custodians",
    ).fetchall()
    return [dict(r) for r in rows]


def items_created_each_month(
    conn: sqlite3.Connection,
    user_id: int,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    keys = _month_keys(today or datetime.now(timezone.utc).date())
    rows = execute_scoped(
        conn,
        """
        SELECT substr(created_at, 1, 7) AS month, COUNT(*) AS count
        FROM items
        WHERE user_id = ? AND substr(created_at, 1, 7) >= ?
        GROUP BY month
        """,
        (user_id, keys[0]),
        user_id,
        label="dashboard:months",
    ).fetchall()
    counts = {r["month"]: r["count"] for r in rows}
    return [{"month": key, "count": counts.get(key, 0)} for key in keys]


def get_dashboard(conn: sqlite3.Connection, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    user_id = require_user_id(user_id)
    newest = get_items(conn, user_id, page=1, per_page=NEWEST_ITEMS)
    return {
        "new_items": newest["items"],
        "total_items": newest["total"],
        "custodians": custodians(conn, user_id),
        "items_created_each_month": items_created_each_month(conn, user_id, today),
    }
