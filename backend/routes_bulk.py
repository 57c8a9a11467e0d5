"""
backend/routes_bulk.py

POST /api/assets/bulk-update-<kind>

Form-encoded, one endpoint per bulk action kind:
- assetIds[0], assetIds[1], ...   selected item ids (array-style field)
- newLocationId / categoryId / custodianId / tagIds[i]   action parameters
- currentSearchParams             list filters, echoed back as redirectTo

Success: {"success": true, "affected": n, "redirectTo": "/assets?..."}
Failure: HTTP 400 {"error": {"message": "..."}}
"""

from __future__ import annotations

import re
import sqlite3
from typing import Dict, List, Tuple

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import FormData

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.errors import NotFoundError
from backend.models import BulkActionKind
from backend.modules.bulk import apply_bulk_action


router = APIRouter(
    prefix="/api/assets",
    tags=["bulk"],
)

ASSET_IDS_FIELD = "assetIds"
TAG_IDS_FIELD = "tagIds"
LIST_PATH = "/assets"


def array_field_values(form: FormData, name: str) -> List[str]:
    """
    Collect `name[0]`, `name[1]`, ... in index order. Plain repeated `name`
    keys are accepted too and follow the indexed ones.
    """
    pattern = re.compile(rf"^{re.escape(name)}\[(\d+)\]$")
    indexed: List[Tuple[int, str]] = []
    for key, value in form.multi_items():
        match = pattern.match(key)
        if match and isinstance(value, str):
            indexed.append((int(match.group(1)), value))
    values = [v for _, v in sorted(indexed, key=lambda pair: pair[0])]
    values.extend(v for v in form.getlist(name) if isinstance(v, str))
    return [v.strip() for v in values if v and v.strip()]


def redirect_target(search_params: str) -> str:
    search_params = (search_params or "").lstrip("?")
    return f"{LIST_PATH}?{search_params}" if search_params else LIST_PATH


def action_params(form: FormData) -> Dict[str, object]:
    def text(key: str):
        value = form.get(key)
        return value.strip() if isinstance(value, str) and value.strip() else None

    return {
        "location_id": text("newLocationId"),
        "category_id": text("categoryId"),
        "custodian_id": text("custodianId"),
        "tag_ids": array_field_values(form, TAG_IDS_FIELD),
    }


def run_bulk_action(user_id: int, action: BulkActionKind, item_ids: List[str], params: Dict) -> int:
    conn = get_db()
    try:
        return apply_bulk_action(conn, user_id, action, item_ids, params)
    except sqlite3.Error as e:
        print(f"[BULK] DB error on {action.value}: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Database error")
    finally:
        conn.close()


@router.post("/bulk-update-{kind}")
async def bulk_update(
    request: Request,
    kind: str = Path(..., description="Bulk action kind, e.g. location, trash, tag-add"),
    ctx: AuthContext = Depends(require_auth_context),
):
    try:
        action = BulkActionKind(kind)
    except ValueError:
        raise NotFoundError(f"Unknown bulk action: {kind}")

    form = await request.form()
    item_ids = array_field_values(form, ASSET_IDS_FIELD)
    search_params = form.get("currentSearchParams")
    search_params = search_params if isinstance(search_params, str) else ""

    affected = await run_in_threadpool(
        run_bulk_action, ctx.user_id, action, item_ids, action_params(form),
    )

    return {
        "success": True,
        "affected": affected,
        "redirectTo": redirect_target(search_params),
    }
