"""
backend/routes_assets.py

Item (asset) CRUD endpoints, notes, main image upload and CSV import.

Security guarantees:
- All endpoints require authentication (require_auth_context)
- Every query is filtered by user_id from the auth context
- No client-provided user_id accepted
"""

from __future__ import annotations

import sqlite3
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Path, Query, UploadFile
from fastapi.responses import FileResponse

from backend.auth_context import AuthContext, require_auth_context
from backend.config import DEFAULT_PER_PAGE, IS_DEV
from backend.db import get_db
from backend.dependencies import require_capability
from backend.errors import ShelfError
from backend.models import Capability
from backend.modules import items as item_service
from backend.modules import storage
from backend.schemas_assets import ItemCreateRequest, ItemUpdateRequest, NoteCreateRequest


router = APIRouter(
    prefix="/api/assets",
    tags=["assets"],
)

images_router = APIRouter(prefix=storage.IMAGE_ROUTE, tags=["images"])


def _database_error(action: str, e: sqlite3.Error) -> HTTPException:
    # Log error but don't expose internal details
    print(f"[ASSETS] DB error on {action}: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail="Database error")


@router.get("")
def list_assets(
    page: int = Query(1, ge=1, le=100000, description="Page number, starts at 1"),
    per_page: int = Query(DEFAULT_PER_PAGE, description="Items per page (out-of-range values use the default)"),
    s: Optional[str] = Query(None, max_length=200, description="Case-insensitive title search"),
    category: Optional[List[str]] = Query(None, description="Category id filter (repeatable)"),
    ids: Optional[List[str]] = Query(None, description="Fetch these item ids only (repeatable)"),
    include_removed: bool = Query(False, description="Include archived and cancelled items"),
    ctx: AuthContext = Depends(require_auth_context),
):
    """List one page of the caller's items plus the total count."""
    conn = get_db()
    try:
        return item_service.get_items(
            conn,
            ctx.user_id,
            page=page,
            per_page=per_page,
            search=s,
            category_ids=category,
            ids=ids,
            include_removed=include_removed,
        )
    except sqlite3.Error as e:
        raise _database_error("list", e)
    finally:
        conn.close()


@router.post("")
def create_asset(req: ItemCreateRequest, ctx: AuthContext = Depends(require_auth_context)):
    conn = get_db()
    try:
        return item_service.create_item(
            conn,
            ctx.user_id,
            title=req.title,
            description=req.description,
            category_id=req.category_id,
            qr_id=req.qr_id,
        )
    except sqlite3.Error as e:
        raise _database_error("create", e)
    finally:
        conn.close()


@router.post("/import", dependencies=[Depends(require_capability(Capability.ITEMS_IMPORT))])
async def import_assets(
    file: UploadFile = File(..., description="CSV with title, description, category columns"),
    ctx: AuthContext = Depends(require_auth_context),
):
    """Bulk-create items from CSV. Not available on the free tier."""
    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ShelfError("CSV must be UTF-8 encoded")

    conn = get_db()
    try:
        created = item_service.import_items(conn, ctx.user_id, text)
        return {"success": True, "created": created}
    except sqlite3.Error as e:
        raise _database_error("import", e)
    finally:
        conn.close()


@router.get("/{item_id}")
def get_asset(
    item_id: str = Path(..., description="Item ID"),
    ctx: AuthContext = Depends(require_auth_context),
):
    """Item detail. 404 whether the item doesn't exist or belongs to someone else."""
    conn = get_db()
    try:
        item = item_service.get_item(conn, ctx.user_id, item_id)
    except sqlite3.Error as e:
        raise _database_error("get", e)
    finally:
        conn.close()

    if item is None:
        raise HTTPException(status_code=404, detail="Asset not found")
    return item


@router.patch("/{item_id}")
def update_asset(
    req: ItemUpdateRequest,
    item_id: str = Path(..., description="Item ID"),
    ctx: AuthContext = Depends(require_auth_context),
):
    fields = {k: v for k, v in req.dict().items() if v is not None}
    conn = get_db()
    try:
        if not fields:
            affected = 1 if item_service.get_item(conn, ctx.user_id, item_id) else 0
        else:
            affected = item_service.update_item(conn, ctx.user_id, item_id, **fields)
        if affected == 0:
            raise HTTPException(status_code=404, detail="Asset not found")
        return item_service.get_item(conn, ctx.user_id, item_id)
    except sqlite3.Error as e:
        raise _database_error("update", e)
    finally:
        conn.close()


@router.delete("/{item_id}", status_code=204)
def delete_asset(
    item_id: str = Path(..., description="Item ID"),
    ctx: AuthContext = Depends(require_auth_context),
) -> None:
    conn = get_db()
    try:
        affected = item_service.delete_item(conn, ctx.user_id, item_id)
    except sqlite3.Error as e:
        raise _database_error("delete", e)
    finally:
        conn.close()

    if affected == 0:
        raise HTTPException(status_code=404, detail="Asset not found")
    return None


@router.post("/{item_id}/notes")
def create_asset_note(
    req: NoteCreateRequest,
    item_id: str = Path(..., description="Item ID"),
    ctx: AuthContext = Depends(require_auth_context),
):
    conn = get_db()
    try:
        note = item_service.create_note(conn, ctx.user_id, item_id, req.content)
    except sqlite3.Error as e:
        raise _database_error("note create", e)
    finally:
        conn.close()

    if note is None:
        raise HTTPException(status_code=404, detail="Asset not found")
    return note


@router.delete("/{item_id}/notes/{note_id}", status_code=204)
def delete_asset_note(
    item_id: str = Path(..., description="Item ID"),
    note_id: str = Path(..., description="Note ID"),
    ctx: AuthContext = Depends(require_auth_context),
) -> None:
    conn = get_db()
    try:
        affected = item_service.delete_note(conn, ctx.user_id, note_id)
    except sqlite3.Error as e:
        raise _database_error("note delete", e)
    finally:
        conn.close()

    if affected == 0:
        raise HTTPException(status_code=404, detail="Note not found")
    return None


@router.post("/{item_id}/main-image")
async def upload_main_image(
    item_id: str = Path(..., description="Item ID"),
    mainImage: UploadFile = File(..., description="Image file"),
    ctx: AuthContext = Depends(require_auth_context),
):
    """Resize and store the main image; returns the item with its signed URL."""
    content = await mainImage.read()
    conn = get_db()
    try:
        result = item_service.update_item_main_image(
            conn, ctx.user_id, item_id, mainImage.filename or "", content
        )
    except sqlite3.Error as e:
        raise _database_error("main image", e)
    finally:
        conn.close()

    if "error" in result:
        if IS_DEV:
            print(f"[ASSETS] Main image rejected for item_id={item_id}: {result['error']}")
        raise ShelfError(result["error"])
    return result


@images_router.get("/{filename:path}")
def get_image(filename: str, expires: int = Query(...), signature: str = Query(...)):
    """Serve a stored image if its signature is valid and unexpired."""
    if not storage.verify_signature(filename, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired image URL")

    path = storage.resolve_stored_path(filename)
    if path is None or not path.is_file():
        raise HTTPException(status_code=404, detail="Image not found")
    return FileResponse(path)
