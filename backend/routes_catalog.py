"""
backend/routes_catalog.py

Categories, locations, tags and team members: list, create, delete.
"""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.modules import catalog
from backend.schemas_assets import CatalogCreateRequest


router = APIRouter(prefix="/api", tags=["catalog"])

# URL segment -> catalog resource
SEGMENTS = {
    "categories": "categories",
    "locations": "locations",
    "tags": "tags",
    "team-members": "team_members",
}


def _resource(segment: str) -> str:
    resource = SEGMENTS.get(segment)
    if resource is None:
        raise HTTPException(status_code=404, detail="Not found")
    return resource


@router.get("/{segment}")
def list_catalog(segment: str = Path(...), ctx: AuthContext = Depends(require_auth_context)):
    resource = _resource(segment)
    conn = get_db()
    try:
        return {"items": catalog.list_resources(conn, ctx.user_id, resource)}
    except sqlite3.Error as e:
        print(f"[CATALOG] DB error on list {resource}: {e}")
        raise HTTPException(status_code=500, detail="Database error")
    finally:
        conn.close()


@router.post("/{segment}")
def create_catalog(
    req: CatalogCreateRequest,
    segment: str = Path(...),
    ctx: AuthContext = Depends(require_auth_context),
):
    resource = _resource(segment)
    conn = get_db()
    try:
        return catalog.create_resource(
            conn,
            ctx.user_id,
            resource,
            req.name,
            description=req.description,
            color=req.color,
            address=req.address,
        )
    except sqlite3.Error as e:
        print(f"[CATALOG] DB error on create {resource}: {e}")
        raise HTTPException(status_code=500, detail="Database error")
    finally:
        conn.close()


@router.delete("/{segment}/{resource_id}", status_code=204)
def delete_catalog(
    segment: str = Path(...),
    resource_id: str = Path(...),
    ctx: AuthContext = Depends(require_auth_context),
) -> None:
    resource = _resource(segment)
    conn = get_db()
    try:
        affected = catalog.delete_resource(conn, ctx.user_id, resource, resource_id)
    except sqlite3.Error as e:
        print(f"[CATALOG] DB error on delete {resource}: {e}")
        raise HTTPException(status_code=500, detail="Database error")
    finally:
        conn.close()

    if affected == 0:
        raise HTTPException(status_code=404, detail="Not found")
    return None
