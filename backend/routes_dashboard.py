"""
backend/routes_dashboard.py

Dashboard aggregates and the caller's profile/capabilities.
"""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from backend.auth_context import AuthContext, require_auth_context
from backend.db import get_db
from backend.models import Capability
from backend.modules.dashboard import get_dashboard


router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard")
def dashboard(ctx: AuthContext = Depends(require_auth_context)):
    conn = get_db()
    try:
        return get_dashboard(conn, ctx.user_id)
    except sqlite3.Error as e:
        print(f"[DASHBOARD] DB error: {e}")
        raise HTTPException(status_code=500, detail="Database error")
    finally:
        conn.close()


@router.get("/me")
def me(ctx: AuthContext = Depends(require_auth_context)):
    """Profile plus the flags the UI uses to enable or explain features."""
    return {
        "user_id": ctx.user_id,
        "email": ctx.email,
        "tier": ctx.tier,
        "capabilities": sorted(ctx.capabilities),
        "can_import_assets": Capability.ITEMS_IMPORT in ctx.capabilities,
    }
