"""
backend/dependencies.py

Reusable FastAPI dependencies for capability enforcement.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException

from backend.auth_context import require_auth_context, AuthContext
from backend.config import IS_DEV


def require_capability(capability: str) -> Callable:
    """
    FastAPI dependency factory for tier-aware capability authorization.

    Usage in routes:
        @router.post("/import", dependencies=[Depends(require_capability("items:import"))])
        def import_items(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        HTTPException(403): If the user lacks the required capability
    """
    def _check_capability(ctx: AuthContext = Depends(require_auth_context)) -> AuthContext:
        if capability not in ctx.capabilities:
            if IS_DEV:
                print(f"[AUTHZ] Capability denied: capability={capability}, tier={ctx.tier}")
            raise HTTPException(
                status_code=403,
                detail="This feature is not available on your current tier",
            )
        return ctx

    return _check_capability
