"""
backend/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.

Contains:
- AuthContext: Immutable ownership boundary derived from the bearer token
- require_auth_context: FastAPI dependency for auth enforcement
- verify_token / create_access_token: JWT helpers

Tokens are minted by the identity service with the shared SECRET_KEY; this
module only verifies them and resolves the user row.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Set

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from backend.config import SECRET_KEY, ALGORITHM, IS_DEV
from backend.db import get_db
from backend.models import capabilities_for_tier

# Security scheme for HTTPBearer
security = HTTPBearer()


# ---------------------------------------------------------
# JWT Token Helpers
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify JWT access token and return decoded payload.

    Raises:
        HTTPException(401): If token is expired or invalid
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def create_access_token(user_id: int, minutes: Optional[int] = 60) -> str:
    """Issue a token for user_id. Used by provisioning scripts and tests."""
    payload = {"sub": str(user_id)}
    if minutes is not None:
        payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Immutable ownership context derived from the JWT token.
    This is the ONLY source of truth for user_id in protected endpoints.
    Never trust a user_id from request bodies or query params.
    """
    user_id: int
    email: str
    tier: str
    capabilities: Set[str]


def require_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthContext:
    """
    Auth context dependency for FastAPI routes.

    Raises:
        HTTPException(401): If token is invalid, expired, or user not found
        HTTPException(403): If user is inactive
    """
    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub")

    if not user_id:
        print("[AUTH] Missing user_id in token payload")
        raise HTTPException(status_code=401, detail="Invalid token payload")

    conn = get_db()
    try:
        row = conn.execute(
            "SELECT id, email, tier, is_active FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
    finally:
        conn.close()

    if not row:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise HTTPException(status_code=401, detail="User not found")

    if not row["is_active"]:
        print(f"[AUTH] Inactive user attempted access: user_id={user_id}")
        raise HTTPException(status_code=403, detail="Account inactive")

    tier = row["tier"] or "free"
    ctx = AuthContext(
        user_id=row["id"],
        email=row["email"],
        tier=tier,
        capabilities=capabilities_for_tier(tier),
    )

    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, tier={ctx.tier}")

    return ctx
