"""
frontend/auth.py
Authentication state for the Shelf frontend.

Streamlit reruns the script on every interaction, so the bearer token and the
caller's profile live in st.session_state and init_auth_state() must run at
the top of main() on every rerun. Tokens are issued out of band; the app
only stores one and attaches it to API calls.
"""

from typing import Any, Dict, Optional

import streamlit as st

from frontend.config import DEFAULT_ACCESS_TOKEN


def init_auth_state() -> None:
    """Ensure auth keys exist. Idempotent."""
    ss = st.session_state
    ss.setdefault("auth_token", DEFAULT_ACCESS_TOKEN)
    ss.setdefault("current_user", None)
    ss.setdefault("is_authenticated", bool(ss["auth_token"]))

    # Keep the flag in sync with actual token presence
    ss["is_authenticated"] = bool(ss["auth_token"])


def set_auth(auth_token: str, current_user: Optional[Dict[str, Any]] = None) -> None:
    ss = st.session_state
    ss["auth_token"] = auth_token
    ss["current_user"] = current_user
    ss["is_authenticated"] = True


def clear_auth() -> None:
    """Clear auth state (sign out or rejected token). Safe to call repeatedly."""
    ss = st.session_state
    ss["auth_token"] = None
    ss["current_user"] = None
    ss["is_authenticated"] = False


def is_authenticated() -> bool:
    return bool(st.session_state.get("auth_token"))


def get_current_user() -> Optional[Dict[str, Any]]:
    return st.session_state.get("current_user")


def get_auth_header() -> Dict[str, str]:
    """
    {"Authorization": "Bearer <token>"} if authenticated, {} otherwise.
    Used by every API call.
    """
    token = st.session_state.get("auth_token")
    if token:
        return {"Authorization": f"Bearer {token}"}
    return {}


def can_import_assets() -> bool:
    user = get_current_user() or {}
    return bool(user.get("can_import_assets"))
