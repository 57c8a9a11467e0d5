"""
frontend/api_client.py
Centralized API client for all backend requests.

This module ensures:
1. All API calls attach the Authorization header when authenticated
2. Consistent handling of 401/403
3. Centralized API base URL configuration (dev/staging/prod)
"""

import time
from typing import Any, Dict, Literal, Optional

import requests
import streamlit as st

from frontend.auth import clear_auth, get_auth_header
from frontend.config import IS_DEV, get_api_base_url

__all__ = ["api_request", "error_message", "get_api_base_url"]


def error_message(resp: Optional[requests.Response], default: str = "Request failed") -> str:
    """
    Pull a user-facing message out of an error response:
    {"error": {"message": ...}} from the app, {"detail": ...} from FastAPI.
    """
    if resp is None:
        return default
    try:
        body = resp.json()
    except ValueError:
        return f"{default} (HTTP {resp.status_code})"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail
    return f"{default} (HTTP {resp.status_code})"


def api_request(
    method: Literal["GET", "POST", "PATCH", "PUT", "DELETE"],
    path: str,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    data: Any = None,
    files: Optional[Dict[str, Any]] = None,
    timeout: int = 20,
    show_errors: bool = True,
) -> Optional[requests.Response]:
    """
    Make an API request with automatic auth header attachment and error handling.

    Args:
        method: HTTP method
        path: API endpoint path (e.g., "/api/assets")
        json: JSON body
        params: Query parameters
        data: Form body (dict or list of (name, value) pairs)
        files: Multipart files, passed straight to requests
        timeout: Request timeout in seconds
        show_errors: Render st.error for failures; callers that surface errors
            themselves (e.g. inside a dialog) pass False

    Returns:
        Response object, or None on configuration/connection errors.
        Never raises.
    """
    try:
        base_url = get_api_base_url()
    except RuntimeError as e:
        if show_errors:
            st.error(f"⚙️ Configuration error: {str(e)}")
        return None

    url = f"{base_url}{path}"
    headers = {"Accept": "application/json"}
    headers.update(get_auth_header())

    try:
        resp = requests.request(
            method,
            url,
            json=json,
            params=params,
            data=data,
            files=files,
            headers=headers,
            timeout=timeout,
        )

        if resp.status_code == 401:
            if IS_DEV:
                print(f"[API] 401 on {path}, clearing auth")
            clear_auth()
            if show_errors:
                st.warning("🔒 Your access token was rejected. Please enter a valid token.")
            return resp

        if resp.status_code == 403:
            if IS_DEV:
                print(f"[API] 403 Forbidden on {path}")
            if show_errors:
                st.error(f"⛔ {error_message(resp, 'You do not have permission to perform this action.')}")
            return resp

        _update_backend_status("ok")
        return resp

    except requests.exceptions.Timeout:
        if IS_DEV:
            print(f"[API] Timeout on {method} {path}")
        if show_errors:
            st.error(f"⏱️ Request timed out after {timeout}s. Please try again.")
        _update_backend_status("timeout")
        return None

    except requests.exceptions.ConnectionError:
        if IS_DEV:
            print(f"[API] Connection error on {method} {path}")
        if show_errors:
            st.error(f"🔌 Cannot connect to backend at {base_url}. Please check your connection.")
        _update_backend_status("connection_error")
        return None

    except requests.exceptions.RequestException as e:
        # Sanitize error message - never include headers
        error_msg = str(e)
        if "bearer" in error_msg.lower() or "authorization" in error_msg.lower():
            error_msg = "Authentication error (details hidden for security)"
        if IS_DEV:
            print(f"[API] Unexpected error on {method} {path}: {error_msg}")
        if show_errors:
            st.error(f"❌ Unexpected error: {error_msg[:100]}")
        _update_backend_status("error")
        return None


def _update_backend_status(status: str) -> None:
    """Track backend reachability for the sidebar indicator."""
    ss = st.session_state
    ss["_backend_status"] = status
    ss["_backend_last_ping_time"] = time.time()
