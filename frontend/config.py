# frontend/config.py
# Environment-aware configuration for the Shelf frontend

import os
from typing import Literal

# Environment detection - normalize to lowercase
_raw_env = os.environ.get("ENV", "production").lower()
ENV: Literal["local", "staging", "production"] = _raw_env if _raw_env in ("local", "staging", "production") else "production"  # type: ignore

# Environment flags (using normalized ENV)
IS_LOCAL = (ENV == "local")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "production")

IS_DEV = IS_LOCAL


def validate_api_url(url: str, env: str) -> None:
    """
    Validate API base URL according to environment security rules.

    Raises:
        ValueError: If URL violates security constraints for the environment
    """
    if not url:
        raise ValueError("API base URL cannot be empty")

    # Production/staging must use HTTPS and never localhost
    if env in ("staging", "production"):
        if not url.startswith("https://"):
            raise ValueError(f"Production/staging must use HTTPS. Got: {url}")
        if "127.0.0.1" in url or "localhost" in url:
            raise ValueError(f"Production/staging cannot use localhost URLs. Got: {url}")


def get_api_base_url() -> str:
    """
    Get API base URL with strict priority and validation.

    Priority:
    1. BACKEND_URL environment variable
    2. API_BASE_URL environment variable
    3. Local dev default (http://127.0.0.1:8000) ONLY if ENV == "local"
    4. Raise error if production/staging with no configured URL

    Raises:
        RuntimeError: If production/staging environment has no configured URL
    """
    for name in ("BACKEND_URL", "API_BASE_URL"):
        configured = os.environ.get(name, "").strip()
        if configured:
            url = configured.rstrip("/")
            validate_api_url(url, ENV)
            return url

    if ENV == "local":
        return "http://127.0.0.1:8000"

    raise RuntimeError(
        f"Backend URL not configured for {ENV.upper()} environment. "
        f"Set BACKEND_URL (HTTPS) for the backend service."
    )


try:
    BACKEND_URL = get_api_base_url()
except RuntimeError as e:
    print(f"[CONFIG] CRITICAL: {e}")
    BACKEND_URL = ""  # Will cause errors on API calls, which is correct behavior

# Access token handed out of band (no login flow in this app)
DEFAULT_ACCESS_TOKEN = os.environ.get("SHELF_ACCESS_TOKEN", "").strip() or None

# Feature flags
ENABLE_DEBUG_UI = IS_DEV

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Backend URL: {BACKEND_URL}")
print(f"[CONFIG] Debug UI: {'enabled' if ENABLE_DEBUG_UI else 'disabled'}")
