# backend/config.py
# Environment-aware configuration for the Shelf backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT configuration (tokens are issued by the identity service)
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
ALGORITHM = "HS256"

# Database configuration (relative paths resolve next to this package)
DATABASE_PATH = os.environ.get("DATABASE_PATH", "shelf.db")

# Image storage
UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
SIGNED_URL_SECONDS = int(os.environ.get("SIGNED_URL_SECONDS", str(24 * 60 * 60)))
MAIN_IMAGE_MAX_WIDTH = 800
MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(8 * 1024 * 1024)))

# List pagination
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:8501",  # Streamlit default
    "http://127.0.0.1:8501",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: {DATABASE_PATH}")
print(f"[CONFIG] Uploads: {UPLOAD_DIR} (signed URLs valid {SIGNED_URL_SECONDS}s)")
