"""
backend/modules/storage.py

Main-image storage: resize with Pillow, write under UPLOAD_DIR, hand out
signed, time-limited URLs.

Failures come back as {"error": message} so callers can pass them straight
to the client; nothing here raises for a bad upload.
"""

from __future__ import annotations

import hashlib
import hmac
import io
import time
from datetime import datetime, timezone
from pathlib import Path as FsPath
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

from PIL import Image, UnidentifiedImageError

from backend.config import (
    MAIN_IMAGE_MAX_WIDTH,
    MAX_UPLOAD_BYTES,
    SECRET_KEY,
    SIGNED_URL_SECONDS,
    UPLOAD_DIR,
    IS_DEV,
)

IMAGE_ROUTE = "/api/images"

# Pillow format -> file extension; anything else is re-encoded as PNG
SAVE_FORMATS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif"}


def upload_root() -> FsPath:
    root = FsPath(UPLOAD_DIR)
    if not root.is_absolute():
        root = FsPath(__file__).resolve().parent.parent / root
    return root


def resolve_stored_path(relative: str) -> Optional[FsPath]:
    """Map a stored relative path to disk, refusing anything outside the upload root."""
    root = upload_root().resolve()
    candidate = (root / relative).resolve()
    if root not in candidate.parents:
        return None
    return candidate


def _sign(relative: str, expires: int) -> str:
    message = f"{relative}:{expires}".encode()
    return hmac.new(SECRET_KEY.encode(), message, hashlib.sha256).hexdigest()


def create_signed_url(filename: str, expires_in: int = SIGNED_URL_SECONDS) -> Union[str, Dict[str, str]]:
    """Signed URL for a stored file, or {"error": ...} if it does not exist."""
    path = resolve_stored_path(filename)
    if path is None or not path.is_file():
        return {"error": "Could not create signed URL: file not found"}

    expires = int(time.time()) + expires_in
    query = urlencode({"expires": expires, "signature": _sign(filename, expires)})
    return f"{IMAGE_ROUTE}/{filename}?{query}"


def verify_signature(filename: str, expires: int, signature: str) -> bool:
    if expires < int(time.time()):
        return False
    return hmac.compare_digest(_sign(filename, expires), signature or "")


def resize_image(content: bytes, max_width: int = MAIN_IMAGE_MAX_WIDTH) -> Dict[str, Any]:
    """
    Downscale to max_width keeping the aspect ratio; smaller images are never
    enlarged. Returns {"data": bytes, "ext": str} or {"error": str}.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            fmt = img.format if img.format in SAVE_FORMATS else "PNG"
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.Resampling.LANCZOS)
            if fmt == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            out = io.BytesIO()
            img.save(out, fmt)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        if IS_DEV:
            print(f"[STORAGE] Could not decode image: {type(e).__name__}")
        return {"error": "Unsupported or corrupt image"}

    return {"data": out.getvalue(), "ext": SAVE_FORMATS[fmt]}


def save_main_image(user_id: int, item_id: str, filename: str, content: bytes) -> Dict[str, Any]:
    """
    Resize and store an item's main image.

    Returns {"url", "expires_at", "path"} or {"error": message}.
    """
    if not content:
        return {"error": "Couldn't upload image"}
    if len(content) > MAX_UPLOAD_BYTES:
        return {"error": f"Image exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit"}

    resized = resize_image(content)
    if "error" in resized:
        return resized

    relative = f"{user_id}/{item_id}/main-image-{int(time.time())}.{resized['ext']}"
    target = resolve_stored_path(relative)
    if target is None:
        return {"error": "Couldn't upload image"}

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(resized["data"])
    except OSError as e:
        print(f"[STORAGE] Write failed for {relative}: {type(e).__name__}")
        return {"error": "Couldn't upload image"}

    signed = create_signed_url(relative)
    if not isinstance(signed, str):
        return signed

    expires_at = datetime.fromtimestamp(time.time() + SIGNED_URL_SECONDS, tz=timezone.utc).isoformat()

    if IS_DEV:
        print(f"[STORAGE] Stored {relative} ({len(resized['data'])} bytes, source {filename!r})")

    return {"url": signed, "expires_at": expires_at, "path": relative}
