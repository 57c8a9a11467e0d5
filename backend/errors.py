"""
backend/errors.py

Domain errors that surface to clients as {"error": {"message": ...}}.

Bulk dialogs read error.message and keep the dialog open, so every failure a
user can correct goes through ShelfError instead of HTTPException.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.config import IS_DEV


class ShelfError(Exception):
    """A user-facing failure with a short message."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ShelfError):
    status_code = 404


class BulkActionError(ShelfError):
    """Raised by bulk actions when the selection or parameters are invalid."""


def error_payload(message: str) -> dict:
    return {"error": {"message": message}}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShelfError)
    async def shelf_error_handler(request: Request, exc: ShelfError):
        if IS_DEV:
            print(f"[ERROR] {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc.message))
