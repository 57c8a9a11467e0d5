# ---------------------------------------------------------
# backend/main.py
# Shelf - Asset Tracking Backend
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLite
# - /api/assets                      : list / create / detail / update / delete
# - /api/assets/{id}/notes           : add / delete notes
# - /api/assets/{id}/main-image      : upload main image (resized, signed URL)
# - /api/assets/bulk-update-<kind>   : bulk actions on selected assets
# - /api/categories|locations|tags|team-members
# - /api/dashboard                   : newest assets, custodians, monthly counts
# ---------------------------------------------------------

from __future__ import annotations

from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import CORS_ORIGINS, IS_PROD
from backend.errors import register_exception_handlers
from backend.migrate import run_migrations
from backend.routes_assets import router as assets_router, images_router
from backend.routes_bulk import router as bulk_router
from backend.routes_catalog import router as catalog_router
from backend.routes_dashboard import router as dashboard_router


def create_app() -> FastAPI:
    app = FastAPI(title="Shelf Backend", version="0.1")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Bulk routes before item routes; catalog last (its /api/{segment} is generic)
    app.include_router(bulk_router)
    app.include_router(assets_router)
    app.include_router(images_router)
    app.include_router(dashboard_router)
    app.include_router(catalog_router)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    return app


run_migrations()
app = create_app()
