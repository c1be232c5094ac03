"""FastAPI application factory.

Assembles CORS and all API routers.
This module is the authoritative app object — app/main.py re-exports it.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes.health import router as health_router
from app.api.routes.organizations import router as organizations_router
from app.api.routes.reports import router as reports_router
from app.api.routes.review import router as review_router
from app.api.routes.templates import router as templates_router
from app.core.logging import setup_logging
from app.core.settings import get_settings
from app.db.session import get_session_factory
from app.templates.registry import TemplateRegistry
from app.templates.store import sync_builtin_templates

logger = logging.getLogger(__name__)


def _sync_templates() -> None:
    """Upsert the YAML built-in templates into the report store."""
    registry = TemplateRegistry.default()
    db = get_session_factory()()
    try:
        sync_builtin_templates(db, registry)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    if get_settings().sync_templates_on_startup:
        _sync_templates()
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS: restrict origins in production via a reverse proxy
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(reports_router)
app.include_router(templates_router)
app.include_router(review_router)
app.include_router(organizations_router)
