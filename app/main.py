from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.accounts import router as accounts_router
from app.api import router, uploads_router
from app.registry import router as registry_router
from logging_config import configure_logging
from services.container import build_default_container
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    container = build_default_container()
    settings = get_settings()
    if settings.admin_email and settings.admin_password:
        admin = container.auth.ensure_admin(settings.admin_email, settings.admin_password)
        logger.info("Admin account ready", extra={"user_id": admin.id})
    try:
        yield
    finally:
        build_default_container.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="AirWatch",
        description="Indoor air-quality monitoring and compliance reporting.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    app.include_router(router)
    app.include_router(registry_router)
    app.include_router(accounts_router)
    app.include_router(uploads_router)
    return app


app = create_app()
