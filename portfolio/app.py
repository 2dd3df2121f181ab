"""
FastAPI application entry point for the portfolio backend.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from portfolio.admin import router as admin_router
from portfolio.config import DEFAULT_SESSION_SECRET, get_settings
from portfolio.dependencies import get_identity_provider
from portfolio.guard import guard_admin_request
from portfolio.routes import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    if settings.session_secret == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET is not set; using the development default")

    app = FastAPI(title="Portfolio Backend (FastAPI)", version="0.1.0")
    app.state.templates = Jinja2Templates(
        directory=str(Path(__file__).resolve().parent / "templates")
    )

    @app.middleware("http")
    async def _session_guard(request: Request, call_next):
        return await guard_admin_request(
            request,
            call_next,
            identity=get_identity_provider(),
        )

    # Added last so it wraps the guard and the session is already decoded.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        https_only=settings.session_https_only,
        same_site="lax",
    )

    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(admin_router)
    return app


app = create_app()
