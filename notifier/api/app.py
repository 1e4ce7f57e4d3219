"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from notifier import __version__
from notifier.api import routes_ai, routes_notifications
from notifier.api.common import get_services, ok
from notifier.api.middleware import install_error_handlers, install_middleware
from notifier.services import Services

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "notifications": [
        "GET /notifications - List notifications",
        "GET /notifications/paginate - Paginated search by name or email",
        "GET /notifications/{id} - Get by id (marks it read)",
        "POST /notifications - Create a notification",
        "PUT /notifications/{id}/read - Mark as read",
    ],
    "ai": [
        "POST /ai/generate - Free text generation",
        "POST /ai/generate-notification - Draft a notification",
        "POST /ai/summarize-notifications - Summarize notifications",
        "POST /ai/process-unread - Digest of unread notifications, marking urgent ones read",
        "POST /ai/analyze-unread - Digest of unread notifications without changes",
        "GET /ai/daily-digest - Daily digest",
        "GET /ai/models - List available models",
    ],
    "system": [
        "GET /health - API status",
        "GET / - API information",
    ],
}


def create_app(services: Services) -> FastAPI:
    """Build the API around ``services``; the store is opened and closed with the app lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.start()
        try:
            yield
        finally:
            await services.stop()

    app = FastAPI(
        title="Notifier API",
        description="Notification management with AI digests",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    install_error_handlers(app)
    install_middleware(app, services.config.api)

    app.include_router(routes_notifications.router)
    app.include_router(routes_ai.router)

    @app.get("/")
    async def root() -> JSONResponse:
        return ok({
            "name": "Notifier API",
            "description": "Notification management API with integrated AI",
            "version": __version__,
            "endpoints": ENDPOINTS,
        })

    @app.get("/health")
    async def health(services: Services = Depends(get_services)) -> JSONResponse:
        return ok({
            "status": "ok",
            "timestamp": services.clock().isoformat(),
            "version": __version__,
            "services": ["notifications", "ai", "database"],
        })

    return app
