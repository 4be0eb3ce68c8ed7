from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles

from jplens_gateway.api.auth import AuthConfig, BasicAuthMiddleware
from jplens_gateway.api.limits import UploadLimitMiddleware
from jplens_gateway.api.routes import error_response, router
from jplens_gateway.core.config import Settings, settings as default_settings
from jplens_gateway.core.logging import configure_logging


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)
    app = FastAPI(title="JPLens Gateway", version="0.1.0")
    app.state.settings = settings
    app.include_router(router)

    # Middleware added last runs first: auth, then the size guard.
    app.add_middleware(UploadLimitMiddleware, max_upload_bytes=settings.max_upload_bytes)
    auth = AuthConfig.from_settings(settings)
    app.add_middleware(BasicAuthMiddleware, config=auth)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return error_response(400, "Invalid request", str(exc.errors()))

    # Browser UI; mounted last so it never shadows the API routes.
    if settings.static_dir:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    @app.on_event("startup")
    async def _startup() -> None:
        logging.getLogger(__name__).info(
            "startup",
            extra={
                "extraction_service_url": settings.extraction_service_url,
                "enrichment_service_url": settings.enrichment_service_url,
                "downstream_mode": settings.downstream_mode,
                "auth_enabled": auth.enabled,
            },
        )

    return app


app = create_app()
