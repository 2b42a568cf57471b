from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.medverify.api.v1.routes_clinicians import router as clinicians_router_v1
from src.medverify.api.v1.routes_dashboard import router as dashboard_router_v1
from src.medverify.api.v1.routes_system import router as system_router_v1
from src.medverify.api.v1.routes_webhook import router as webhook_router_v1
from src.medverify.config import Settings, settings as default_settings
from src.medverify.container import ServiceContainer, build_container
from src.medverify.errors import MedVerifyError

logger = logging.getLogger("medverify")


def create_app(
    container: Optional[ServiceContainer] = None,
    *,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API application.

    When ``container`` is given (tests) it is installed immediately. Otherwise
    the container is built from ``settings`` at startup and closed at shutdown.
    """

    settings = container.settings if container is not None else (settings or default_settings)
    app = FastAPI(title="MedVerify WhatsApp Query API")
    app.state.container = container

    @app.on_event("startup")
    async def on_startup() -> None:
        if app.state.container is None:
            app.state.container = build_container(settings)
            logger.info("Service container initialised (sql_repos=%s)", settings.use_sql_repos)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if app.state.container is not None:
            app.state.container.close()

    @app.exception_handler(MedVerifyError)
    async def medverify_error_handler(request: Request, exc: MedVerifyError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "detail": {"fields": fields}},
        )

    # CORS configuration – permissive by default for development. Tighten via
    # CORS_ALLOW_ORIGINS in production deployments.
    allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict:
        """Basic liveness probe for the API root."""
        return {"status": "ok"}

    # Versioned API routers
    app.include_router(system_router_v1, prefix="/api/v1")
    app.include_router(webhook_router_v1, prefix="/api/v1")
    app.include_router(dashboard_router_v1, prefix="/api/v1")
    app.include_router(clinicians_router_v1, prefix="/api/v1")

    return app


app = create_app()
