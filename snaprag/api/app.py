"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from snaprag import __version__
from snaprag.api.error_handlers import register_error_handlers
from snaprag.api.routes import router
from snaprag.config import Settings, get_settings
from snaprag.services import Services, build_services

logger = structlog.get_logger()


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the API. ``services`` defaults to clients wired from ``settings``."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            app.state.services = build_services(settings)
        await app.state.services.store.create_all()
        logger.info("startup", environment=settings.ENVIRONMENT)

        yield

        await app.state.services.store.dispose()
        logger.info("shutdown")

    app = FastAPI(
        title="snaprag",
        description="Hybrid semantic and tag search over personal media content",
        version=__version__,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.services = services

    origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    return app
