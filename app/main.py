import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api_routers.v1 import api_router
from app.features.health.routes.health import router as health_router
from app.features.scan.services.adapters.base import AuditAdapters, build_default_adapters
from app.features.scan.services.orchestration.orchestrator import ScanOrchestrator
from app.features.scan.services.orchestration.snapshots import SnapshotStore
from app.features.scan.services.registry.scan_registry import ScanRegistry
from app.platform.config import Settings, settings as default_settings
from app.platform.exceptions import add_exception_handlers
from app.platform.logger import LOG_FORMAT, get_logger

# Configure logging to show INFO level messages
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

logger = get_logger(__name__)

APP_VERSION = "1.0.0"


def create_app(
    adapters: Optional[AuditAdapters] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API. The scan registry and orchestrator live for the lifetime
    of the application and are kept on app.state.
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        registry = ScanRegistry()
        orchestrator = ScanOrchestrator(
            registry=registry,
            adapters=adapters or build_default_adapters(),
            snapshots=SnapshotStore(config.SNAPSHOT_DIR),
            config=config,
        )
        app.state.scan_registry = registry
        app.state.scan_orchestrator = orchestrator
        logger.info(f"{config.APP_NAME} ready to receive scan requests at POST {config.API_V1_PREFIX}/scan")
        try:
            yield
        finally:
            await orchestrator.shutdown()

    app = FastAPI(
        title=config.APP_NAME,
        description="Audits a website for performance, SEO, accessibility and security",
        version=APP_VERSION,
        debug=config.DEBUG,
        lifespan=lifespan,
    )

    # Root endpoint for basic info
    @app.get("/", tags=["Info"])
    def root():
        return {
            "app_name": config.APP_NAME,
            "description": "Website performance, SEO, accessibility and security auditor.",
            "version": APP_VERSION,
            "docs_url": "/docs",
            "api_base": config.API_V1_PREFIX,
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(api_router, prefix=config.API_V1_PREFIX)

    return app


app = create_app()
