"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import admin, bids, health
from app.core.config import Settings, settings as default_settings
from app.core.errors import register_error_handlers
from app.core.logging import setup_logging
from app.db.session import Database

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API. When ``database`` is given the caller owns its lifecycle;
    otherwise one is opened at startup from DATABASE_URL and disposed at shutdown.
    """
    cfg = settings or default_settings
    setup_logging(cfg.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle: database pool management."""
        owned = database is None
        db_handle = database or Database(cfg.database_url)
        app.state.database = db_handle
        logger.info("Database pool opened (%s)", db_handle.engine.dialect.name)
        try:
            yield
        finally:
            if owned:
                db_handle.close()
                logger.info("Database pool closed")

    app = FastAPI(
        title=cfg.app_name,
        version="1.0.0",
        lifespan=lifespan,
    )
    if database is not None:
        # Usable before startup runs (e.g. TestClient without a context manager)
        app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins_list,
        allow_credentials="*" not in cfg.allowed_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(bids.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"name": cfg.app_name, "status": "running"}

    return app


app = create_app()
