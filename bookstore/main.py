"""
FastAPI Application Entry Point

Main application module that configures and starts the FastAPI server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from bookstore.config import settings
from bookstore.api.errors import register_exception_handlers
from bookstore.api.routes import books, cache, health, idempotency, users
from bookstore.core.idempotency.sql_store import SqlResultStore
from bookstore.core.maintenance import MaintenanceScheduler
from bookstore.db.session import async_session_maker, close_db, init_db
from bookstore.monitoring.logging import RequestLoggingMiddleware, setup_logging
from bookstore.monitoring.metrics import initialize_metrics


def create_maintenance() -> MaintenanceScheduler:
    """Low-stock checks always run. Purging is only needed when records live in SQL."""
    store = SqlResultStore(async_session_maker) if settings.idempotency_store == "sql" else None
    return MaintenanceScheduler(store, session_factory=async_session_maker)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    setup_logging()
    initialize_metrics(settings.app_name, settings.app_version)
    await init_db()
    maintenance = create_maintenance()
    maintenance.start()

    yield

    # Shutdown
    maintenance.shutdown()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Book catalog and user accounts with idempotent writes",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Idempotent-Replayed", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    # Mount Prometheus metrics
    if settings.prometheus_enabled:
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(
        books.router,
        prefix=f"{settings.api_v1_prefix}/books",
        tags=["Books"],
    )
    app.include_router(
        users.router,
        prefix=f"{settings.api_v1_prefix}/users",
        tags=["Users"],
    )
    app.include_router(
        idempotency.router,
        prefix=f"{settings.api_v1_prefix}/idempotency",
        tags=["Idempotency"],
    )
    app.include_router(
        cache.router,
        prefix=f"{settings.api_v1_prefix}/cache",
        tags=["Cache"],
    )

    return app


# Application instance
app = create_app()
