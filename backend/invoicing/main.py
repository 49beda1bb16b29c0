import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from invoicing.config import Settings, get_settings
from invoicing.db import create_database, create_schema
from invoicing.error_handlers import register_error_handlers
from invoicing.observability import setup_logging
from invoicing.routers import (
    auth, clients, companies, dashboard, expenses, health, invoices, payments, projects, tenants,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)
    if settings.auto_create_schema:
        create_schema(settings.database_url)
    await app.state.database.connect()
    logger.info("invoicing API started")
    try:
        yield
    finally:
        await app.state.database.disconnect()
        logger.info("invoicing API stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Invoicing API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = create_database(settings.database_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(tenants.router)
    app.include_router(auth.router)
    app.include_router(companies.router)
    app.include_router(clients.router)
    app.include_router(projects.router)
    app.include_router(invoices.router)
    app.include_router(payments.router)
    app.include_router(expenses.router)
    app.include_router(dashboard.router)
    return app


app = create_app()
