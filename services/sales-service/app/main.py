"""FastAPI application wiring for the installment sales service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import AsyncConnectionPool

from .api.router import api_router
from .config import configure_logging, get_settings
from .container import wire_services
from .errors import install_exception_handlers
from .repository import AccountRepository
from .sales_repository import SalesRepository

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Postgres pool and build services for the app lifecycle."""
    pool = AsyncConnectionPool(settings.database_url, open=False)
    await pool.open()
    app.state.pool = pool
    wire_services(
        app.state,
        accounts=AccountRepository(pool),
        sales=SalesRepository(pool),
        settings=settings,
    )
    logger.info("%s %s started (%s)", settings.app_name, settings.version, settings.environment)
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)

install_exception_handlers(app)
app.include_router(api_router)


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
