import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payu_bridge.router.routes_health import router as health_router
from payu_bridge.router.routes_payments import router as payments_router
from payu_bridge.utils import db as db_core
from payu_bridge.utils.config import settings
from payu_bridge.utils.logging import configure_logging
from payu_bridge.models.application import Application  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    logger.info("Starting app and validating DB connectivity")
    await asyncio.wait_for(db_core.check_db_connection(), timeout=settings.db_operation_timeout_seconds)
    logger.info("Database connection check successful")
    if settings.db_auto_create:
        await db_core.ensure_tables_exist()
        logger.info("Schema ensure step completed")
    try:
        yield
    finally:
        # Only close pooled DB connections; this does not drop tables.
        await db_core.engine.dispose()


app = FastAPI(title="PayU Bridge", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error. method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Something went wrong"})


app.include_router(health_router)
app.include_router(payments_router)
