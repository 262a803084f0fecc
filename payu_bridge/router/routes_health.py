import asyncio
import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from payu_bridge.dto.health import HealthResponse
from payu_bridge.utils import db as db_core
from payu_bridge.utils.config import settings
from payu_bridge.utils.time import utcnow

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    # Callbacks cannot be reconciled without the store, so report it separately.
    try:
        await asyncio.wait_for(db_core.check_db_connection(), timeout=settings.db_operation_timeout_seconds)
    except (asyncio.TimeoutError, SQLAlchemyError, OSError):
        logger.warning("Health check could not reach the database", exc_info=True)
        return HealthResponse(status="DEGRADED", database="disconnected", current_time=utcnow())
    return HealthResponse(status="HEALTHY", database="connected", current_time=utcnow())
