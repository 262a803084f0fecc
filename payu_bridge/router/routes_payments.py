import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from payu_bridge.dto.application import ApplicationOut
from payu_bridge.dto.payment import InitiatePaymentIn, InitiatePaymentOut
from payu_bridge.repositories.application_repository import ApplicationRepository
from payu_bridge.services.application_service import ApplicationService
from payu_bridge.services.initiation_service import InitiationService
from payu_bridge.services.reconciliation import ReconciliationEngine
from payu_bridge.services.signature import CallbackVerifier, GatewayCredentials
from payu_bridge.utils.config import settings
from payu_bridge.utils.db import get_db
from payu_bridge.utils.enums import ApplicationStatus
from payu_bridge.utils.errors import AmountMismatchError, AuthenticationError, StoreError, ValidationError

router = APIRouter(prefix="/api", tags=["payments"])
logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_credentials() -> GatewayCredentials:
    return GatewayCredentials.from_settings(settings)


def get_initiation_service(
    db: AsyncSession = Depends(get_db),
    credentials: GatewayCredentials = Depends(get_credentials),
) -> InitiationService:
    return InitiationService(ApplicationRepository(db), credentials, settings)


def get_reconciliation_engine(
    db: AsyncSession = Depends(get_db),
    credentials: GatewayCredentials = Depends(get_credentials),
) -> ReconciliationEngine:
    return ReconciliationEngine(ApplicationRepository(db), CallbackVerifier(credentials))


def get_application_service(db: AsyncSession = Depends(get_db)) -> ApplicationService:
    return ApplicationService(db)


async def _run(operation: str, awaitable: Awaitable[T]) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=settings.db_operation_timeout_seconds)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except AmountMismatchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Amount mismatch") from exc
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid hash") from exc
    except asyncio.TimeoutError as exc:
        logger.exception("%s timed out", operation)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database operation timed out"
        ) from exc
    except StoreError as exc:
        logger.error("%s store error: %s", operation, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database unavailable") from exc


async def _read_callback_fields(request: Request) -> dict[str, str]:
    # PayU posts form-encoded data; JSON is accepted for relays and tests.
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed callback body") from exc
        if not isinstance(body, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed callback body")
        return {str(name): "" if value is None else str(value) for name, value in body.items()}
    form = await request.form()
    return {name: value for name, value in form.items() if isinstance(value, str)}


def _redirect_url(base_url: str, transaction_id: str) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{urlencode({'txnid': transaction_id})}"


@router.post("/payu-initiate", response_model=InitiatePaymentOut, status_code=status.HTTP_200_OK)
async def initiate_payment(
    payload: InitiatePaymentIn,
    service: InitiationService = Depends(get_initiation_service),
) -> InitiatePaymentOut:
    return await _run("initiate", service.initiate(payload))


@router.post("/payu-callback", status_code=status.HTTP_303_SEE_OTHER)
async def payu_callback(
    request: Request,
    reconciler: ReconciliationEngine = Depends(get_reconciliation_engine),
) -> RedirectResponse:
    fields = await _read_callback_fields(request)
    logger.info("PayU callback received. txnid=%s status=%s", fields.get("txnid"), fields.get("status"))
    result = await _run("callback", reconciler.apply_callback(fields))

    if result.status is ApplicationStatus.SUCCESS:
        target = settings.payment_success_url
    else:
        target = settings.payment_failure_url
    return RedirectResponse(_redirect_url(target, result.transaction_id), status_code=status.HTTP_303_SEE_OTHER)


@router.get("/payment-details", response_model=ApplicationOut, status_code=status.HTTP_200_OK)
async def payment_details(
    txnid: str | None = Query(default=None),
    service: ApplicationService = Depends(get_application_service),
) -> ApplicationOut:
    return await _run("payment-details", service.get_payment_details(txnid))
