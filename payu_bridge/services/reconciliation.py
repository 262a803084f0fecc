import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from payu_bridge.models.application import Application
from payu_bridge.repositories.application_repository import ApplicationRepository
from payu_bridge.services.signature import CallbackVerifier
from payu_bridge.utils.canonical import format_amount
from payu_bridge.utils.enums import ApplicationStatus, ReconciliationOutcome, RecordOrigin
from payu_bridge.utils.errors import AmountMismatchError, AuthenticationError, StoreError, ValidationError
from payu_bridge.utils.time import utcnow

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class ReconciliationResult:
    transaction_id: str
    status: ApplicationStatus
    outcome: ReconciliationOutcome


def _optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def callback_patch(fields: Mapping[str, Any], target: ApplicationStatus) -> dict[str, Any]:
    error_message = None
    if target is not ApplicationStatus.SUCCESS:
        error_message = _optional(fields.get("error_Message")) or _optional(fields.get("error"))
    return {
        "gateway_transaction_reference": _optional(fields.get("mihpayid")),
        "raw_callback_payload": {name: value for name, value in fields.items()},
        "error_message": error_message,
    }


def redacted(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {name: value for name, value in fields.items() if name != "hash"}


class ReconciliationEngine:
    """Applies verified PayU callbacks to stored applications.

    Every write is a single conditional statement keyed on transaction_id, so
    concurrent or repeated deliveries of the same callback converge on one row
    and one terminal status. The first terminal status recorded wins; a later
    callback reporting a different terminal status is logged and counted but
    never overwrites it.
    """

    def __init__(
        self,
        repository: ApplicationRepository,
        verifier: CallbackVerifier,
        amount_tolerance: Decimal = AMOUNT_TOLERANCE,
    ):
        self.repository = repository
        self.verifier = verifier
        self.amount_tolerance = amount_tolerance

    async def apply_callback(self, fields: Mapping[str, Any]) -> ReconciliationResult:
        transaction_id = _optional(fields.get("txnid"))
        if transaction_id is None:
            raise ValidationError("txnid is required")

        if not self.verifier.verify(fields):
            logger.warning(
                "Rejected PayU callback with invalid hash. txnid=%s status=%s payload=%s",
                transaction_id,
                fields.get("status"),
                redacted(fields),
            )
            raise AuthenticationError("Invalid hash")

        target = ApplicationStatus.from_gateway(fields.get("status"))
        # The verifier already parsed the amount, so this cannot fail here.
        callback_amount = Decimal(format_amount(fields["amount"]))
        patch = callback_patch(fields, target)
        now = utcnow()

        application = await self.repository.find_by_transaction_id(transaction_id)
        if application is None:
            created = await self.repository.create_if_not_exists(
                transaction_id=transaction_id,
                status=target,
                origin=RecordOrigin.CALLBACK,
                amount=callback_amount,
                full_name=_optional(fields.get("firstname")),
                email=_optional(fields.get("email")),
                phone=_optional(fields.get("phone")),
                course=_optional(fields.get("productinfo")),
                callback_count=1,
                completed_at=now if target.is_terminal else None,
                **patch,
            )
            if created:
                logger.warning(
                    "Verified callback for unknown transaction; created record from callback. txnid=%s status=%s",
                    transaction_id,
                    target,
                )
                return ReconciliationResult(transaction_id, target, ReconciliationOutcome.CREATED)
            application = await self._reload(transaction_id)

        self._check_amount(application, callback_amount)

        if application.status == ApplicationStatus.PENDING and target.is_terminal:
            applied = await self.repository.compare_and_set_status(
                transaction_id,
                expected=ApplicationStatus.PENDING,
                new=target,
                patch=patch,
                now=now,
            )
            if applied:
                logger.info("Applied PayU callback. txnid=%s status=%s", transaction_id, target)
                return ReconciliationResult(transaction_id, target, ReconciliationOutcome.APPLIED)
            # Another delivery moved the row first.
            application = await self._reload(transaction_id)

        if application.status == target:
            replayed = await self.repository.overwrite_callback_fields(transaction_id, status=target, patch=patch)
            if replayed:
                logger.info("Replayed PayU callback. txnid=%s status=%s", transaction_id, target)
                return ReconciliationResult(transaction_id, target, ReconciliationOutcome.REPLAYED)
            application = await self._reload(transaction_id)

        await self.repository.record_status_conflict(transaction_id, now=now)
        if target is ApplicationStatus.PENDING:
            logger.info(
                "Ignoring pending callback for settled transaction. txnid=%s stored_status=%s",
                transaction_id,
                application.status,
            )
            return ReconciliationResult(transaction_id, application.status, ReconciliationOutcome.IGNORED)

        logger.warning(
            "Conflicting terminal callback; keeping first terminal status. txnid=%s stored_status=%s "
            "callback_status=%s",
            transaction_id,
            application.status,
            target,
        )
        return ReconciliationResult(transaction_id, application.status, ReconciliationOutcome.CONFLICT)

    async def _reload(self, transaction_id: str) -> Application:
        application = await self.repository.find_by_transaction_id(transaction_id)
        if application is None:
            raise StoreError("application disappeared after conflict check")
        return application

    def _check_amount(self, application: Application, callback_amount: Decimal) -> None:
        if application.amount is None:
            return
        if abs(Decimal(application.amount) - callback_amount) > self.amount_tolerance:
            logger.warning(
                "Callback amount differs from initiated amount. txnid=%s stored=%s callback=%s",
                application.transaction_id,
                application.amount,
                callback_amount,
            )
            raise AmountMismatchError(
                application.transaction_id, f"{application.amount:.2f}", f"{callback_amount:.2f}"
            )
