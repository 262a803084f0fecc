import logging
from collections.abc import Callable
from decimal import Decimal

from payu_bridge.dto.payment import InitiatePaymentIn, InitiatePaymentOut, PayUParamsOut
from payu_bridge.repositories.application_repository import ApplicationRepository
from payu_bridge.services.signature import GatewayCredentials, RequestSigner
from payu_bridge.utils.canonical import format_amount
from payu_bridge.utils.config import Settings
from payu_bridge.utils.errors import ValidationError
from payu_bridge.utils.ids import generate_transaction_id

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/payu-callback"
SERVICE_PROVIDER = "payu_paisa"


class InitiationService:
    def __init__(
        self,
        repository: ApplicationRepository,
        credentials: GatewayCredentials,
        settings: Settings,
        id_factory: Callable[[], str] = generate_transaction_id,
    ):
        self.repository = repository
        self.credentials = credentials
        self.signer = RequestSigner(credentials)
        self.settings = settings
        self.id_factory = id_factory

    def resolve_amount(self, course: str, requested: str | None) -> str:
        price = self.settings.course_prices.get(course)
        if price is not None:
            if requested is not None and format_amount(requested) != format_amount(price):
                logger.info("Ignoring client amount for priced course. course=%s requested=%s", course, requested)
            return price
        return requested or self.settings.default_amount

    async def initiate(self, request: InitiatePaymentIn) -> InitiatePaymentOut:
        info = request.personal_info
        if info is None:
            raise ValidationError("personalInfo is required")

        transaction_id = self.id_factory()
        amount = self.resolve_amount(request.course, request.amount)

        # The pending row must be durable before the client can reach PayU.
        await self.repository.insert_pending(
            transaction_id=transaction_id,
            amount=Decimal(format_amount(amount)),
            full_name=info.full_name,
            email=info.email,
            phone=info.phone,
            city=info.city,
            dob=info.dob,
            heard_from=info.heard_from,
            preferred_contact=info.preferred_contact,
            course=request.course,
            course_data=request.course_data,
            resume_urls=request.resume_files,
            payment_mode=request.payment_mode,
        )
        logger.info("Created pending application. txnid=%s course=%s amount=%s", transaction_id, request.course, amount)

        callback_url = f"{self.settings.backend_base_url}{CALLBACK_PATH}"
        fields = {
            "key": self.credentials.key,
            "txnid": transaction_id,
            "amount": amount,
            "firstname": info.full_name,
            "email": info.email,
            "phone": info.phone,
            "productinfo": request.course,
            "surl": callback_url,
            "furl": callback_url,
            "service_provider": SERVICE_PROVIDER,
            "udf1": "",
            "udf2": "",
            "udf3": "",
            "udf4": "",
            "udf5": "",
        }
        params = PayUParamsOut(**fields, hash=self.signer.sign(fields))
        return InitiatePaymentOut(payu_params=params, payu_url=self.credentials.payment_url)
