from sqlalchemy.ext.asyncio import AsyncSession

from payu_bridge.dto.application import ApplicationOut
from payu_bridge.repositories.application_repository import ApplicationRepository
from payu_bridge.utils.errors import ValidationError


class ApplicationService:
    def __init__(self, db: AsyncSession):
        self.repository = ApplicationRepository(db)

    async def get_payment_details(self, transaction_id: str | None) -> ApplicationOut:
        transaction_id = (transaction_id or "").strip()
        if not transaction_id:
            raise ValidationError("txnid is required")
        application = await self.repository.get_or_create_placeholder(transaction_id)
        return ApplicationOut.model_validate(application)
