from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from payu_bridge.utils.enums import ApplicationStatus, RecordOrigin
from payu_bridge.utils.time import IST


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    transaction_id: str
    status: ApplicationStatus
    amount: Decimal | None
    full_name: str | None
    email: str | None
    phone: str | None
    city: str | None
    dob: str | None
    heard_from: str | None
    preferred_contact: list[str] | None
    course: str | None
    course_data: dict[str, Any] | None
    resume_urls: list[str] | None
    payment_mode: str | None
    gateway_transaction_reference: str | None
    raw_callback_payload: dict[str, Any] | None
    error_message: str | None
    origin: RecordOrigin
    callback_count: int
    status_conflict_count: int
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal | None) -> str | None:
        if value is None:
            return None
        return f"{value:.2f}"

    @field_serializer("created_at", "updated_at", "completed_at", when_used="json")
    def serialize_ist(self, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return value.astimezone(IST)
