from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Enum, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from payu_bridge.utils.db import Base
from payu_bridge.utils.enums import ApplicationStatus, RecordOrigin


class Application(Base):
    __tablename__ = "applications"

    # SQLite only autoincrements a plain INTEGER primary key.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    transaction_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)

    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    dob: Mapped[str | None] = mapped_column(String(32), nullable=True)
    heard_from: Mapped[str | None] = mapped_column(String(255), nullable=True)
    preferred_contact: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    course: Mapped[str | None] = mapped_column(String(128), nullable=True)
    course_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    resume_urls: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    payment_mode: Mapped[str | None] = mapped_column(String(64), nullable=True)

    gateway_transaction_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    raw_callback_payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin: Mapped[RecordOrigin] = mapped_column(
        Enum(RecordOrigin, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    callback_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    status_conflict_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    last_conflict_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
