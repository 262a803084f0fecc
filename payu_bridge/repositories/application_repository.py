import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payu_bridge.models.application import Application
from payu_bridge.utils.enums import ApplicationStatus, RecordOrigin
from payu_bridge.utils.errors import StoreError

logger = logging.getLogger(__name__)

CALLBACK_FIELDS = frozenset({"gateway_transaction_reference", "raw_callback_payload", "error_message"})


class ApplicationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.exception("Store operation failed. operation=%s", operation)
            await self.db.rollback()
            raise StoreError(f"{operation} failed") from exc

    def _insert(self):
        # Both dialects expose the same ON CONFLICT builder.
        if self.db.bind.dialect.name == "sqlite":
            return sqlite_insert(Application)
        return pg_insert(Application)

    async def insert_pending(self, **fields: Any) -> Application:
        application = Application(status=ApplicationStatus.PENDING, origin=RecordOrigin.INITIATION, **fields)
        async with self._guard("insert_pending"):
            self.db.add(application)
            await self.db.commit()
            await self.db.refresh(application)
        return application

    async def find_by_transaction_id(self, transaction_id: str) -> Application | None:
        # populate_existing: conditional updates bypass the identity map.
        stmt = (
            select(Application)
            .where(Application.transaction_id == transaction_id)
            .execution_options(populate_existing=True)
        )
        async with self._guard("find_by_transaction_id"):
            return (await self.db.execute(stmt)).scalar_one_or_none()

    async def create_if_not_exists(self, *, transaction_id: str, **fields: Any) -> bool:
        # INSERT ... ON CONFLICT DO NOTHING: exactly one concurrent creator wins.
        insert_stmt = (
            self._insert()
            .values(transaction_id=transaction_id, **fields)
            .on_conflict_do_nothing(index_elements=["transaction_id"])
            .returning(Application.id)
        )
        async with self._guard("create_if_not_exists"):
            inserted_id = (await self.db.execute(insert_stmt)).scalar_one_or_none()
            await self.db.commit()
        return inserted_id is not None

    async def compare_and_set_status(
        self,
        transaction_id: str,
        *,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        patch: dict[str, Any],
        now: datetime,
    ) -> bool:
        values = self._callback_values(patch)
        if new.is_terminal:
            values["completed_at"] = now
        stmt = (
            update(Application)
            .where(Application.transaction_id == transaction_id, Application.status == expected)
            .values(status=new, callback_count=Application.callback_count + 1, **values)
            .returning(Application.id)
            .execution_options(synchronize_session=False)
        )
        async with self._guard("compare_and_set_status"):
            updated_id = (await self.db.execute(stmt)).scalar_one_or_none()
            await self.db.commit()
        return updated_id is not None

    async def overwrite_callback_fields(
        self, transaction_id: str, *, status: ApplicationStatus, patch: dict[str, Any]
    ) -> bool:
        # Replays rewrite the same values; the status guard keeps this from racing a transition.
        stmt = (
            update(Application)
            .where(Application.transaction_id == transaction_id, Application.status == status)
            .values(callback_count=Application.callback_count + 1, **self._callback_values(patch))
            .returning(Application.id)
            .execution_options(synchronize_session=False)
        )
        async with self._guard("overwrite_callback_fields"):
            updated_id = (await self.db.execute(stmt)).scalar_one_or_none()
            await self.db.commit()
        return updated_id is not None

    async def record_status_conflict(self, transaction_id: str, *, now: datetime) -> None:
        stmt = (
            update(Application)
            .where(Application.transaction_id == transaction_id)
            .values(
                status_conflict_count=Application.status_conflict_count + 1,
                callback_count=Application.callback_count + 1,
                last_conflict_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._guard("record_status_conflict"):
            await self.db.execute(stmt)
            await self.db.commit()

    async def get_or_create_placeholder(self, transaction_id: str) -> Application:
        await self.create_if_not_exists(
            transaction_id=transaction_id,
            status=ApplicationStatus.PENDING,
            origin=RecordOrigin.LOOKUP,
        )
        application = await self.find_by_transaction_id(transaction_id)
        if application is None:
            raise StoreError("placeholder disappeared after insert")
        return application

    @staticmethod
    def _callback_values(patch: dict[str, Any]) -> dict[str, Any]:
        unknown = set(patch) - CALLBACK_FIELDS
        if unknown:
            raise ValueError(f"callbacks may not modify: {sorted(unknown)}")
        return dict(patch)
