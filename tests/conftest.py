import asyncio
import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from payu_bridge.models.application import Application
from payu_bridge.services.signature import CallbackVerifier, GatewayCredentials
from payu_bridge.utils import db as db_core
from payu_bridge.utils.config import settings

if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'payu_bridge_test.db'}",
)


@pytest.fixture(scope="session")
def test_engine():
    # NullPool avoids cross-event-loop connection reuse between TestClient and asyncio.run.
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    if engine.dialect.name == "sqlite":
        db_core.use_immediate_transactions(engine)
    db_core.engine = engine
    db_core.SessionLocal = async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )
    settings.database_url = TEST_DATABASE_URL
    return engine


@pytest.fixture(autouse=True)
def setup_database(test_engine):
    async def _setup() -> None:
        async with test_engine.begin() as conn:
            await conn.run_sync(db_core.Base.metadata.drop_all)
            await conn.run_sync(db_core.Base.metadata.create_all)

    async def _teardown() -> None:
        async with test_engine.begin() as conn:
            await conn.run_sync(db_core.Base.metadata.drop_all)

    asyncio.run(_setup())
    yield
    asyncio.run(_teardown())
    asyncio.run(test_engine.dispose())


@pytest.fixture
def client():
    settings.db_auto_create = False
    from payu_bridge.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def credentials() -> GatewayCredentials:
    return GatewayCredentials.from_settings(settings)


@pytest.fixture
def make_callback(credentials):
    """Builds the form PayU posts back, hashed the way the gateway hashes it."""
    verifier = CallbackVerifier(credentials)

    def _make(txnid: str, status: str = "success", **overrides) -> dict[str, str]:
        fields = {
            "txnid": txnid,
            "status": status,
            "amount": "50000.00",
            "firstname": "Jane Doe",
            "email": "jane@x.com",
            "productinfo": "course1",
            "mihpayid": f"mih{txnid}",
            "key": credentials.key,
        }
        fields.update(overrides)
        fields["hash"] = verifier.expected_hash(fields)
        return fields

    return _make


@pytest.fixture
def jane_application() -> dict:
    return {
        "personalInfo": {
            "fullName": "Jane Doe",
            "email": "jane@x.com",
            "phone": "9999999999",
            "city": "Pune",
            "dob": "2000-01-01",
        },
        "course": "course1",
    }


@pytest.fixture
def load_application():
    async def _load(transaction_id: str) -> Application | None:
        async with db_core.SessionLocal() as db:
            return (await db.execute(
                select(Application).where(Application.transaction_id == transaction_id)
            )).scalar_one_or_none()

    return lambda transaction_id: asyncio.run(_load(transaction_id))


@pytest.fixture
def count_applications():
    async def _count(transaction_id: str) -> int:
        async with db_core.SessionLocal() as db:
            return (await db.execute(
                select(func.count()).select_from(Application).where(Application.transaction_id == transaction_id)
            )).scalar_one()

    return lambda transaction_id: asyncio.run(_count(transaction_id))
