import os

# must be set before dealerhub.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["API_KEY_PEPPER"] = "test-pepper"
os.environ["INTERNAL_ADMIN_KEY"] = "test-internal-admin"
os.environ["INGEST_API_KEY"] = "test-ingest-token"
os.environ["INGEST_PARTNER_ID"] = "pm_ingest_test"
os.environ["PROMOTION_WEBHOOK_URL"] = ""
os.environ["ANALYSIS_WEBHOOK_URL"] = ""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from dealerhub.core.db import get_db
from dealerhub.main import app
from dealerhub.models import Base
from dealerhub.services.http_client import HubHttpClient, get_http_client

from tests.fixtures_seed import (  # noqa: F401
    seed_admin,
    seed_dealer,
    seed_other_dealer,
    seed_ingest_partner,
    seed_tipper,
)


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest_asyncio.fixture
async def async_engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine):
    session_factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


class WebhookStub:
    """Scripted upstream for promotion / analysis webhooks."""

    def __init__(self):
        self.calls: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict = {}
        self.timeout = False

    def respond(self, status_code: int, body: dict | None = None) -> None:
        self.status_code = status_code
        self.body = body or {}
        self.timeout = False

    def time_out(self) -> None:
        self.timeout = True

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.timeout:
            raise httpx.ReadTimeout("upstream timed out", request=request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def webhook() -> WebhookStub:
    return WebhookStub()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, webhook: WebhookStub):
    """
    HTTP client that uses the test DB session and the scripted webhook via dependency overrides.
    """
    async def _override_get_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    async def _override_http_client():
        http = HubHttpClient(timeout_seconds=1.0, transport=httpx.MockTransport(webhook.handler))
        try:
            yield http
        finally:
            await http.aclose()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_http_client] = _override_http_client

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
