"""Pytest configuration and fixtures."""

import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from uuid import uuid4

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["QUEUE_WORKER_ENABLED"] = "false"
os.environ["SERVICE_API_KEY"] = "test-service-key"
os.environ["VAPID_PUBLIC_KEY"] = "test-vapid-public-key"

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.exceptions import PushSendFailure
from domain.entities.notification import PushPayload
from domain.entities.push_subscription import PushSubscription
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import AuthenticatedUser
from infrastructure.database.models import Base
from infrastructure.realtime.signal_bus import InMemoryUnreadSignalBus


# Compile JSONB as JSON for SQLite (used in tests)
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_: Any, compiler: Any, **kw: Any) -> str:
    return "JSON"


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
SERVICE_KEY = "test-service-key"

TEST_USER_ID = uuid4()


class RecordingPushProvider:
    """IPushProvider that records sends and fails on request."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, PushPayload]] = []
        self.failures: dict[str, PushSendFailure] = {}

    def fail(self, endpoint: str, status_code: int | None = 500, gone: bool = False) -> None:
        self.failures[endpoint] = PushSendFailure(
            endpoint, reason="provider error", status_code=status_code, gone=gone
        )

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        failure = self.failures.get(subscription.endpoint)
        if failure is not None:
            raise failure
        self.sent.append((subscription.endpoint, payload))


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def test_user() -> AuthenticatedUser:
    return AuthenticatedUser(id=TEST_USER_ID, email="test@example.com", role="authenticated")


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    return JWTAuthProvider(
        secret_key="test-secret-key",
        algorithm="HS256",
        expire_minutes=30,
    )


@pytest.fixture
def auth_headers(auth_provider: JWTAuthProvider, test_user: AuthenticatedUser) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_provider.create_token(test_user)}"}


@pytest.fixture
def service_headers() -> dict[str, str]:
    return {"X-Service-Key": SERVICE_KEY}


@pytest.fixture
def push_provider() -> RecordingPushProvider:
    return RecordingPushProvider()


@pytest.fixture
def signal_bus() -> InMemoryUnreadSignalBus:
    return InMemoryUnreadSignalBus()


@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    auth_provider: JWTAuthProvider,
    push_provider: RecordingPushProvider,
    signal_bus: InMemoryUnreadSignalBus,
) -> FastAPI:
    """
    App wired to the in-memory database.

    - Real JWT validation with the test secret
    - Services built on a test UoW factory
    - Push sends recorded instead of sent
    """
    from api.dependencies.auth import get_auth_provider, get_service_api_key
    from api.v1.dependencies import (
        get_notification_service,
        get_subscription_service,
        get_unread_service,
    )
    from domain.services.delivery_dispatcher import DeliveryDispatcher
    from domain.services.notification_service import NotificationService
    from domain.services.subscription_service import SubscriptionService
    from domain.services.unread_service import UnreadCounterService
    from infrastructure.database.session import get_async_session
    from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
    from main import create_app

    app = create_app()

    def test_uow_factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    dispatcher = DeliveryDispatcher(
        test_uow_factory,
        push_provider=push_provider,
        unread_signals=signal_bus,
    )
    # One shared SQLite connection: keep recipients sequential.
    notification_service = NotificationService(test_uow_factory, dispatcher=dispatcher, concurrency=1)
    unread_service = UnreadCounterService(test_uow_factory, unread_signals=signal_bus)
    subscription_service = SubscriptionService(
        test_uow_factory,
        application_server_key="test-vapid-public-key",
        timeout_seconds=5.0,
    )

    async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_service_api_key] = lambda: SERVICE_KEY
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_unread_service] = lambda: unread_service
    app.dependency_overrides[get_subscription_service] = lambda: subscription_service
    app.dependency_overrides[get_async_session] = override_get_async_session
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
