"""Фикстуры для тестов: хранилище смен в памяти, источник платежей, часы, клиент API."""
import asyncio
import os
from datetime import datetime, timedelta
from decimal import Decimal

# До импорта приложения: без Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from fastapi.testclient import TestClient

from cashdesk.config import Settings
from cashdesk.core.errors import AlreadyActive, AlreadyClosed, NotActive
from cashdesk.models import PaymentStatus, SessionStatus
from cashdesk.schemas.payment import PaymentRecord
from cashdesk.schemas.pos_session import PosSessionUser
from cashdesk.services.auth_service import create_access_token
from cashdesk.services.pos_session_service import PosSessionService

OPENED_AT = datetime(2026, 3, 14, 9, 0, 0)


class InMemorySessionStore:
    """Хранилище с тем же контрактом, что SqlSessionStore."""

    def __init__(self):
        self.sessions = {}

    async def find_active(self):
        return next((s for s in self.sessions.values() if s.status == SessionStatus.ACTIVE), None)

    async def find_last_closed(self):
        closed = [s for s in self.sessions.values() if s.status == SessionStatus.CLOSED]
        return max(closed, key=lambda s: s.closed_at) if closed else None

    async def get(self, session_id):
        return self.sessions.get(session_id)

    async def insert(self, session):
        if await self.find_active() is not None:
            raise AlreadyActive()
        self.sessions[session.id] = session

    async def replace(self, session_id, session):
        current = self.sessions.get(session_id)
        if current is None or current.status != SessionStatus.ACTIVE:
            raise AlreadyClosed(session_id)
        # Как в SQL: журнал X-отчётов хранится отдельно и при закрытии не перезаписывается
        self.sessions[session_id] = session.model_copy(update={"x_tickets": current.x_tickets})

    async def append_x_ticket(self, session_id, entry):
        current = self.sessions.get(session_id)
        if current is None or current.status != SessionStatus.ACTIVE:
            raise NotActive(session_id)
        self.sessions[session_id] = current.model_copy(
            update={"x_tickets": current.x_tickets + (entry,), "updated_at": entry.generated_at}
        )

    async def list_sessions(self, status=None, limit=50):
        rows = [s for s in self.sessions.values() if status is None or s.status == status]
        return sorted(rows, key=lambda s: s.opened_at, reverse=True)[:limit]


class ListPaymentSource:
    """Отдаёт все платежи как есть, отбор по времени и статусу делает агрегатор."""

    def __init__(self):
        self.payments = []

    def add(self, method, amount, minutes=5, status=PaymentStatus.PAID, currency="EUR"):
        self.payments.append(
            PaymentRecord(
                method=method,
                amount=Decimal(str(amount)),
                currency=currency,
                status=status,
                created_at=OPENED_AT + timedelta(minutes=minutes),
            )
        )

    async def find_paid_since(self, since):
        return list(self.payments)


class FakeClock:
    def __init__(self, now=OPENED_AT):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def test_settings():
    return Settings(brand_name="Test Shop")


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def payments():
    return ListPaymentSource()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(store, payments, test_settings, clock):
    return PosSessionService(store=store, payments=payments, settings=test_settings, clock=clock)


@pytest.fixture
def operator():
    return PosSessionUser(user_id="1", user_login="alice", user_alias="Alice")


@pytest.fixture
def closer():
    return PosSessionUser(user_id="2", user_login="bob")


@pytest.fixture
def client(service):
    """Тестовый клиент приложения, смены хранятся в памяти."""
    from cashdesk.api.pos import get_session_service
    from cashdesk.main import app

    app.dependency_overrides[get_session_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token(subject=1, role="ROLE_CASHIER", login="alice", alias="Alice")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager_headers():
    token = create_access_token(subject=3, role="ROLE_MANAGER", login="carol")
    return {"Authorization": f"Bearer {token}"}
