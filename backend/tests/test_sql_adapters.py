"""SqlSessionStore и SqlPaymentSource на SQLite в памяти."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cashdesk.core.database import Base
from cashdesk.core.errors import AlreadyActive, AlreadyClosed, InvalidInput, JustificationRequired, NotActive
from cashdesk.models import Order, Payment, PaymentMethod, PaymentStatus, SessionStatus
from cashdesk.schemas.money import Money
from cashdesk.schemas.pos_session import ActiveSession, ClosedSession, PosSessionUser, XTicketEntry
from cashdesk.services.payment_source import SqlPaymentSource
from cashdesk.services.pos_session_service import PosSessionService
from cashdesk.services.session_store import SqlSessionStore

OPENED = datetime(2026, 3, 14, 9, 0, 0)
ALICE = PosSessionUser(user_id="1", user_login="alice", user_alias="Alice")


async def _database():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _active(session_id, opened_at=OPENED):
    return ActiveSession(
        id=session_id,
        opened_at=opened_at,
        opened_by=ALICE,
        cash_opening=Money(amount=Decimal("100"), currency="EUR"),
        created_at=opened_at,
        updated_at=opened_at,
    )


def _closed_from(session, closed_at):
    return ClosedSession(
        **session.model_dump(exclude={"status", "updated_at"}),
        updated_at=closed_at,
        closed_at=closed_at,
        closed_by=ALICE,
        cash_closing=Money(amount=Decimal("90"), currency="EUR"),
        cash_closing_theoretical=Money(amount=Decimal("100"), currency="EUR"),
        cash_delta=Money(amount=Decimal("-10"), currency="EUR"),
        cash_delta_justification="short",
    )


def _add_order(db, created_at, order_status, payments):
    order = Order(status=order_status, created_at=created_at)
    db.add(order)
    for method, amount, status in payments:
        order.payments.append(Payment(method=method, amount=Decimal(amount), currency="EUR", status=status))
    return order


def test_insert_and_load_active_session(run):
    async def scenario():
        engine, maker = await _database()
        async with maker() as db:
            store = SqlSessionStore(db)
            await store.insert(_active("s-1"))
            await db.commit()
        async with maker() as db:
            store = SqlSessionStore(db)
            active = await store.find_active()
            loaded = await store.get("s-1")
            missing = await store.get("nope")
        await engine.dispose()
        return active, loaded, missing

    active, loaded, missing = run(scenario())
    assert isinstance(active, ActiveSession)
    assert active.id == "s-1"
    assert loaded.cash_opening == Money(amount=Decimal("100"), currency="EUR")
    assert loaded.opened_by == ALICE
    assert missing is None


def test_second_active_session_violates_unique_index(run):
    async def scenario():
        engine, maker = await _database()
        async with maker() as db:
            await SqlSessionStore(db).insert(_active("s-1"))
            await db.commit()
        async with maker() as db:
            with pytest.raises(AlreadyActive):
                await SqlSessionStore(db).insert(_active("s-2", OPENED + timedelta(hours=1)))
        async with maker() as db:
            sessions = await SqlSessionStore(db).list_sessions()
        await engine.dispose()
        return sessions

    sessions = run(scenario())
    assert [s.id for s in sessions] == ["s-1"]


def test_replace_is_conditional_on_active_status(run):
    async def scenario():
        engine, maker = await _database()
        closed_at = OPENED + timedelta(hours=10)
        async with maker() as db:
            store = SqlSessionStore(db)
            session = _active("s-1")
            await store.insert(session)
            await store.replace("s-1", _closed_from(session, closed_at))
            with pytest.raises(AlreadyClosed):
                await store.replace("s-1", _closed_from(session, closed_at + timedelta(hours=1)))
            await db.commit()
        async with maker() as db:
            store = SqlSessionStore(db)
            loaded = await store.get("s-1")
            last = await store.find_last_closed()
            active = await store.find_active()
        await engine.dispose()
        return loaded, last, active

    loaded, last, active = run(scenario())
    assert isinstance(loaded, ClosedSession)
    assert loaded.closed_at == OPENED + timedelta(hours=10)
    assert loaded.cash_delta.amount == Decimal("-10")
    assert loaded.cash_delta_justification == "short"
    assert last.id == "s-1"
    assert active is None


def test_append_x_ticket_only_while_active(run):
    async def scenario():
        engine, maker = await _database()
        async with maker() as db:
            store = SqlSessionStore(db)
            session = _active("s-1")
            await store.insert(session)
            for hours in (1, 2):
                await store.append_x_ticket(
                    "s-1", XTicketEntry(generated_at=OPENED + timedelta(hours=hours), generated_by=ALICE)
                )
            with_tickets = await store.get("s-1")
            await store.replace("s-1", _closed_from(with_tickets, OPENED + timedelta(hours=3)))
            with pytest.raises(NotActive):
                await store.append_x_ticket(
                    "s-1", XTicketEntry(generated_at=OPENED + timedelta(hours=4), generated_by=ALICE)
                )
            await db.commit()
        async with maker() as db:
            loaded = await SqlSessionStore(db).get("s-1")
        await engine.dispose()
        return with_tickets, loaded

    with_tickets, loaded = run(scenario())
    assert [t.generated_at.hour for t in with_tickets.x_tickets] == [10, 11]
    assert with_tickets.updated_at == OPENED + timedelta(hours=2)
    assert len(loaded.x_tickets) == 2
    assert loaded.status == SessionStatus.CLOSED


def test_payment_source_returns_only_paid_payments_since(run):
    async def scenario():
        engine, maker = await _database()
        async with maker() as db:
            _add_order(db, OPENED - timedelta(minutes=5), PaymentStatus.PAID, [
                (PaymentMethod.POINT_OF_SALE, "10", PaymentStatus.PAID),
            ])
            _add_order(db, OPENED + timedelta(minutes=5), PaymentStatus.PAID, [
                (PaymentMethod.POINT_OF_SALE, "20", PaymentStatus.PAID),
                (PaymentMethod.CARD, "7", PaymentStatus.CANCELED),
            ])
            _add_order(db, OPENED + timedelta(minutes=10), PaymentStatus.PENDING, [
                (PaymentMethod.CARD, "5", PaymentStatus.PENDING),
            ])
            _add_order(db, OPENED + timedelta(minutes=15), PaymentStatus.PAID, [
                (PaymentMethod.CARD, "12.5", PaymentStatus.PAID),
            ])
            await db.commit()
        async with maker() as db:
            records = await SqlPaymentSource(db).find_paid_since(OPENED)
        await engine.dispose()
        return records

    records = run(scenario())
    assert [(r.method, r.amount) for r in records] == [
        ("point-of-sale", Decimal("20")),
        ("card", Decimal("12.5")),
    ]
    assert all(r.status == PaymentStatus.PAID for r in records)


def test_service_end_to_end_on_database(run, test_settings):
    async def scenario():
        engine, maker = await _database()
        async with maker() as db:
            service = PosSessionService(
                SqlSessionStore(db), SqlPaymentSource(db), test_settings, clock=lambda: OPENED
            )
            session_id = await service.open_session(200, "EUR", ALICE)
            await db.commit()

        async with maker() as db:
            _add_order(db, OPENED + timedelta(minutes=30), PaymentStatus.PAID, [
                (PaymentMethod.POINT_OF_SALE, "50", PaymentStatus.PAID),
            ])
            _add_order(db, OPENED + timedelta(minutes=40), PaymentStatus.PAID, [
                (PaymentMethod.POINT_OF_SALE, "30", PaymentStatus.PAID),
            ])
            await db.commit()

        async with maker() as db:
            service = PosSessionService(
                SqlSessionStore(db), SqlPaymentSource(db), test_settings,
                clock=lambda: OPENED + timedelta(hours=4),
            )
            x_ticket = await service.generate_x_ticket(session_id, ALICE)
            with pytest.raises(JustificationRequired):
                await service.close_session(session_id, 250, "EUR", [], None, ALICE)
            closed, _ = await service.close_session(session_id, 250, "EUR", [], "counted error", ALICE)
            await db.commit()

        async with maker() as db:
            stored = await SqlSessionStore(db).get(session_id)
        await engine.dispose()
        return x_ticket, closed, stored

    x_ticket, closed, stored = run(scenario())
    assert "Daily incomes total so far :\n  - 80.00 EUR" in x_ticket
    assert closed.cash_closing_theoretical.amount == Decimal("280")
    assert stored.cash_delta.amount == Decimal("-30")
    assert [(i.payment_method, i.amount) for i in stored.daily_incomes] == [("point-of-sale", Decimal("80"))]
    assert len(stored.x_tickets) == 1


def test_z_ticket_reprint_after_reload_matches_closing_ticket(run, test_settings):
    """Сохранённая смена даёт тот же Z-отчёт, что вернулся при закрытии."""
    closing_time = OPENED + timedelta(hours=10)

    async def scenario():
        engine, maker = await _database()
        async with maker() as db:
            service = PosSessionService(
                SqlSessionStore(db), SqlPaymentSource(db), test_settings, clock=lambda: OPENED
            )
            session_id = await service.open_session(100, "EUR", ALICE)
            await db.commit()

        async with maker() as db:
            service = PosSessionService(
                SqlSessionStore(db), SqlPaymentSource(db), test_settings, clock=lambda: closing_time
            )
            with pytest.raises(InvalidInput):
                await service.close_session(session_id, Decimal("100.011"), "EUR", [], "recount", ALICE)
            closed, z_ticket = await service.close_session(
                session_id, Decimal("100.02"), "EUR", [], "recount", ALICE
            )
            await db.commit()

        async with maker() as db:
            service = PosSessionService(SqlSessionStore(db), SqlPaymentSource(db), test_settings)
            reprint = await service.z_ticket_for(session_id)
            stored = await service.get_session(session_id)
        await engine.dispose()
        return closed, z_ticket, reprint, stored

    closed, z_ticket, reprint, stored = run(scenario())
    assert reprint == z_ticket
    assert "Daily Z includes cash balance error" in reprint
    assert stored.cash_delta == closed.cash_delta
    assert stored.cash_delta.amount == Decimal("0.02")
