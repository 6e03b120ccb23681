"""Хранилище кассовых смен.

Атомарность на уровне одной записи: уникальный индекс на открытую смену,
закрытие и запись X-отчёта только при status=ACTIVE (условный UPDATE).
"""
from decimal import Decimal
from typing import List, Optional, Protocol, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cashdesk.core.errors import AlreadyActive, AlreadyClosed, NotActive
from cashdesk.core.logging_config import get_logger
from cashdesk.models import PosSessionRecord, PosSessionXTicket, SessionStatus
from cashdesk.schemas.money import Money
from cashdesk.schemas.pos_session import (
    ActiveSession,
    ClosedSession,
    PosSessionIncome,
    PosSessionOutcome,
    PosSessionUser,
    XTicketEntry,
)

logger = get_logger(__name__)

AnySession = Union[ActiveSession, ClosedSession]


class SessionStore(Protocol):
    async def find_active(self) -> Optional[ActiveSession]:
        ...

    async def find_last_closed(self) -> Optional[ClosedSession]:
        ...

    async def get(self, session_id: str) -> Optional[AnySession]:
        ...

    async def insert(self, session: ActiveSession) -> None:
        """AlreadyActive, если открытая смена уже есть."""

    async def replace(self, session_id: str, session: ClosedSession) -> None:
        """AlreadyClosed, если смена уже не ACTIVE."""

    async def append_x_ticket(self, session_id: str, entry: XTicketEntry) -> None:
        """NotActive, если смена уже не ACTIVE."""

    async def list_sessions(
        self, status: Optional[SessionStatus] = None, limit: int = 50
    ) -> List[AnySession]:
        ...


def _user(user_id, login, alias) -> Optional[PosSessionUser]:
    if user_id is None:
        return None
    return PosSessionUser(user_id=user_id, user_login=login or "", user_alias=alias)


def _money(amount, currency) -> Optional[Money]:
    if amount is None or currency is None:
        return None
    return Money(amount=amount, currency=currency)


def record_to_session(row: PosSessionRecord) -> AnySession:
    common = dict(
        id=row.id,
        opened_at=row.opened_at,
        opened_by=_user(row.opened_by_id, row.opened_by_login, row.opened_by_alias),
        cash_opening=Money(amount=row.cash_opening_amount, currency=row.cash_opening_currency),
        daily_incomes=tuple(
            PosSessionIncome(
                payment_method=i["payment_method"],
                amount=Decimal(i["amount"]),
                currency=i["currency"],
            )
            for i in row.daily_incomes or []
        ),
        daily_outcomes=tuple(
            PosSessionOutcome(
                category=o["category"],
                amount=Decimal(o["amount"]),
                currency=o["currency"],
            )
            for o in row.daily_outcomes or []
        ),
        x_tickets=tuple(
            XTicketEntry(
                generated_at=t.generated_at,
                generated_by=_user(t.generated_by_id, t.generated_by_login, t.generated_by_alias),
            )
            for t in row.x_tickets
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
    if row.status == SessionStatus.ACTIVE:
        return ActiveSession(**common)
    return ClosedSession(
        **common,
        closed_at=row.closed_at,
        closed_by=_user(row.closed_by_id, row.closed_by_login, row.closed_by_alias),
        cash_closing=_money(row.cash_closing_amount, row.cash_closing_currency),
        cash_closing_theoretical=_money(row.cash_theoretical_amount, row.cash_theoretical_currency),
        cash_delta=_money(row.cash_delta_amount, row.cash_delta_currency),
        cash_delta_justification=row.cash_delta_justification,
    )


def _closing_values(session: ClosedSession) -> dict:
    return {
        "status": SessionStatus.CLOSED,
        "closed_at": session.closed_at,
        "closed_by_id": session.closed_by.user_id,
        "closed_by_login": session.closed_by.user_login,
        "closed_by_alias": session.closed_by.user_alias,
        "cash_closing_amount": session.cash_closing.amount,
        "cash_closing_currency": session.cash_closing.currency,
        "cash_theoretical_amount": session.cash_closing_theoretical.amount,
        "cash_theoretical_currency": session.cash_closing_theoretical.currency,
        "cash_delta_amount": session.cash_delta.amount,
        "cash_delta_currency": session.cash_delta.currency,
        "cash_delta_justification": session.cash_delta_justification,
        "daily_incomes": [
            {"payment_method": i.payment_method, "amount": str(i.amount), "currency": i.currency}
            for i in session.daily_incomes
        ],
        "daily_outcomes": [
            {"category": o.category, "amount": str(o.amount), "currency": o.currency}
            for o in session.daily_outcomes
        ],
        "updated_at": session.updated_at,
    }


class SqlSessionStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _select(self):
        return (
            select(PosSessionRecord)
            .options(selectinload(PosSessionRecord.x_tickets))
            .execution_options(populate_existing=True)
        )

    async def _one(self, q) -> Optional[AnySession]:
        r = await self.db.execute(q)
        row = r.scalars().first()
        return record_to_session(row) if row is not None else None

    async def find_active(self) -> Optional[ActiveSession]:
        q = (
            self._select()
            .where(PosSessionRecord.status == SessionStatus.ACTIVE)
            .order_by(PosSessionRecord.opened_at.desc())
            .limit(1)
        )
        return await self._one(q)

    async def find_last_closed(self) -> Optional[ClosedSession]:
        q = (
            self._select()
            .where(PosSessionRecord.status == SessionStatus.CLOSED)
            .order_by(PosSessionRecord.closed_at.desc())
            .limit(1)
        )
        return await self._one(q)

    async def get(self, session_id: str) -> Optional[AnySession]:
        return await self._one(self._select().where(PosSessionRecord.id == session_id))

    async def list_sessions(
        self, status: Optional[SessionStatus] = None, limit: int = 50
    ) -> List[AnySession]:
        q = self._select().order_by(PosSessionRecord.opened_at.desc()).limit(limit)
        if status is not None:
            q = q.where(PosSessionRecord.status == status)
        r = await self.db.execute(q)
        return [record_to_session(row) for row in r.scalars().all()]

    async def insert(self, session: ActiveSession) -> None:
        row = PosSessionRecord(
            id=session.id,
            status=SessionStatus.ACTIVE,
            opened_at=session.opened_at,
            opened_by_id=session.opened_by.user_id,
            opened_by_login=session.opened_by.user_login,
            opened_by_alias=session.opened_by.user_alias,
            cash_opening_amount=session.cash_opening.amount,
            cash_opening_currency=session.cash_opening.currency,
            daily_incomes=[],
            daily_outcomes=[],
            created_at=session.created_at,
            updated_at=session.updated_at,
        )
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError:
            # Параллельное открытие успело раньше
            await self.db.rollback()
            logger.warning("Открытие смены id=%s отклонено: уже есть открытая смена", session.id)
            raise AlreadyActive()

    async def replace(self, session_id: str, session: ClosedSession) -> None:
        r = await self.db.execute(
            update(PosSessionRecord)
            .where(
                PosSessionRecord.id == session_id,
                PosSessionRecord.status == SessionStatus.ACTIVE,
            )
            .values(**_closing_values(session))
            .execution_options(synchronize_session=False)
        )
        if r.rowcount == 0:
            raise AlreadyClosed(session_id)

    async def append_x_ticket(self, session_id: str, entry: XTicketEntry) -> None:
        r = await self.db.execute(
            update(PosSessionRecord)
            .where(
                PosSessionRecord.id == session_id,
                PosSessionRecord.status == SessionStatus.ACTIVE,
            )
            .values(updated_at=entry.generated_at)
            .execution_options(synchronize_session=False)
        )
        if r.rowcount == 0:
            raise NotActive(session_id)
        self.db.add(
            PosSessionXTicket(
                session_id=session_id,
                generated_at=entry.generated_at,
                generated_by_id=entry.generated_by.user_id,
                generated_by_login=entry.generated_by.user_login,
                generated_by_alias=entry.generated_by.user_alias,
            )
        )
        await self.db.flush()
