"""Жизненный цикл кассовой смены: открытие, X-отчёт, закрытие со сверкой наличных.

Открытой может быть только одна смена. При закрытии выручка пересчитывается с нуля,
теоретический остаток = открытие + наличная выручка − выдачи, расхождение = пересчёт − теория.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from cashdesk.config import Settings
from cashdesk.core.errors import (
    AlreadyActive,
    AlreadyClosed,
    InvalidInput,
    JustificationRequired,
    NotActive,
    NotClosed,
    NotFound,
    SessionsDisabled,
)
from cashdesk.core.logging_config import get_logger
from cashdesk.models import SessionStatus
from cashdesk.schemas.money import Money, parse_amount, parse_currency
from cashdesk.schemas.pos_session import (
    ActiveSession,
    ClosedSession,
    PosSessionOutcome,
    PosSessionUser,
    XTicketEntry,
)
from cashdesk.services.income_service import calculate_daily_incomes, incomes_to_list
from cashdesk.services.payment_source import PaymentSource
from cashdesk.services.session_store import AnySession, SessionStore
from cashdesk.services.ticket_service import render_x_ticket, render_z_ticket

logger = get_logger(__name__)


def _validate_outcomes(outcomes: Iterable[PosSessionOutcome], currency: str) -> Tuple[PosSessionOutcome, ...]:
    result = []
    for outcome in outcomes:
        category = (outcome.category or "").strip()
        if not category:
            raise InvalidInput("Не указана категория выдачи")
        out_currency = parse_currency(outcome.currency)
        if out_currency != currency:
            raise InvalidInput(f"Выдача «{category}» в {out_currency}, касса в {currency}")
        result.append(
            PosSessionOutcome(
                category=category,
                amount=parse_amount(outcome.amount, "сумма выдачи"),
                currency=out_currency,
            )
        )
    return tuple(result)


class PosSessionService:
    def __init__(
        self,
        store: SessionStore,
        payments: PaymentSource,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.payments = payments
        self.settings = settings
        self.clock = clock

    # --- чтение ---

    async def get_session(self, session_id: str) -> AnySession:
        session = await self.store.get(session_id)
        if session is None:
            raise NotFound(session_id)
        return session

    async def get_current_session(self) -> Optional[ActiveSession]:
        return await self.store.find_active()

    async def list_sessions(
        self, status: Optional[SessionStatus] = None, limit: int = 50
    ) -> List[AnySession]:
        return await self.store.list_sessions(status=status, limit=limit)

    async def current_incomes(self, session: ActiveSession) -> Dict[str, Money]:
        return await calculate_daily_incomes(session, self.payments)

    # --- открытие ---

    async def open_session(self, opening_amount, opening_currency, operator: PosSessionUser) -> str:
        if not self.settings.pos_sessions_enabled:
            raise SessionsDisabled()
        cash_opening = Money(
            amount=parse_amount(opening_amount, "сумма на открытие"),
            currency=parse_currency(opening_currency),
        )

        existing = await self.store.find_active()
        if existing is not None:
            raise AlreadyActive(existing.id)

        last = await self.store.find_last_closed()
        if last is not None and last.cash_closing != cash_opening:
            logger.warning(
                "Сумма на открытие не совпадает с закрытием смены id=%s: ожидалось %s %s, получено %s %s",
                last.id,
                last.cash_closing.amount,
                last.cash_closing.currency,
                cash_opening.amount,
                cash_opening.currency,
            )

        now = self.clock()
        session = ActiveSession(
            id=str(uuid.uuid4()),
            opened_at=now,
            opened_by=operator,
            cash_opening=cash_opening,
            created_at=now,
            updated_at=now,
        )
        await self.store.insert(session)
        logger.info(
            "Открыта смена id=%s: %s %s, оператор %s",
            session.id, cash_opening.amount, cash_opening.currency, operator.display_name,
        )
        return session.id

    # --- X-отчёт ---

    async def generate_x_ticket(self, session_id: str, operator: PosSessionUser) -> str:
        session = await self.get_session(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise NotActive(session_id)

        incomes = await calculate_daily_incomes(session, self.payments)
        entry = XTicketEntry(generated_at=self.clock(), generated_by=operator)
        await self.store.append_x_ticket(session.id, entry)
        logger.info("X-отчёт по смене id=%s, оператор %s", session.id, operator.display_name)
        return render_x_ticket(
            session,
            incomes,
            entry,
            brand_name=self.settings.brand_name,
            datetime_format=self.settings.ticket_datetime_format,
        )

    # --- закрытие ---

    async def close_session(
        self,
        session_id: str,
        closing_amount,
        closing_currency,
        outcomes: Iterable[PosSessionOutcome],
        justification: Optional[str],
        operator: PosSessionUser,
    ) -> Tuple[ClosedSession, str]:
        session = await self.get_session(session_id)
        if session.status == SessionStatus.CLOSED:
            raise AlreadyClosed(session_id)

        currency = session.cash_opening.currency
        cash_closing = Money(
            amount=parse_amount(closing_amount, "сумма на закрытие"),
            currency=parse_currency(closing_currency),
        )
        if cash_closing.currency != currency:
            raise InvalidInput(f"Касса открыта в {currency}, закрытие в {cash_closing.currency}")
        daily_outcomes = _validate_outcomes(outcomes, currency)

        incomes = await calculate_daily_incomes(session, self.payments)
        cash_income = incomes.get(
            self.settings.pos_cash_payment_method, Money(amount=Decimal("0"), currency=currency)
        )
        total_outcomes = Money(amount=sum((o.amount for o in daily_outcomes), Decimal("0")), currency=currency)

        # Наличная выручка в другой валюте: InvalidInput, конвертации нет
        theoretical = session.cash_opening + cash_income - total_outcomes
        delta = cash_closing - theoretical

        justification = (justification or "").strip() or None
        if abs(delta.amount) > self.settings.pos_cash_delta_tolerance and not justification:
            if self.settings.pos_cash_delta_justification_mandatory:
                raise JustificationRequired(delta.amount, currency)
            logger.warning(
                "Смена id=%s закрывается с расхождением %s %s без пояснения",
                session.id, delta.amount, currency,
            )

        now = self.clock()
        closed = ClosedSession(
            id=session.id,
            opened_at=session.opened_at,
            opened_by=session.opened_by,
            cash_opening=session.cash_opening,
            daily_incomes=tuple(incomes_to_list(incomes)),
            daily_outcomes=daily_outcomes,
            x_tickets=session.x_tickets,
            created_at=session.created_at,
            updated_at=now,
            closed_at=now,
            closed_by=operator,
            cash_closing=cash_closing,
            cash_closing_theoretical=theoretical,
            cash_delta=delta,
            cash_delta_justification=justification,
        )
        await self.store.replace(session.id, closed)
        # Журнал X-отчётов мог пополниться между чтением и закрытием
        closed = await self.get_session(session.id)
        logger.info(
            "Закрыта смена id=%s: теория %s, пересчёт %s, расхождение %s %s",
            session.id, theoretical.amount, cash_closing.amount, delta.amount, currency,
        )
        return closed, self.render_z_ticket(closed)

    def render_z_ticket(self, session: ClosedSession) -> str:
        return render_z_ticket(
            session,
            brand_name=self.settings.brand_name,
            cash_payment_method=self.settings.pos_cash_payment_method,
            tolerance=self.settings.pos_cash_delta_tolerance,
            datetime_format=self.settings.ticket_datetime_format,
        )

    async def z_ticket_for(self, session_id: str) -> str:
        """Z-отчёт уже закрытой смены (история)."""
        session = await self.get_session(session_id)
        if session.status != SessionStatus.CLOSED:
            raise NotClosed(session_id)
        return self.render_z_ticket(session)
