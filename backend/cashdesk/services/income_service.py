"""Выручка смены по способам оплаты."""
from typing import Dict, Iterable, List

from cashdesk.models import PaymentStatus
from cashdesk.schemas.money import Money
from cashdesk.schemas.payment import PaymentRecord
from cashdesk.schemas.pos_session import PosSessionIncome
from cashdesk.services.payment_source import PaymentSource


def aggregate_incomes(payments: Iterable[PaymentRecord]) -> Dict[str, Money]:
    """Сумма по способу оплаты, в порядке первого появления способа.

    Валюта группы берётся у первого платежа этим способом; разные валюты внутри
    одного способа не сверяются.
    """
    incomes: Dict[str, Money] = {}
    for payment in payments:
        existing = incomes.get(payment.method)
        if existing is None:
            incomes[payment.method] = Money(amount=payment.amount, currency=payment.currency)
        else:
            incomes[payment.method] = Money(
                amount=existing.amount + payment.amount, currency=existing.currency
            )
    return incomes


async def calculate_daily_incomes(session, source: PaymentSource) -> Dict[str, Money]:
    """Пересчитать выручку смены с нуля: оплаченные платежи начиная с opened_at."""
    payments = await source.find_paid_since(session.opened_at)
    return aggregate_incomes(
        p for p in payments
        if p.status == PaymentStatus.PAID and p.created_at >= session.opened_at
    )


def incomes_to_list(incomes: Dict[str, Money]) -> List[PosSessionIncome]:
    return [
        PosSessionIncome(payment_method=method, amount=money.amount, currency=money.currency)
        for method, money in incomes.items()
    ]
