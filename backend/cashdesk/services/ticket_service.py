"""Текст X- и Z-отчётов.

Чистые функции: одна и та же смена даёт побайтно одинаковый текст. Отчёт собирается
списком строк и склеивается через LINE_SEPARATOR.
"""
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List

from cashdesk.schemas.money import Money
from cashdesk.schemas.pos_session import (
    ActiveSession,
    ClosedSession,
    PosSessionUser,
    XTicketEntry,
)

LINE_SEPARATOR = "\n"
DEFAULT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_CASH_METHOD = "point-of-sale"
DEFAULT_TOLERANCE = Decimal("0.01")

_CENTS = Decimal("0.01")


def format_amount(amount: Decimal) -> str:
    """Ровно два знака после точки, без «-0.00»."""
    q = Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if q == 0:
        q = abs(q)
    return f"{q:.2f}"


def format_signed(amount: Decimal) -> str:
    """Как format_amount, но неотрицательные суммы с явным «+»."""
    text = format_amount(amount)
    return text if text.startswith("-") else f"+{text}"


def operator_name(user: PosSessionUser) -> str:
    return user.display_name


def format_time(moment: datetime, datetime_format: str) -> str:
    return moment.strftime(datetime_format)


def _money_lines(rows: Iterable[tuple]) -> List[str]:
    return [f"  - {label} : {format_amount(amount)} {currency}" for label, amount, currency in rows]


def render_z_ticket(
    session: ClosedSession,
    *,
    brand_name: str,
    cash_payment_method: str = DEFAULT_CASH_METHOD,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    datetime_format: str = DEFAULT_DATETIME_FORMAT,
) -> str:
    """Итоговый Z-отчёт закрытой смены."""
    currency = session.daily_incomes[0].currency if session.daily_incomes else session.cash_opening.currency
    total_income = sum((i.amount for i in session.daily_incomes), Decimal("0"))
    total_outcome = sum((o.amount for o in session.daily_outcomes), Decimal("0"))
    cash_income = next(
        (i.amount for i in session.daily_incomes if i.payment_method == cash_payment_method),
        Decimal("0"),
    )
    # Все выдачи идут из наличных
    cash_outcomes = total_outcome

    lines = [
        f"{brand_name} Z ticket",
        f"Opening time : {format_time(session.opened_at, datetime_format)} by {operator_name(session.opened_by)}",
        f"Closing time : {format_time(session.closed_at, datetime_format)} by {operator_name(session.closed_by)}",
    ]
    if abs(session.cash_delta.amount) > tolerance:
        lines.append("Daily Z includes cash balance error")

    lines += ["", "Daily incomes :"]
    lines += _money_lines((i.payment_method, i.amount, i.currency) for i in session.daily_incomes)
    lines += ["Daily incomes total :", f"  - {format_amount(total_income)} {currency}"]

    lines += ["", "Daily outcomes :"]
    lines += _money_lines((o.category, o.amount, o.currency) for o in session.daily_outcomes)
    lines += ["Daily outcomes total :", f"  - {format_amount(total_outcome)} {currency}"]

    lines += ["", f"Daily delta : {format_signed(total_income - total_outcome)} {currency}"]

    lines += [
        "",
        "Cash balance :",
        f"  - Initial cash at opening : {_money(session.cash_opening)}",
        f"  - Daily cash incomes : {format_amount(cash_income)} {currency}",
        f"  - Daily cash outcomes : {format_amount(cash_outcomes)} {currency}",
        f"  - Remaining cash at daily closing : {_money(session.cash_closing)}",
        f"  - Theoretical remaining cash at daily closing : {_money(session.cash_closing_theoretical)}",
        f"Cash delta : {format_signed(session.cash_delta.amount)} {session.cash_delta.currency}",
    ]
    if session.cash_delta_justification:
        lines.append(f"  - Motive : {session.cash_delta_justification}")
    return LINE_SEPARATOR.join(lines)


def render_x_ticket(
    session: ActiveSession,
    incomes: Dict[str, Money],
    ticket: XTicketEntry,
    *,
    brand_name: str,
    datetime_format: str = DEFAULT_DATETIME_FORMAT,
) -> str:
    """Промежуточный X-отчёт: выручка на момент ticket.generated_at, без выдач и сверки."""
    currency = session.cash_opening.currency
    total_income = sum((m.amount for m in incomes.values()), Decimal("0"))

    lines = [
        f"{brand_name} X ticket",
        f"Opening time : {format_time(session.opened_at, datetime_format)} by {operator_name(session.opened_by)}",
        f"X ticket current time : {format_time(ticket.generated_at, datetime_format)} by {operator_name(ticket.generated_by)}",
        "",
        "Daily incomes so far :",
    ]
    lines += _money_lines((method, m.amount, m.currency) for method, m in incomes.items())
    lines += ["Daily incomes total so far :", f"  - {format_amount(total_income)} {currency}"]
    return LINE_SEPARATOR.join(lines)


def _money(money: Money) -> str:
    return f"{format_amount(money.amount)} {money.currency}"
