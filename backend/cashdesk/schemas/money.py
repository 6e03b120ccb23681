"""Сумма + валюта. Арифметика только внутри одной валюты, конвертации нет."""
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict

from cashdesk.core.errors import InvalidInput

CENTS = Decimal("0.01")


def parse_amount(value, label: str = "сумма") -> Decimal:
    """Привести сумму к Decimal с точностью до копейки.

    Нечисловые, бесконечные, отрицательные и более точные, чем 0.01, значения дают InvalidInput.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInput(f"Некорректная {label}: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"Некорректная {label}: {value!r}")
    if not amount.is_finite():
        raise InvalidInput(f"Некорректная {label}: {value!r}")
    if amount < 0:
        raise InvalidInput(f"Отрицательная {label}: {amount}")
    try:
        cents = amount.quantize(CENTS)
    except InvalidOperation:
        raise InvalidInput(f"Некорректная {label}: {value!r}")
    if cents != amount:
        raise InvalidInput(f"{label.capitalize()} с точностью больше двух знаков: {amount}")
    return cents


def parse_currency(value) -> str:
    code = (value or "").strip().upper() if isinstance(value, str) else ""
    if len(code) != 3 or not code.isalpha():
        raise InvalidInput(f"Некорректный код валюты: {value!r}")
    return code


class Money(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str

    def _check_currency(self, other: "Money") -> None:
        if other.currency != self.currency:
            raise InvalidInput(
                f"Нельзя складывать суммы в разных валютах: {self.currency} и {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)
