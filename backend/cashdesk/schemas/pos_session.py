"""Схемы кассовой смены.

Смена бывает ActiveSession или ClosedSession (дискриминатор status). Поля закрытия
есть только у закрытой смены, поэтому прочитать их у открытой нельзя.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from cashdesk.models.pos_session import SessionStatus
from cashdesk.schemas.money import Money


class PosSessionUser(BaseModel):
    """Снимок оператора на момент действия."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    user_login: str = ""
    user_alias: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.user_alias or self.user_login or self.user_id


class PosSessionIncome(BaseModel):
    model_config = ConfigDict(frozen=True)

    payment_method: str
    amount: Decimal
    currency: str


class PosSessionOutcome(BaseModel):
    """Выдача наличных из кассы (например, сдача в банк)."""
    model_config = ConfigDict(frozen=True)

    category: str
    amount: Decimal
    currency: str


class XTicketEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    generated_by: PosSessionUser


class _PosSessionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    opened_at: datetime
    opened_by: PosSessionUser
    cash_opening: Money
    daily_incomes: Tuple[PosSessionIncome, ...] = ()
    daily_outcomes: Tuple[PosSessionOutcome, ...] = ()
    x_tickets: Tuple[XTicketEntry, ...] = ()
    created_at: datetime
    updated_at: datetime


class ActiveSession(_PosSessionBase):
    status: Literal[SessionStatus.ACTIVE] = SessionStatus.ACTIVE


class ClosedSession(_PosSessionBase):
    status: Literal[SessionStatus.CLOSED] = SessionStatus.CLOSED
    closed_at: datetime
    closed_by: PosSessionUser
    cash_closing: Money
    cash_closing_theoretical: Money
    cash_delta: Money
    cash_delta_justification: Optional[str] = None


PosSession = Annotated[Union[ActiveSession, ClosedSession], Field(discriminator="status")]


# --- HTTP ---

class OutcomeIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: str = Field(..., min_length=3, max_length=3)


class SessionOpen(BaseModel):
    """Открыть смену: наличные в кассе на начало дня."""
    cash_opening_amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: str = Field(..., min_length=3, max_length=3)


class SessionClose(BaseModel):
    """Закрыть смену.

    Если outcomes не передан, из bank_deposit_amount собирается одна выдача «bank-deposit»
    (как в форме закрытия). Пустой список outcomes: выдач не было.
    """
    cash_closing_amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: str = Field(..., min_length=3, max_length=3)
    bank_deposit_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    outcomes: Optional[List[OutcomeIn]] = None
    justification: Optional[str] = Field(default=None, max_length=2000)


class SessionOpenedResponse(BaseModel):
    id: str


class SessionCurrentResponse(BaseModel):
    session: Optional[ActiveSession] = None


class SessionClosedResponse(BaseModel):
    session: ClosedSession
    z_ticket: str


class TicketResponse(BaseModel):
    session_id: str
    text: str


class ClosingOverview(BaseModel):
    """Данные для формы закрытия: смена, выручка на сейчас, обязательно ли пояснение."""
    session: ActiveSession
    incomes: List[PosSessionIncome]
    cash_delta_justification_mandatory: bool
