"""Кассовая смена POS: открытие/закрытие, сверка наличных, журнал X-отчётов."""
import enum
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cashdesk.core.database import Base

JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class PosSessionRecord(Base):
    """Одна кассовая смена. Открытой (ACTIVE) может быть только одна (частичный уникальный индекс)."""
    __tablename__ = "pos_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus), default=SessionStatus.ACTIVE, nullable=False
    )

    opened_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    opened_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    opened_by_login: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    opened_by_alias: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    closed_by_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    closed_by_login: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    closed_by_alias: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    cash_opening_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cash_opening_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # Заполняются только при закрытии
    cash_closing_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    cash_closing_currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    cash_theoretical_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    cash_theoretical_currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    cash_delta_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    cash_delta_currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    cash_delta_justification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # [{"payment_method", "amount", "currency"}] / [{"category", "amount", "currency"}], суммы строкой
    daily_incomes: Mapped[list] = mapped_column(JsonColumn, default=list, nullable=False)
    daily_outcomes: Mapped[list] = mapped_column(JsonColumn, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    x_tickets: Mapped[List["PosSessionXTicket"]] = relationship(
        back_populates="session",
        order_by="PosSessionXTicket.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "uq_pos_sessions_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )


class PosSessionXTicket(Base):
    """Запись журнала X-отчётов. Только добавляется, пока смена открыта."""
    __tablename__ = "pos_session_x_tickets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("pos_sessions.id"), nullable=False, index=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    generated_by_id: Mapped[str] = mapped_column(String(64), nullable=False)
    generated_by_login: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    generated_by_alias: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    session: Mapped[PosSessionRecord] = relationship(back_populates="x_tickets")
