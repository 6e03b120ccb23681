"""Источник платежей для смены: оплаченные платежи заказов, созданных не раньше момента T."""
from datetime import datetime
from typing import List, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cashdesk.models import Order, Payment, PaymentStatus
from cashdesk.schemas.payment import PaymentRecord


class PaymentSource(Protocol):
    async def find_paid_since(self, since: datetime) -> List[PaymentRecord]:
        ...


class SqlPaymentSource:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_paid_since(self, since: datetime) -> List[PaymentRecord]:
        q = (
            select(Payment, Order.created_at)
            .join(Order, Payment.order_id == Order.id)
            .where(
                Order.created_at >= since,
                Order.status == PaymentStatus.PAID,
                Payment.status == PaymentStatus.PAID,
            )
            .order_by(Order.created_at, Payment.id)
        )
        r = await self.db.execute(q)
        return [
            PaymentRecord(
                method=payment.method.value,
                amount=payment.amount,
                currency=payment.currency,
                status=payment.status,
                created_at=order_created_at,
            )
            for payment, order_created_at in r.all()
        ]
