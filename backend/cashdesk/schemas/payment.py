from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from cashdesk.models.payment import PaymentStatus


class PaymentRecord(BaseModel):
    """Платёж из внешней системы заказов. created_at: время создания заказа."""
    model_config = ConfigDict(frozen=True)

    method: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    created_at: datetime
