from cashdesk.core.database import Base
from cashdesk.models.employee import Employee, EmployeeRole
from cashdesk.models.payment import Order, Payment, PaymentMethod, PaymentStatus
from cashdesk.models.pos_session import PosSessionRecord, PosSessionXTicket, SessionStatus

__all__ = [
    "Base",
    "Employee",
    "EmployeeRole",
    "Order",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PosSessionRecord",
    "PosSessionXTicket",
    "SessionStatus",
]
