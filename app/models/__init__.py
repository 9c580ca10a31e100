from .auth import Role, Token
from .booking import (
    BookingStatus,
    PaymentStatus,
    PayoutStatus,
    PaymentMethod,
    BookingOut,
    BookingStatusUpdate,
    BookingPayRequest,
    BookingCreate,
    BookingAssign,
    ServiceCategory
)
from .payment import (
    PaymentInitiate,
    PaymentInitiateOut,
    PaymentStatusOut,
    WebhookEvent,
    PayoutResolve,
    RefundRequest,
    TeamLeaderEarningsOut
)
from .transaction import TransactionType, TransactionStatus, TransactionOut

__all__ = [
    'Role', 'Token',
    'BookingStatus', 'PaymentStatus', 'PayoutStatus', 'PaymentMethod',
    'BookingOut', 'BookingStatusUpdate', 'BookingPayRequest',
    'BookingCreate', 'BookingAssign', 'ServiceCategory',
    'PaymentInitiate', 'PaymentInitiateOut', 'PaymentStatusOut', 'WebhookEvent',
    'PayoutResolve', 'RefundRequest', 'TeamLeaderEarningsOut',
    'TransactionType', 'TransactionStatus', 'TransactionOut'
]
