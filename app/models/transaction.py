from typing import Any, Dict, Optional
from pydantic import BaseModel
from datetime import datetime
from enum import Enum
from uuid import UUID

from .booking import PaymentMethod

class TransactionType(str, Enum):
    PAYMENT = "payment"
    PAYOUT = "payout"
    REFUND = "refund"

class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class TransactionOut(BaseModel):
    entry_id: UUID
    booking_id: UUID
    client_id: UUID
    cleaner_id: Optional[UUID] = None
    type: TransactionType
    amount: int
    currency: str
    status: TransactionStatus
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    reference: str
    description: Optional[str] = None
    metadata: Dict[str, Any] = {}
    processed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        json_encoders = {
            UUID: lambda v: str(v),
            datetime: lambda v: v.isoformat()
        }
