from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum
from uuid import UUID

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"

class ServiceCategory(str, Enum):
    CAR_DETAILING = "car-detailing"
    HOME_CLEANING = "home-cleaning"

class PaymentMethod(str, Enum):
    MPESA = "mpesa"
    CARD = "card"
    CASH = "cash"

class BookingOut(BaseModel):
    booking_id: UUID
    client_id: UUID
    cleaner_id: Optional[UUID] = None
    team_leader_id: Optional[UUID] = None
    service_category: str
    price: int
    total_price: int = 0
    platform_fee: int = 0
    cleaner_payout: int = 0
    payment_method: PaymentMethod = PaymentMethod.MPESA
    payment_status: PaymentStatus
    paid: bool
    paid_at: Optional[datetime] = None
    payout_status: PayoutStatus
    payout_processed_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    status: BookingStatus
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        json_encoders = {
            UUID: lambda v: str(v),
            datetime: lambda v: v.isoformat()
        }

class BookingStatusUpdate(BaseModel):
    status: BookingStatus

class BookingPayRequest(BaseModel):
    # Falls back to the client's registered phone when omitted
    phone_number: Optional[str] = Field(None, min_length=9, max_length=16)

class BookingCreate(BaseModel):
    service_category: ServiceCategory
    price: int = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.MPESA
    team_leader_id: Optional[UUID] = None

class BookingAssign(BaseModel):
    # Admins name the cleaner; a cleaner accepting a job leaves it empty
    cleaner_id: Optional[UUID] = None
