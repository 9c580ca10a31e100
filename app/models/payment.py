from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from uuid import UUID

from .booking import PaymentStatus

class PaymentInitiate(BaseModel):
    booking_id: UUID
    phone_number: str = Field(..., min_length=9, max_length=16)

class PaymentInitiateOut(BaseModel):
    success: bool = True
    message: str
    checkout_id: str
    tracking_id: Optional[str] = None
    reference: str

class PaymentStatusOut(BaseModel):
    success: bool = True
    payment_status: PaymentStatus
    paid: bool
    paid_at: Optional[datetime] = None
    transaction_id: Optional[str] = None

class WebhookMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    booking_id: Optional[str] = None

    @field_validator("booking_id", mode="before")
    @classmethod
    def coerce_booking_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

class WebhookEvent(BaseModel):
    """IntaSend collection event. Unknown fields are kept for the journal."""
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    state: Optional[str] = None
    id: Optional[str] = None
    transaction_id: Optional[str] = None
    invoice_id: Optional[str] = None
    api_ref: Optional[str] = None
    challenge: Optional[str] = None
    metadata: Optional[WebhookMetadata] = None

    @field_validator("id", "transaction_id", "invoice_id", "api_ref", mode="before")
    @classmethod
    def coerce_reference(cls, value: Any) -> Optional[str]:
        # IntaSend sends some identifiers as JSON numbers
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @property
    def outcome(self) -> Optional[str]:
        value = self.status or self.state
        return value.upper() if value else None

    @property
    def booking_id(self) -> Optional[str]:
        if self.metadata and self.metadata.booking_id:
            return self.metadata.booking_id
        if self.api_ref and self.api_ref.startswith("JOB_"):
            return self.api_ref[len("JOB_"):]
        return None

    @property
    def external_id(self) -> str:
        return self.id or self.transaction_id or self.invoice_id or ""

class PayoutResolve(BaseModel):
    mpesa_receipt: str = Field(..., min_length=4, max_length=64)
    note: Optional[str] = Field(None, max_length=500)

class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=5, max_length=500)

class TeamLeaderEarningsOut(BaseModel):
    success: bool = True
    commission_rate: float
    total_earnings: int
    booking_count: int
    bookings: list[Dict[str, Any]]
