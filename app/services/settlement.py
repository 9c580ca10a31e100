# app/services/settlement.py
"""Settlement state of a single booking.

The booking row stores paid/payment_status/payout_status as separate
columns; this module is the only place that decides how they move
together. Every transition returns a new ``Settlement`` or raises
``InvalidTransition`` and never touches storage. The query layer then
persists the result with a conditional UPDATE.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Mapping, Optional

from ..errors import InvalidTransition
from ..models.booking import BookingStatus, PaymentStatus, PayoutStatus

# Booking lifecycle moves driven by cleaners/admins
_LIFECYCLE = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Settlement:
    status: BookingStatus
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None
    payout_status: PayoutStatus = PayoutStatus.PENDING
    payout_processed_at: Optional[datetime] = None

    def __post_init__(self):
        if self.payment_status == PaymentStatus.PAID and self.paid_at is None:
            raise InvalidTransition("A paid booking must carry paid_at")
        if self.payout_status == PayoutStatus.PROCESSED and self.payment_status not in (
            PaymentStatus.PAID, PaymentStatus.REFUNDED
        ):
            raise InvalidTransition("A payout cannot be processed for an unpaid booking")

    @property
    def paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @classmethod
    def from_record(cls, booking: Mapping) -> "Settlement":
        """Build from a booking row, rejecting rows whose flags disagree."""
        payment_status = PaymentStatus(booking["payment_status"])
        if bool(booking["paid"]) != (payment_status == PaymentStatus.PAID):
            raise InvalidTransition(
                f"Booking {booking['booking_id']} has paid={booking['paid']} "
                f"with payment_status={payment_status.value}"
            )
        return cls(
            status=BookingStatus(booking["status"]),
            payment_status=payment_status,
            paid_at=booking.get("paid_at"),
            payout_status=PayoutStatus(booking["payout_status"]),
            payout_processed_at=booking.get("payout_processed_at"),
        )

    # Booking lifecycle

    def advance(self, target: BookingStatus) -> "Settlement":
        if target == BookingStatus.CANCELLED and self.paid:
            raise InvalidTransition("A paid booking cannot be cancelled; refund it instead")
        if target not in _LIFECYCLE[self.status]:
            raise InvalidTransition(f"Cannot move booking from {self.status.value} to {target.value}")
        return replace(self, status=target)

    def confirm(self) -> "Settlement":
        return self.advance(BookingStatus.CONFIRMED)

    # Collection

    def ensure_payable(self) -> None:
        """Collection is only requested for a confirmed, unpaid booking."""
        if self.paid:
            raise InvalidTransition("Booking already paid")
        if self.payment_status not in (PaymentStatus.PENDING, PaymentStatus.FAILED):
            raise InvalidTransition(f"Booking payment is {self.payment_status.value}")
        if self.status != BookingStatus.CONFIRMED:
            raise InvalidTransition("Booking must be confirmed first")

    def receive_payment(self, at: datetime = None) -> "Settlement":
        if self.paid:
            raise InvalidTransition("Booking already paid")
        if self.payment_status == PaymentStatus.REFUNDED:
            raise InvalidTransition("Booking was refunded")
        return replace(self, payment_status=PaymentStatus.PAID, paid_at=at or _now())

    def refund(self) -> "Settlement":
        if not self.paid:
            raise InvalidTransition("Only a paid booking can be refunded")
        return replace(self, payment_status=PaymentStatus.REFUNDED)

    # Disbursement

    def start_disbursement(self) -> "Settlement":
        if not self.paid:
            raise InvalidTransition("Payout requires a paid booking")
        if self.payout_status == PayoutStatus.PROCESSED:
            raise InvalidTransition("Payout already processed")
        return replace(self, payout_status=PayoutStatus.PENDING)

    def disburse(self, at: datetime = None) -> "Settlement":
        if not self.paid:
            raise InvalidTransition("Payout requires a paid booking")
        if self.payout_status != PayoutStatus.PENDING:
            raise InvalidTransition(f"Payout is {self.payout_status.value}, not pending")
        return replace(self, payout_status=PayoutStatus.PROCESSED, payout_processed_at=at or _now())

    def fail_disbursement(self) -> "Settlement":
        if not self.paid:
            raise InvalidTransition("Payout requires a paid booking")
        if self.payout_status == PayoutStatus.PROCESSED:
            raise InvalidTransition("Payout already processed")
        return replace(self, payout_status=PayoutStatus.FAILED, payout_processed_at=None)

    def resolve_disbursement(self, at: datetime = None) -> "Settlement":
        """Operator closed a failed payout by paying the cleaner by hand."""
        if not self.paid:
            raise InvalidTransition("Payout requires a paid booking")
        if self.payout_status != PayoutStatus.FAILED:
            raise InvalidTransition("Only a failed payout can be resolved manually")
        return replace(self, payout_status=PayoutStatus.PROCESSED, payout_processed_at=at or _now())
