# app/services/payments.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import asyncpg

from ..config import settings
from ..errors import AuthorizationError, GatewayError, InvalidTransition, NotFoundError, ValidationError
from ..models.auth import Role
from ..models.transaction import TransactionStatus, TransactionType
from ..queries import booking_queries, transaction_queries
from ..utils.phone import to_msisdn
from .intasend import GatewayFailure, IntaSendGateway
from .settlement import Settlement

logger = logging.getLogger(__name__)


def normalize_id(value: Any) -> str:
    return str(value).lower().replace("-", "") if value is not None else ""


def payment_reference(booking_id: Any) -> str:
    return f"JOB_{booking_id}"


def check_booking_access(booking: Dict[str, Any], actor: dict) -> None:
    """Clients see their own bookings, cleaners the ones assigned to them, admins all."""
    role = actor["role"]
    actor_id = normalize_id(actor["id"])
    if role == Role.ADMIN:
        return
    if role == Role.CLIENT and normalize_id(booking["client_id"]) == actor_id:
        return
    if role == Role.CLEANER and normalize_id(booking.get("cleaner_id")) == actor_id:
        return
    if role == Role.TEAM_LEADER and normalize_id(booking.get("team_leader_id")) == actor_id:
        return
    raise AuthorizationError("Not authorized")


async def get_booking_or_404(conn: asyncpg.Connection, booking_id: Any) -> Dict[str, Any]:
    booking = await booking_queries.get_booking(conn, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def initiate_payment(
    conn: asyncpg.Connection,
    gateway: IntaSendGateway,
    booking_id: Any,
    actor: dict,
    phone_number: Optional[str],
) -> Dict[str, Any]:
    """Ask the gateway for an STK push. Never marks the booking paid;
    confirmation only arrives through the webhook."""
    booking = await get_booking_or_404(conn, booking_id)
    if actor["role"] != Role.CLIENT or normalize_id(booking["client_id"]) != normalize_id(actor["id"]):
        raise AuthorizationError("Not authorized")

    Settlement.from_record(booking).ensure_payable()

    try:
        msisdn = to_msisdn(phone_number)
    except ValueError as e:
        raise ValidationError(str(e))

    reference = payment_reference(booking["booking_id"])
    logger.info(
        f"Initiating payment for booking {booking['booking_id']}",
        extra={"booking_id": str(booking["booking_id"]), "amount": booking["price"], "reference": reference},
    )

    result = await gateway.collect_charge(
        amount=booking["price"],
        phone=msisdn,
        reference=reference,
        callback_url=settings.webhook_url,
        metadata={
            "booking_id": str(booking["booking_id"]),
            "client_id": str(booking["client_id"]),
            "service": booking.get("service_category"),
        },
    )
    if isinstance(result, GatewayFailure):
        logger.error(
            "Payment initiation failed",
            extra={"booking_id": str(booking["booking_id"]), "error": result.reason},
        )
        raise GatewayError(f"Failed to initiate payment: {result.reason}")

    logger.info(
        "STK push initiated",
        extra={"booking_id": str(booking["booking_id"]), "tracking_id": result.tracking_id},
    )
    return {
        "success": True,
        "message": "STK push sent. Check your phone.",
        "checkout_id": result.id,
        "tracking_id": result.tracking_id,
        "reference": reference,
    }


async def get_payment_status(conn: asyncpg.Connection, booking_id: Any, actor: dict) -> Dict[str, Any]:
    booking = await get_booking_or_404(conn, booking_id)
    if normalize_id(booking["client_id"]) != normalize_id(actor["id"]) and actor["role"] != Role.ADMIN:
        raise AuthorizationError("Not authorized")
    return {
        "success": True,
        "payment_status": booking["payment_status"],
        "paid": booking["paid"],
        "paid_at": booking["paid_at"],
        "transaction_id": booking["transaction_id"],
    }


async def refund_payment(conn: asyncpg.Connection, booking_id: Any, reason: str, actor: dict) -> Dict[str, Any]:
    """Record a refund executed outside the gateway (paid -> refunded)."""
    booking = await get_booking_or_404(conn, booking_id)
    Settlement.from_record(booking).refund()

    now = datetime.now(timezone.utc)
    async with conn.transaction():
        updated = await booking_queries.mark_booking_refunded(conn, booking["booking_id"])
        if updated is None:
            raise InvalidTransition("Only a paid booking can be refunded")
        entry = await transaction_queries.create_transaction(
            conn,
            booking_id=booking["booking_id"],
            client_id=booking["client_id"],
            cleaner_id=booking.get("cleaner_id"),
            type=TransactionType.REFUND.value,
            amount=booking["total_price"],
            currency=settings.currency,
            status=TransactionStatus.COMPLETED.value,
            payment_method=booking["payment_method"],
            transaction_id=f"REFUND_{int(now.timestamp() * 1000)}_{booking['booking_id']}",
            reference=f"REFUND_JOB_{booking['booking_id']}",
            description=f"Refund for cleaning service - {booking.get('service_category')}",
            metadata={"reason": reason, "recorded_by": str(actor["id"])},
            processed_at=now,
        )

    logger.warning(
        "Refund recorded",
        extra={"booking_id": str(booking["booking_id"]), "amount": booking["total_price"]},
    )
    return {"booking": updated, "transaction": entry}
