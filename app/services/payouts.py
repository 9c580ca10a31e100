# app/services/payouts.py
"""Cleaner payout disbursement.

One transfer attempt per paid booking. The pending journal entry is
committed before the gateway is called, so a crash mid-transfer leaves a
trace for reconciliation. Failures are journaled and alerted, never
retried automatically: resubmitting a transfer without gateway-side
idempotency could pay the cleaner twice.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import asyncpg

from ..config import settings
from ..errors import ConfigurationError, GatewayError, InvalidTransition
from ..models.booking import PayoutStatus
from ..models.transaction import TransactionStatus, TransactionType
from ..queries import booking_queries, transaction_queries, user_queries
from ..utils.phone import to_msisdn
from .alerts import alert_payout_failure
from .intasend import GatewayFailure, IntaSendGateway
from .payments import get_booking_or_404
from .settlement import Settlement

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutOutcome:
    payout_status: PayoutStatus
    entry: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def payout_reference(booking_id: Any) -> str:
    return f"CLEANER_PAYOUT_JOB_{booking_id}"


def _millis(at: datetime) -> int:
    return int(at.timestamp() * 1000)


async def _resolve_payout_account(conn: asyncpg.Connection, booking: Dict[str, Any]) -> Dict[str, str]:
    cleaner_id = booking.get("cleaner_id")
    if not cleaner_id:
        raise ConfigurationError("Booking has no assigned cleaner")
    account = await user_queries.get_payout_account(conn, cleaner_id)
    if not account:
        raise ConfigurationError("Cleaner M-Pesa phone number not configured")
    try:
        return {"mpesa_phone": to_msisdn(account), "original_phone": account}
    except ValueError:
        raise ConfigurationError("Invalid M-Pesa phone number format")


async def process_payout(
    conn: asyncpg.Connection,
    gateway: IntaSendGateway,
    booking: Dict[str, Any],
    amount: int,
) -> PayoutOutcome:
    """Disburse the cleaner's share of a paid booking.

    Only a booking that is not paid (or already disbursed) raises
    ``InvalidTransition``; every other problem ends on the failed-payout path.
    """
    Settlement.from_record(booking).start_disbursement()

    booking_id = booking["booking_id"]
    reference = payout_reference(booking_id)
    pending: Optional[Dict[str, Any]] = None
    try:
        account = await _resolve_payout_account(conn, booking)

        pending = await transaction_queries.create_transaction(
            conn,
            booking_id=booking_id,
            client_id=booking["client_id"],
            cleaner_id=booking["cleaner_id"],
            type=TransactionType.PAYOUT.value,
            amount=amount,
            currency=settings.currency,
            status=TransactionStatus.PENDING.value,
            payment_method="mpesa",
            transaction_id=f"PAYOUT_{_millis(datetime.now(timezone.utc))}_{booking_id}",
            reference=reference,
            description=f"Cleaner payout for cleaning service - {booking.get('service_category')}",
            metadata=dict(account),
        )
        await booking_queries.set_payout_status(conn, booking_id, PayoutStatus.PENDING.value)

        logger.info(
            f"Attempting M-Pesa payout: KSh {amount}",
            extra={"booking_id": str(booking_id), "amount": amount, "reference": reference},
        )
        result = await gateway.transfer(
            amount=amount,
            account=account["mpesa_phone"],
            narrative=f"Cleaner payout for {reference}",
        )
        if isinstance(result, GatewayFailure):
            raise GatewayError(result.reason)

        processed_at = datetime.now(timezone.utc)
        Settlement.from_record(booking).start_disbursement().disburse(processed_at)
        entry = await transaction_queries.complete_transaction(
            conn, pending["entry_id"], result.id, processed_at, {"intasend_response": result.raw}
        )
        await booking_queries.set_payout_status(
            conn, booking_id, PayoutStatus.PROCESSED.value, processed_at
        )
        logger.info(
            "M-Pesa payout succeeded",
            extra={"booking_id": str(booking_id), "amount": amount, "transaction_id": result.id},
        )
        return PayoutOutcome(PayoutStatus.PROCESSED, entry)
    except Exception as e:
        error = e.message if isinstance(e, (ConfigurationError, GatewayError)) else str(e) or type(e).__name__
        logger.error(
            "Cleaner payout failed",
            exc_info=not isinstance(e, (ConfigurationError, GatewayError)),
            extra={"booking_id": str(booking_id), "amount": amount, "error": error},
        )
        entry = await _record_payout_failure(conn, booking, amount, pending, error)
        return PayoutOutcome(PayoutStatus.FAILED, entry, error)


async def _record_payout_failure(
    conn: asyncpg.Connection,
    booking: Dict[str, Any],
    amount: int,
    pending: Optional[Dict[str, Any]],
    error: str,
) -> Optional[Dict[str, Any]]:
    booking_id = booking["booking_id"]
    now = datetime.now(timezone.utc)
    Settlement.from_record(booking).fail_disbursement()

    failed_entry = None
    try:
        if pending:
            await transaction_queries.fail_transaction(
                conn, pending["entry_id"], {"error": error, "failed_at": now.isoformat()}
            )
        failed_entry = await transaction_queries.create_transaction(
            conn,
            booking_id=booking_id,
            client_id=booking["client_id"],
            cleaner_id=booking.get("cleaner_id"),
            type=TransactionType.PAYOUT.value,
            amount=amount,
            currency=settings.currency,
            status=TransactionStatus.FAILED.value,
            payment_method="mpesa",
            transaction_id=f"FAILED_PAYOUT_{_millis(now)}_{booking_id}",
            reference=f"FAILED_{payout_reference(booking_id)}",
            description=f"Failed cleaner payout for cleaning service - {booking.get('service_category')}",
            metadata={
                "error": error,
                "original_amount": amount,
                "timestamp": now.isoformat(),
                "requires_manual_intervention": True,
            },
        )
        await booking_queries.set_payout_status(conn, booking_id, PayoutStatus.FAILED.value)
    except Exception:
        logger.exception(
            "Could not journal payout failure",
            extra={"booking_id": str(booking_id), "amount": amount},
        )

    await alert_payout_failure(conn, booking, amount, error)
    return failed_entry


async def resolve_failed_payout(
    conn: asyncpg.Connection,
    booking_id: Any,
    mpesa_receipt: str,
    note: Optional[str],
    actor: dict,
) -> Dict[str, Any]:
    """Record that an operator paid the cleaner by hand after a failed payout."""
    booking = await get_booking_or_404(conn, booking_id)
    processed_at = datetime.now(timezone.utc)
    Settlement.from_record(booking).resolve_disbursement(processed_at)

    async with conn.transaction():
        updated = await booking_queries.set_payout_status(
            conn, booking["booking_id"], PayoutStatus.PROCESSED.value, processed_at,
            expected_status=PayoutStatus.FAILED.value,
        )
        if updated is None:
            raise InvalidTransition("Only a failed payout can be resolved manually")
        entry = await transaction_queries.create_transaction(
            conn,
            booking_id=booking["booking_id"],
            client_id=booking["client_id"],
            cleaner_id=booking.get("cleaner_id"),
            type=TransactionType.PAYOUT.value,
            amount=booking["cleaner_payout"],
            currency=settings.currency,
            status=TransactionStatus.COMPLETED.value,
            payment_method="mpesa",
            transaction_id=mpesa_receipt,
            reference=f"MANUAL_{payout_reference(booking['booking_id'])}",
            description=f"Manual cleaner payout for cleaning service - {booking.get('service_category')}",
            metadata={"note": note, "resolved_by": str(actor["id"])},
            processed_at=processed_at,
        )

    logger.info(
        "Failed payout resolved manually",
        extra={"booking_id": str(booking["booking_id"]), "transaction_id": mpesa_receipt},
    )
    return {"booking": updated, "transaction": entry}
