# app/services/webhook.py
"""Reconcile IntaSend payment notifications with the booking ledger.

Deliveries are at-least-once and may arrive out of order. The paid
transition is a compare-and-set in the database, so duplicate or
concurrent deliveries for the same booking settle exactly once.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import asyncpg

from ..config import settings
from ..errors import DuplicateEventError, InvalidTransition
from ..models.payment import WebhookEvent
from ..models.transaction import TransactionStatus, TransactionType
from ..queries import booking_queries, transaction_queries
from ..utils.log_config import booking_log_context
from .intasend import IntaSendGateway
from .payments import payment_reference
from .payouts import PayoutOutcome, process_payout
from .pricing import split_price
from .settlement import Settlement

logger = logging.getLogger(__name__)

SUCCESS_OUTCOMES = {"COMPLETE", "COMPLETED", "SUCCESS"}


@dataclass(frozen=True)
class WebhookOutcome:
    processed: bool
    reason: str
    booking_id: Optional[str] = None
    payout: Optional[PayoutOutcome] = None


def _booking_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def _settle(conn: asyncpg.Connection, booking: Dict[str, Any], event: WebhookEvent) -> Dict[str, Any]:
    """Flip the booking to paid and journal the payment in one DB transaction."""
    paid_at = datetime.now(timezone.utc)
    Settlement.from_record(booking).receive_payment(paid_at)
    split = split_price(booking["price"])

    async with conn.transaction():
        updated = await booking_queries.mark_booking_paid(
            conn, booking["booking_id"], event.external_id, split, paid_at
        )
        if updated is None:
            raise DuplicateEventError(f"Payment already processed for {payment_reference(booking['booking_id'])}")

        await transaction_queries.create_transaction(
            conn,
            booking_id=updated["booking_id"],
            client_id=updated["client_id"],
            cleaner_id=updated.get("cleaner_id"),
            type=TransactionType.PAYMENT.value,
            amount=split.total_price,
            currency=settings.currency,
            status=TransactionStatus.COMPLETED.value,
            payment_method=updated["payment_method"],
            transaction_id=event.external_id,
            reference=payment_reference(updated["booking_id"]),
            description=f"Payment for cleaning service - {updated.get('service_category')}",
            metadata={
                "intasend_data": event.model_dump(mode="json"),
                "split": {
                    "platform_fee": split.platform_fee,
                    "cleaner_payout": split.cleaner_payout,
                },
            },
            processed_at=paid_at,
        )

    logger.info(
        f"Payment SUCCESS: KSh {split.total_price} for {payment_reference(updated['booking_id'])}",
        extra={
            "booking_id": str(updated["booking_id"]),
            "amount": split.total_price,
            "transaction_id": event.external_id,
        },
    )
    return updated


async def reconcile_payment_event(
    conn: asyncpg.Connection,
    gateway: IntaSendGateway,
    event: WebhookEvent,
) -> WebhookOutcome:
    """Apply one gateway notification. Payout problems never escape from here."""
    if event.outcome not in SUCCESS_OUTCOMES:
        logger.info("Webhook ignored: non-success outcome", extra={"outcome": event.outcome})
        return WebhookOutcome(processed=False, reason=f"outcome {event.outcome}")

    booking_id = _booking_uuid(event.booking_id)
    if booking_id is None:
        logger.warning("Webhook: no usable booking_id in metadata", extra={"outcome": event.outcome})
        return WebhookOutcome(processed=False, reason="missing booking_id")

    with booking_log_context(booking_id):
        return await _reconcile_booking(conn, gateway, event, booking_id)


async def _reconcile_booking(
    conn: asyncpg.Connection,
    gateway: IntaSendGateway,
    event: WebhookEvent,
    booking_id: UUID,
) -> WebhookOutcome:
    booking = await booking_queries.get_booking(conn, booking_id)
    if not booking:
        logger.warning("Webhook: booking not found")
        return WebhookOutcome(processed=False, reason="booking not found", booking_id=str(booking_id))

    try:
        updated = await _settle(conn, booking, event)
    except (DuplicateEventError, InvalidTransition) as e:
        logger.info(f"Webhook no-op: {e.message}")
        return WebhookOutcome(processed=False, reason=e.message, booking_id=str(booking_id))

    payout = await process_payout(conn, gateway, updated, updated["cleaner_payout"])
    return WebhookOutcome(processed=True, reason="settled", booking_id=str(booking_id), payout=payout)
