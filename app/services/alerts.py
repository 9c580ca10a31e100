# app/services/alerts.py
import logging
from typing import Any, Dict

import asyncpg

from ..queries import user_queries

logger = logging.getLogger("app.alerts")


async def alert_payout_failure(
    conn: asyncpg.Connection,
    booking: Dict[str, Any],
    amount: int,
    error: str,
) -> None:
    """Client has been charged but the cleaner has not been paid: page the operators."""
    booking_id = str(booking["booking_id"])
    logger.critical(
        f"CLEANER PAYOUT FAILED for JOB_{booking_id}: client charged, cleaner NOT paid. "
        f"Manual M-Pesa payout of KSh {amount} required.",
        extra={
            "booking_id": booking_id,
            "cleaner_id": str(booking.get("cleaner_id")),
            "amount": amount,
            "error": error,
            "requires_manual_intervention": True,
        },
    )

    message = (
        f"Payout of KSh {amount} for booking {booking_id} failed ({error}). "
        "Verify the cleaner's M-Pesa number and pay manually."
    )
    try:
        admin_ids = await user_queries.get_admin_ids(conn)
        if admin_ids:
            await user_queries.create_notifications(conn, message, admin_ids)
    except (asyncpg.PostgresError, OSError):
        # The CRITICAL log line above is the alert of record
        logger.exception("Could not write payout failure notifications", extra={"booking_id": booking_id})
