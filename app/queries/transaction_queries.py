# app/queries/transaction_queries.py
from typing import Optional, Dict, Any, List
import asyncpg
from datetime import datetime

async def create_transaction(
    conn: asyncpg.Connection,
    booking_id: str,
    client_id: str,
    cleaner_id: Optional[str],
    type: str,
    amount: int,
    currency: str,
    status: str,
    payment_method: str,
    transaction_id: str,
    reference: str,
    description: str,
    metadata: Dict[str, Any],
    processed_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """Append a journal entry"""
    row = await conn.fetchrow(
        """
        INSERT INTO transaction_journal (
            booking_id, client_id, cleaner_id, type, amount, currency,
            status, payment_method, transaction_id, reference,
            description, metadata, processed_at
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
        RETURNING *
        """,
        booking_id, client_id, cleaner_id, type, amount, currency,
        status, payment_method, transaction_id, reference,
        description, metadata, processed_at
    )
    return dict(row)

async def complete_transaction(
    conn: asyncpg.Connection,
    entry_id: str,
    transaction_id: str,
    processed_at: datetime,
    metadata: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Close a pending entry as completed; metadata is merged into the existing payload"""
    row = await conn.fetchrow(
        """
        UPDATE transaction_journal
        SET status = 'completed',
            transaction_id = $2,
            processed_at = $3,
            metadata = metadata || $4
        WHERE entry_id = $1 AND status = 'pending'
        RETURNING *
        """,
        entry_id, transaction_id, processed_at, metadata
    )
    return dict(row) if row else None

async def fail_transaction(
    conn: asyncpg.Connection,
    entry_id: str,
    metadata: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Close a pending entry as failed"""
    row = await conn.fetchrow(
        """
        UPDATE transaction_journal
        SET status = 'failed',
            metadata = metadata || $2
        WHERE entry_id = $1 AND status = 'pending'
        RETURNING *
        """,
        entry_id, metadata
    )
    return dict(row) if row else None

async def get_booking_transactions(
    conn: asyncpg.Connection,
    booking_id: str
) -> List[Dict[str, Any]]:
    """Journal of one booking, oldest first"""
    rows = await conn.fetch(
        """
        SELECT *
        FROM transaction_journal
        WHERE booking_id = $1
        ORDER BY created_at ASC
        """,
        booking_id
    )
    return [dict(r) for r in rows]

async def get_failed_payouts(
    conn: asyncpg.Connection
) -> List[Dict[str, Any]]:
    """Failed payout records for bookings that are still awaiting a manual payout"""
    rows = await conn.fetch(
        """
        SELECT t.*
        FROM transaction_journal t
        JOIN booking b ON b.booking_id = t.booking_id
        WHERE t.type = 'payout'
          AND t.status = 'failed'
          AND t.reference LIKE 'FAILED_%'
          AND b.payout_status = 'failed'
        ORDER BY t.created_at DESC
        """
    )
    return [dict(r) for r in rows]
