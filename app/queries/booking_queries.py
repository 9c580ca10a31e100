# app/queries/booking_queries.py
from typing import Optional, Dict, Any, List
import asyncpg
from datetime import datetime

from ..services.pricing import PricingSplit

def _row(record: Optional[asyncpg.Record]) -> Optional[Dict[str, Any]]:
    return dict(record) if record else None

async def get_booking(
    conn: asyncpg.Connection,
    booking_id: str
) -> Optional[Dict[str, Any]]:
    """Get a booking by its ID"""
    return _row(await conn.fetchrow(
        "SELECT * FROM booking WHERE booking_id = $1",
        booking_id
    ))

async def get_client_unpaid_bookings(
    conn: asyncpg.Connection,
    client_id: str
) -> List[Dict[str, Any]]:
    """Confirmed jobs the client can still pay for"""
    rows = await conn.fetch(
        """
        SELECT *
        FROM booking
        WHERE client_id = $1
          AND paid = FALSE
          AND payment_status IN ('pending', 'failed')
          AND status = 'confirmed'
        ORDER BY created_at DESC
        """,
        client_id
    )
    return [dict(r) for r in rows]

async def update_booking_status(
    conn: asyncpg.Connection,
    booking_id: str,
    expected_status: str,
    status: str
) -> Optional[Dict[str, Any]]:
    """Move the booking lifecycle; returns None if the status changed underneath us"""
    return _row(await conn.fetchrow(
        """
        UPDATE booking
        SET status = $3,
            completed_at = CASE WHEN $3 = 'completed' THEN NOW() ELSE completed_at END,
            updated_at = NOW()
        WHERE booking_id = $1 AND status = $2 AND NOT (paid AND $3 = 'cancelled')
        RETURNING *
        """,
        booking_id, expected_status, status
    ))

async def mark_booking_paid(
    conn: asyncpg.Connection,
    booking_id: str,
    transaction_id: str,
    split: PricingSplit,
    paid_at: datetime
) -> Optional[Dict[str, Any]]:
    """Compare-and-set the paid transition.

    Only one caller can flip paid from FALSE; concurrent duplicates get None.
    """
    return _row(await conn.fetchrow(
        """
        UPDATE booking
        SET paid = TRUE,
            paid_at = $2,
            payment_status = 'paid',
            transaction_id = $3,
            total_price = $4,
            platform_fee = $5,
            cleaner_payout = $6,
            updated_at = NOW()
        WHERE booking_id = $1
          AND paid = FALSE
          AND payment_status IN ('pending', 'failed')
        RETURNING *
        """,
        booking_id, paid_at, transaction_id,
        split.total_price, split.platform_fee, split.cleaner_payout
    ))

async def set_payout_status(
    conn: asyncpg.Connection,
    booking_id: str,
    payout_status: str,
    processed_at: Optional[datetime] = None,
    expected_status: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Update payout fields of a paid booking, optionally only from expected_status"""
    return _row(await conn.fetchrow(
        """
        UPDATE booking
        SET payout_status = $2,
            payout_processed_at = $3,
            updated_at = NOW()
        WHERE booking_id = $1
          AND paid = TRUE
          AND ($4::text IS NULL OR payout_status = $4)
        RETURNING *
        """,
        booking_id, payout_status, processed_at, expected_status
    ))

async def mark_booking_refunded(
    conn: asyncpg.Connection,
    booking_id: str
) -> Optional[Dict[str, Any]]:
    """Compare-and-set paid -> refunded"""
    return _row(await conn.fetchrow(
        """
        UPDATE booking
        SET paid = FALSE,
            payment_status = 'refunded',
            updated_at = NOW()
        WHERE booking_id = $1 AND paid = TRUE AND payment_status = 'paid'
        RETURNING *
        """,
        booking_id
    ))

async def get_team_leader_paid_bookings(
    conn: asyncpg.Connection,
    team_leader_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Paid bookings handled by a team leader's crew, optionally within a window"""
    query = """
        SELECT booking_id, cleaner_id, service_category, total_price, paid_at, created_at
        FROM booking
        WHERE team_leader_id = $1 AND paid = TRUE
    """
    params: List[Any] = [team_leader_id]

    if start_date:
        params.append(start_date)
        query += f" AND created_at >= ${len(params)}"
    if end_date:
        params.append(end_date)
        query += f" AND created_at <= ${len(params)}"

    query += " ORDER BY created_at DESC"

    rows = await conn.fetch(query, *params)
    return [dict(r) for r in rows]

async def create_booking(
    conn: asyncpg.Connection,
    client_id: str,
    service_category: str,
    price: int,
    payment_method: str,
    team_leader_id: Optional[str] = None
) -> Dict[str, Any]:
    """New booking request; always starts pending and unassigned"""
    return _row(await conn.fetchrow(
        """
        INSERT INTO booking (client_id, service_category, price, payment_method, team_leader_id)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING *
        """,
        client_id, service_category, price, payment_method, team_leader_id
    ))

async def assign_cleaner(
    conn: asyncpg.Connection,
    booking_id: str,
    cleaner_id: str
) -> Optional[Dict[str, Any]]:
    """Compare-and-set pending -> confirmed with the cleaner attached.

    Returns None if another cleaner got the booking first or it is no longer pending.
    """
    return _row(await conn.fetchrow(
        """
        UPDATE booking
        SET cleaner_id = $2,
            status = 'confirmed',
            updated_at = NOW()
        WHERE booking_id = $1
          AND status = 'pending'
          AND (cleaner_id IS NULL OR cleaner_id = $2)
        RETURNING *
        """,
        booking_id, cleaner_id
    ))
