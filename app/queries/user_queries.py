# app/queries/user_queries.py
from typing import Optional, Dict, Any, List
import asyncpg

async def get_user_by_phone(
    conn: asyncpg.Connection,
    phone: str
) -> Optional[Dict[str, Any]]:
    """Login lookup"""
    row = await conn.fetchrow(
        """
        SELECT user_id AS id, name, phone, role, password_hash, is_active
        FROM app_user
        WHERE phone = $1
        """,
        phone
    )
    return dict(row) if row else None

async def get_user_by_id(
    conn: asyncpg.Connection,
    user_id: str
) -> Optional[Dict[str, Any]]:
    row = await conn.fetchrow(
        """
        SELECT user_id AS id, name, phone, role, is_active
        FROM app_user
        WHERE user_id = $1
        """,
        user_id
    )
    return dict(row) if row else None

async def get_payout_account(
    conn: asyncpg.Connection,
    cleaner_id: str
) -> Optional[str]:
    """M-Pesa number a cleaner is paid out to, or None if the profile has none"""
    return await conn.fetchval(
        "SELECT mpesa_phone_number FROM cleaner_profile WHERE cleaner_id = $1",
        cleaner_id
    )

async def get_admin_ids(
    conn: asyncpg.Connection
) -> List[str]:
    rows = await conn.fetch(
        "SELECT user_id FROM app_user WHERE role = 'admin' AND is_active = TRUE"
    )
    return [str(r["user_id"]) for r in rows]

async def create_notifications(
    conn: asyncpg.Connection,
    message: str,
    recipient_ids: List[str]
) -> None:
    await conn.executemany(
        "INSERT INTO notification (message, recipient_id) VALUES ($1, $2)",
        [(message, recipient_id) for recipient_id in recipient_ids]
    )
