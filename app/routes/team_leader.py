# app/routes/team_leader.py
from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import Optional
import asyncpg

from ..config import settings
from ..database import get_db
from ..models.auth import Role
from ..models.payment import TeamLeaderEarningsOut
from ..queries import booking_queries
from ..services.pricing import team_leader_commission
from ..utils.auth import require_roles

team_leader_router = APIRouter(prefix="/team-leader", tags=["Team Leader"])

@team_leader_router.get("/earnings", response_model=TeamLeaderEarningsOut)
async def get_earnings(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: dict = Depends(require_roles(Role.TEAM_LEADER)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """Commission owed to a team leader on their crew's paid jobs"""
    bookings = await booking_queries.get_team_leader_paid_bookings(
        conn, current_user["id"], start_date, end_date
    )

    rows = []
    for b in bookings:
        rows.append({
            "booking_id": str(b["booking_id"]),
            "cleaner_id": str(b["cleaner_id"]) if b["cleaner_id"] else None,
            "service_category": b["service_category"],
            "total_price": b["total_price"],
            "commission": team_leader_commission(b["total_price"]),
            "paid_at": b["paid_at"].isoformat() if b["paid_at"] else None,
        })

    return {
        "success": True,
        "commission_rate": settings.team_leader_commission_rate,
        "total_earnings": sum(r["commission"] for r in rows),
        "booking_count": len(rows),
        "bookings": rows,
    }

__all__ = ["team_leader_router"]
