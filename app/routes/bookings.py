# app/routes/bookings.py
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from uuid import UUID
import asyncpg
import logging

from ..database import get_db
from ..errors import InvalidTransition
from ..models.auth import Role
from ..models.booking import (
    BookingAssign,
    BookingCreate,
    BookingOut,
    BookingPayRequest,
    BookingStatus,
    BookingStatusUpdate
)
from ..models.payment import PaymentInitiateOut
from ..queries import booking_queries
from ..services import bookings as booking_service
from ..services.intasend import IntaSendGateway, get_gateway
from ..services.payments import check_booking_access, get_booking_or_404, initiate_payment
from ..services.settlement import Settlement
from ..utils.auth import get_current_user, require_roles

bookings_router = APIRouter(prefix="/bookings", tags=["Bookings"])
logger = logging.getLogger(__name__)

@bookings_router.post("/", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    current_user: dict = Depends(require_roles(Role.CLIENT)),
    conn: asyncpg.Connection = Depends(get_db)
):
    return await booking_service.create_booking(conn, payload, current_user)

@bookings_router.get("/unpaid", response_model=List[BookingOut])
async def get_unpaid_bookings(
    current_user: dict = Depends(require_roles(Role.CLIENT)),
    conn: asyncpg.Connection = Depends(get_db)
):
    return await booking_queries.get_client_unpaid_bookings(conn, current_user["id"])

@bookings_router.get("/{booking_id}", response_model=BookingOut)
async def get_booking_by_id(
    booking_id: UUID,
    current_user: dict = Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_db)
):
    booking = await get_booking_or_404(conn, booking_id)
    check_booking_access(booking, current_user)
    return booking

@bookings_router.put("/{booking_id}/status", response_model=BookingOut)
async def update_booking_status(
    booking_id: UUID,
    status_update: BookingStatusUpdate,
    current_user: dict = Depends(require_roles(Role.CLEANER, Role.ADMIN)),
    conn: asyncpg.Connection = Depends(get_db)
):
    booking = await get_booking_or_404(conn, booking_id)
    check_booking_access(booking, current_user)

    current = Settlement.from_record(booking)
    target = current.advance(status_update.status)
    if target.status == BookingStatus.CONFIRMED and not booking["cleaner_id"]:
        raise InvalidTransition("Assign a cleaner to confirm the booking")

    updated = await booking_queries.update_booking_status(
        conn, booking_id, current.status.value, target.status.value
    )
    if updated is None:
        raise InvalidTransition("Booking changed while updating; reload and retry")

    logger.info(
        f"Booking moved {current.status.value} -> {target.status.value}",
        extra={"booking_id": str(booking_id)}
    )
    return updated

@bookings_router.post("/{booking_id}/assign", response_model=BookingOut)
async def assign_cleaner(
    booking_id: UUID,
    payload: Optional[BookingAssign] = None,
    current_user: dict = Depends(require_roles(Role.CLEANER, Role.ADMIN)),
    conn: asyncpg.Connection = Depends(get_db)
):
    """Cleaner accepts a pending job, or an admin assigns one"""
    return await booking_service.assign_cleaner(
        conn, booking_id, current_user, payload.cleaner_id if payload else None
    )

@bookings_router.delete("/{booking_id}")
async def cancel_booking(
    booking_id: UUID,
    current_user: dict = Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_db)
):
    await booking_service.cancel_booking(conn, booking_id, current_user)
    return {"success": True, "message": "Booking cancelled"}

@bookings_router.post("/{booking_id}/pay", response_model=PaymentInitiateOut)
async def pay_for_booking(
    booking_id: UUID,
    payload: Optional[BookingPayRequest] = None,
    current_user: dict = Depends(require_roles(Role.CLIENT)),
    conn: asyncpg.Connection = Depends(get_db),
    gateway: IntaSendGateway = Depends(get_gateway)
):
    return await initiate_payment(
        conn,
        gateway,
        booking_id,
        current_user,
        (payload and payload.phone_number) or current_user.get("phone"),
    )

__all__ = ["bookings_router"]
