# app/services/bookings.py
"""Booking lifecycle driven by clients, cleaners and admins.

Payment and payout fields are never touched here.
"""
import logging
from typing import Any, Dict, Optional

import asyncpg

from ..errors import AuthorizationError, InvalidTransition, ValidationError
from ..models.auth import Role
from ..models.booking import BookingCreate, BookingStatus
from ..queries import booking_queries, user_queries
from .payments import check_booking_access, get_booking_or_404, normalize_id
from .settlement import Settlement

logger = logging.getLogger(__name__)


async def create_booking(conn: asyncpg.Connection, payload: BookingCreate, actor: dict) -> Dict[str, Any]:
    booking = await booking_queries.create_booking(
        conn,
        actor["id"],
        payload.service_category.value,
        payload.price,
        payload.payment_method.value,
        payload.team_leader_id,
    )
    logger.info(
        "Booking requested",
        extra={"booking_id": str(booking["booking_id"]), "client_id": str(actor["id"]), "amount": payload.price},
    )
    return booking


async def assign_cleaner(
    conn: asyncpg.Connection,
    booking_id: Any,
    actor: dict,
    cleaner_id: Optional[Any] = None,
) -> Dict[str, Any]:
    """Attach a cleaner and confirm the booking.

    A cleaner can only accept a job for themselves; an admin must name the cleaner.
    """
    if actor["role"] == Role.CLEANER:
        if cleaner_id is not None and normalize_id(cleaner_id) != normalize_id(actor["id"]):
            raise AuthorizationError("Cleaners can only accept bookings for themselves")
        cleaner_id = actor["id"]
    elif actor["role"] == Role.ADMIN:
        if cleaner_id is None:
            raise ValidationError("cleaner_id is required")
        cleaner = await user_queries.get_user_by_id(conn, cleaner_id)
        if not cleaner or cleaner["role"] != Role.CLEANER.value or not cleaner["is_active"]:
            raise ValidationError("Cleaner not found")
    else:
        raise AuthorizationError("Not authorized")

    booking = await get_booking_or_404(conn, booking_id)
    Settlement.from_record(booking).confirm()

    updated = await booking_queries.assign_cleaner(conn, booking["booking_id"], cleaner_id)
    if updated is None:
        raise InvalidTransition("Booking is no longer open for assignment")

    logger.info(
        "Cleaner assigned, booking confirmed",
        extra={"booking_id": str(booking["booking_id"]), "cleaner_id": str(cleaner_id)},
    )
    return updated


async def cancel_booking(conn: asyncpg.Connection, booking_id: Any, actor: dict) -> Dict[str, Any]:
    """Client or admin cancellation; a paid booking must be refunded instead."""
    booking = await get_booking_or_404(conn, booking_id)
    if actor["role"] not in (Role.CLIENT, Role.ADMIN):
        raise AuthorizationError("Not authorized")
    check_booking_access(booking, actor)

    current = Settlement.from_record(booking)
    current.advance(BookingStatus.CANCELLED)

    updated = await booking_queries.update_booking_status(
        conn, booking["booking_id"], current.status.value, BookingStatus.CANCELLED.value
    )
    if updated is None:
        raise InvalidTransition("Booking changed while cancelling; reload and retry")

    logger.info("Booking cancelled", extra={"booking_id": str(booking["booking_id"])})
    return updated
