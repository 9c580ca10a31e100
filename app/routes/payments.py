# app/routes/payments.py
import json
import logging
from typing import List
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaError

from ..config import settings
from ..database import get_db
from ..models.auth import Role
from ..models.payment import (
    PaymentInitiate,
    PaymentInitiateOut,
    PaymentStatusOut,
    PayoutResolve,
    RefundRequest,
    WebhookEvent,
)
from ..models.transaction import TransactionOut
from ..queries import transaction_queries
from ..services.intasend import IntaSendGateway, get_gateway
from ..services.payments import (
    check_booking_access,
    get_booking_or_404,
    get_payment_status,
    initiate_payment,
    refund_payment,
)
from ..services.payouts import resolve_failed_payout
from ..services.webhook import reconcile_payment_event
from ..utils.auth import get_current_user, require_roles

payments_router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger(__name__)

@payments_router.post("/initiate", response_model=PaymentInitiateOut)
async def initiate(
    payload: PaymentInitiate,
    current_user: dict = Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_db),
    gateway: IntaSendGateway = Depends(get_gateway)
):
    return await initiate_payment(
        conn, gateway, payload.booking_id, current_user, payload.phone_number
    )

@payments_router.get("/status/{booking_id}", response_model=PaymentStatusOut)
async def payment_status(
    booking_id: UUID,
    current_user: dict = Depends(require_roles(Role.CLIENT, Role.ADMIN)),
    conn: asyncpg.Connection = Depends(get_db)
):
    return await get_payment_status(conn, booking_id, current_user)

@payments_router.post("/webhook")
async def payment_webhook(
    request: Request,
    conn: asyncpg.Connection = Depends(get_db),
    gateway: IntaSendGateway = Depends(get_gateway)
):
    """IntaSend callback. Any structurally valid event is acknowledged with
    200 so payout trouble never makes the gateway resend the payment."""
    raw_body = await request.body()
    try:
        data = json.loads(raw_body)
        if not isinstance(data, dict):
            raise ValueError("webhook body must be a JSON object")
        event = WebhookEvent.model_validate(data)
    except (ValueError, SchemaError) as e:
        logger.warning("Webhook rejected: malformed payload", extra={"error": str(e)})
        return JSONResponse(status_code=400, content={"success": False})

    if settings.intasend_webhook_challenge and event.challenge != settings.intasend_webhook_challenge:
        logger.warning("Webhook rejected: challenge mismatch", extra={"outcome": event.outcome})
        return JSONResponse(status_code=403, content={"success": False})

    outcome = await reconcile_payment_event(conn, gateway, event)
    logger.info(
        f"Webhook handled: {outcome.reason}",
        extra={"booking_id": outcome.booking_id, "outcome": event.outcome}
    )
    return {"success": True}

@payments_router.get("/transactions/{booking_id}", response_model=List[TransactionOut])
async def booking_transactions(
    booking_id: UUID,
    current_user: dict = Depends(get_current_user),
    conn: asyncpg.Connection = Depends(get_db)
):
    booking = await get_booking_or_404(conn, booking_id)
    check_booking_access(booking, current_user)
    return await transaction_queries.get_booking_transactions(conn, booking_id)

@payments_router.get("/payouts/failed", response_model=List[TransactionOut])
async def failed_payouts(
    current_user: dict = Depends(require_roles(Role.ADMIN)),
    conn: asyncpg.Connection = Depends(get_db)
):
    return await transaction_queries.get_failed_payouts(conn)

@payments_router.post("/payouts/{booking_id}/resolve", response_model=TransactionOut)
async def resolve_payout(
    booking_id: UUID,
    payload: PayoutResolve,
    current_user: dict = Depends(require_roles(Role.ADMIN)),
    conn: asyncpg.Connection = Depends(get_db)
):
    result = await resolve_failed_payout(
        conn, booking_id, payload.mpesa_receipt, payload.note, current_user
    )
    return result["transaction"]

@payments_router.post("/{booking_id}/refund", response_model=TransactionOut)
async def refund(
    booking_id: UUID,
    payload: RefundRequest,
    current_user: dict = Depends(require_roles(Role.ADMIN)),
    conn: asyncpg.Connection = Depends(get_db)
):
    result = await refund_payment(conn, booking_id, payload.reason, current_user)
    return result["transaction"]

__all__ = ["payments_router"]
