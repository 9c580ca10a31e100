"""Structured log output and the request/booking context carried on it."""
import io
import json
import logging
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.models.payment import WebhookEvent
from app.services import webhook
from app.services.webhook import reconcile_payment_event
from app.utils.log_config import (
    LogContextFilter,
    SettlementJsonFormatter,
    booking_log_context,
    current_request_id,
    request_log_context,
)


@pytest.fixture
def captured():
    """Attach a JSON handler to a throwaway logger and return (logger, lines)."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(SettlementJsonFormatter())
    handler.addFilter(LogContextFilter())
    logger = logging.getLogger(f"cleanpay.test.{uuid4().hex}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)

    def lines():
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    return logger, lines


def test_extra_fields_are_emitted(captured):
    logger, lines = captured

    logger.info("M-Pesa payout succeeded", extra={"amount": 3000, "transaction_id": "TRK-1", "ignored": "x"})

    [entry] = lines()
    assert entry["level"] == "INFO"
    assert entry["message"] == "M-Pesa payout succeeded"
    assert entry["amount"] == 3000
    assert entry["transaction_id"] == "TRK-1"
    assert "ignored" not in entry
    assert "request_id" not in entry


def test_context_is_attached_to_records(captured):
    logger, lines = captured
    booking_id = uuid4()

    with request_log_context("req-42"), booking_log_context(booking_id):
        logger.warning("Webhook: booking not found")
    logger.info("after")

    first, second = lines()
    assert first["request_id"] == "req-42"
    assert first["booking_id"] == str(booking_id)
    assert "request_id" not in second
    assert "booking_id" not in second


def test_explicit_extra_wins_over_context(captured):
    logger, lines = captured

    with booking_log_context("outer"):
        logger.info("Booking cancelled", extra={"booking_id": "inner"})

    assert lines()[0]["booking_id"] == "inner"


def test_exception_is_serialized(captured):
    logger, lines = captured

    try:
        raise RuntimeError("connection reset")
    except RuntimeError:
        logger.exception("Could not journal payout failure")

    assert "connection reset" in lines()[0]["exception"]


def test_request_id_header_is_echoed():
    with request_log_context("outside"):
        client = TestClient(create_app())
        response = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert current_request_id() == "outside"

    assert response.headers["X-Request-ID"] == "abc-123"


def test_request_id_is_generated_when_missing():
    response = TestClient(create_app()).get("/")

    assert len(response.headers["X-Request-ID"]) == 32


@pytest.mark.asyncio
async def test_webhook_logs_carry_booking_id(ledger, conn, gateway, monkeypatch):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(SettlementJsonFormatter())
    handler.addFilter(LogContextFilter())
    monkeypatch.setattr(webhook.logger, "handlers", [handler])
    monkeypatch.setattr(webhook.logger, "propagate", False)
    booking_id = uuid4()

    await reconcile_payment_event(conn, gateway, WebhookEvent.model_validate({
        "status": "COMPLETE",
        "api_ref": f"JOB_{booking_id}",
    }))

    [entry] = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert entry["message"] == "Webhook: booking not found"
    assert entry["booking_id"] == str(booking_id)
