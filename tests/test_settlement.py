"""Tests for the booking settlement state machine."""
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.errors import InvalidTransition
from app.models.booking import BookingStatus, PaymentStatus, PayoutStatus
from app.services.settlement import Settlement


def _paid(**kwargs):
    return Settlement(
        status=kwargs.get("status", BookingStatus.COMPLETED),
        payment_status=PaymentStatus.PAID,
        paid_at=datetime.now(timezone.utc),
        payout_status=kwargs.get("payout_status", PayoutStatus.PENDING),
    )


class TestFromRecord:
    def test_reads_consistent_row(self):
        record = {
            "booking_id": uuid4(),
            "status": "confirmed",
            "payment_status": "pending",
            "paid": False,
            "paid_at": None,
            "payout_status": "pending",
            "payout_processed_at": None,
        }
        settlement = Settlement.from_record(record)
        assert settlement.status == BookingStatus.CONFIRMED
        assert settlement.paid is False

    def test_rejects_paid_flag_without_paid_status(self):
        record = {
            "booking_id": uuid4(),
            "status": "confirmed",
            "payment_status": "pending",
            "paid": True,
            "paid_at": datetime.now(timezone.utc),
            "payout_status": "pending",
        }
        with pytest.raises(InvalidTransition):
            Settlement.from_record(record)

    def test_paid_requires_paid_at(self):
        with pytest.raises(InvalidTransition):
            Settlement(status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.PAID)


class TestLifecycle:
    def test_confirm_pending_booking(self):
        assert Settlement(status=BookingStatus.PENDING).confirm().status == BookingStatus.CONFIRMED

    def test_cannot_confirm_completed_booking(self):
        with pytest.raises(InvalidTransition):
            Settlement(status=BookingStatus.COMPLETED).confirm()

    def test_cannot_cancel_paid_booking(self):
        with pytest.raises(InvalidTransition):
            _paid(status=BookingStatus.CONFIRMED).advance(BookingStatus.CANCELLED)

    def test_complete_from_in_progress(self):
        settlement = Settlement(status=BookingStatus.IN_PROGRESS).advance(BookingStatus.COMPLETED)
        assert settlement.status == BookingStatus.COMPLETED


class TestPayable:
    @pytest.mark.parametrize("status", [
        BookingStatus.PENDING, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED,
    ])
    def test_only_confirmed_is_payable(self, status):
        with pytest.raises(InvalidTransition, match="confirmed"):
            Settlement(status=status).ensure_payable()

    def test_confirmed_is_payable(self):
        Settlement(status=BookingStatus.CONFIRMED).ensure_payable()

    def test_already_paid(self):
        with pytest.raises(InvalidTransition, match="already paid"):
            _paid(status=BookingStatus.CONFIRMED).ensure_payable()

    def test_failed_collection_can_be_retried(self):
        Settlement(status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.FAILED).ensure_payable()

    def test_refunded_booking_not_payable(self):
        with pytest.raises(InvalidTransition, match="refunded"):
            Settlement(status=BookingStatus.CONFIRMED, payment_status=PaymentStatus.REFUNDED).ensure_payable()


class TestPayment:
    def test_receive_payment_sets_paid_at(self):
        at = datetime(2026, 1, 5, tzinfo=timezone.utc)
        settlement = Settlement(status=BookingStatus.CONFIRMED).receive_payment(at)
        assert settlement.paid
        assert settlement.paid_at == at

    def test_second_payment_rejected(self):
        with pytest.raises(InvalidTransition):
            _paid().receive_payment()

    def test_refund_then_no_resettlement(self):
        refunded = _paid().refund()
        assert refunded.payment_status == PaymentStatus.REFUNDED
        assert not refunded.paid
        with pytest.raises(InvalidTransition):
            refunded.receive_payment()

    def test_refund_requires_payment(self):
        with pytest.raises(InvalidTransition):
            Settlement(status=BookingStatus.CONFIRMED).refund()


class TestDisbursement:
    def test_payout_before_payment_rejected(self):
        with pytest.raises(InvalidTransition):
            Settlement(status=BookingStatus.COMPLETED).start_disbursement()

    def test_disburse(self):
        settlement = _paid().start_disbursement().disburse()
        assert settlement.payout_status == PayoutStatus.PROCESSED
        assert settlement.payout_processed_at is not None

    def test_processed_payout_cannot_fail(self):
        with pytest.raises(InvalidTransition):
            _paid(payout_status=PayoutStatus.PROCESSED).fail_disbursement()

    def test_manual_resolution_only_after_failure(self):
        with pytest.raises(InvalidTransition):
            _paid().resolve_disbursement()
        resolved = _paid().fail_disbursement().resolve_disbursement()
        assert resolved.payout_status == PayoutStatus.PROCESSED
