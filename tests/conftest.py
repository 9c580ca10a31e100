"""Shared fakes: an in-memory ledger standing in for the asyncpg query layer,
and a scripted IntaSend gateway."""
import asyncio
import os
from copy import deepcopy
from datetime import datetime, timezone
from uuid import uuid4

os.environ.setdefault("DATABASE_USERNAME", "test")
os.environ.setdefault("DATABASE_PASSWORD", "test")
os.environ.setdefault("DATABASE_HOSTNAME", "localhost")
os.environ.setdefault("DATABASE_PORT", "5432")
os.environ.setdefault("DATABASE_NAME", "cleanpay_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt-signing")
os.environ.setdefault("INTASEND_PUBLISHABLE_KEY", "ISPubKey_test")
os.environ.setdefault("INTASEND_SECRET_KEY", "ISSecretKey_test")

import pytest

from app.queries import booking_queries, transaction_queries, user_queries
from app.services.intasend import GatewayFailure, GatewaySuccess


class _NullTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeConnection:
    def transaction(self):
        return _NullTransaction()


class FakeLedger:
    """Implements the query functions with the same compare-and-set rules as the SQL."""

    def __init__(self):
        self.bookings = {}
        self.transactions = []
        self.accounts = {}
        self.admin_ids = []
        self.notifications = []
        self.users = {}

    # Fixture builders

    def add_booking(self, **overrides):
        booking = {
            "booking_id": uuid4(),
            "client_id": uuid4(),
            "cleaner_id": uuid4(),
            "team_leader_id": None,
            "service_category": "home-cleaning",
            "price": 5000,
            "total_price": 0,
            "platform_fee": 0,
            "cleaner_payout": 0,
            "payment_method": "mpesa",
            "payment_status": "pending",
            "paid": False,
            "paid_at": None,
            "payout_status": "pending",
            "payout_processed_at": None,
            "transaction_id": None,
            "status": "confirmed",
            "completed_at": None,
            "created_at": datetime.now(timezone.utc),
        }
        booking.update(overrides)
        self.bookings[str(booking["booking_id"])] = booking
        return booking

    def booking(self, booking_id):
        return self.bookings[str(booking_id)]

    def entries(self, booking_id=None, type=None):
        return [
            t for t in self.transactions
            if (booking_id is None or str(t["booking_id"]) == str(booking_id))
            and (type is None or t["type"] == type)
        ]

    # booking_queries

    async def get_booking(self, conn, booking_id):
        await asyncio.sleep(0)
        booking = self.bookings.get(str(booking_id))
        return deepcopy(booking) if booking else None

    async def get_client_unpaid_bookings(self, conn, client_id):
        return [
            deepcopy(b) for b in self.bookings.values()
            if str(b["client_id"]) == str(client_id)
            and not b["paid"]
            and b["payment_status"] in ("pending", "failed")
            and b["status"] == "confirmed"
        ]

    async def update_booking_status(self, conn, booking_id, expected_status, status):
        booking = self.bookings.get(str(booking_id))
        if not booking or booking["status"] != expected_status or (booking["paid"] and status == "cancelled"):
            return None
        booking["status"] = status
        if status == "completed":
            booking["completed_at"] = datetime.now(timezone.utc)
        return deepcopy(booking)

    async def mark_booking_paid(self, conn, booking_id, transaction_id, split, paid_at):
        booking = self.bookings.get(str(booking_id))
        if not booking or booking["paid"] or booking["payment_status"] not in ("pending", "failed"):
            return None
        booking.update(
            paid=True,
            paid_at=paid_at,
            payment_status="paid",
            transaction_id=transaction_id,
            total_price=split.total_price,
            platform_fee=split.platform_fee,
            cleaner_payout=split.cleaner_payout,
        )
        return deepcopy(booking)

    async def set_payout_status(self, conn, booking_id, payout_status, processed_at=None, expected_status=None):
        booking = self.bookings.get(str(booking_id))
        if not booking or not booking["paid"]:
            return None
        if expected_status is not None and booking["payout_status"] != expected_status:
            return None
        booking["payout_status"] = payout_status
        booking["payout_processed_at"] = processed_at
        return deepcopy(booking)

    async def mark_booking_refunded(self, conn, booking_id):
        booking = self.bookings.get(str(booking_id))
        if not booking or not booking["paid"] or booking["payment_status"] != "paid":
            return None
        booking.update(paid=False, payment_status="refunded")
        return deepcopy(booking)

    async def get_team_leader_paid_bookings(self, conn, team_leader_id, start_date=None, end_date=None):
        return [
            deepcopy(b) for b in self.bookings.values()
            if str(b["team_leader_id"]) == str(team_leader_id) and b["paid"]
            and (start_date is None or b["created_at"] >= start_date)
            and (end_date is None or b["created_at"] <= end_date)
        ]

    async def create_booking(self, conn, client_id, service_category, price, payment_method, team_leader_id=None):
        booking = self.add_booking(
            client_id=client_id,
            cleaner_id=None,
            team_leader_id=team_leader_id,
            service_category=service_category,
            price=price,
            payment_method=payment_method,
            status="pending",
        )
        return deepcopy(booking)

    async def assign_cleaner(self, conn, booking_id, cleaner_id):
        booking = self.bookings.get(str(booking_id))
        if not booking or booking["status"] != "pending":
            return None
        if booking["cleaner_id"] is not None and str(booking["cleaner_id"]) != str(cleaner_id):
            return None
        booking.update(cleaner_id=cleaner_id, status="confirmed")
        return deepcopy(booking)

    # transaction_queries

    async def create_transaction(self, conn, **fields):
        if fields["type"] == "payment" and self.entries(fields["booking_id"], "payment"):
            raise AssertionError("unique index transaction_journal_one_payment violated")
        entry = {
            "entry_id": uuid4(),
            "processed_at": None,
            "created_at": datetime.now(timezone.utc),
            **fields,
        }
        entry["metadata"] = dict(entry["metadata"] or {})
        self.transactions.append(entry)
        return deepcopy(entry)

    def _entry(self, entry_id):
        return next(t for t in self.transactions if t["entry_id"] == entry_id)

    async def complete_transaction(self, conn, entry_id, transaction_id, processed_at, metadata):
        entry = self._entry(entry_id)
        if entry["status"] != "pending":
            return None
        entry.update(status="completed", transaction_id=transaction_id, processed_at=processed_at)
        entry["metadata"].update(metadata)
        return deepcopy(entry)

    async def fail_transaction(self, conn, entry_id, metadata):
        entry = self._entry(entry_id)
        if entry["status"] != "pending":
            return None
        entry["status"] = "failed"
        entry["metadata"].update(metadata)
        return deepcopy(entry)

    async def get_booking_transactions(self, conn, booking_id):
        return deepcopy(self.entries(booking_id))

    async def get_failed_payouts(self, conn):
        return [
            deepcopy(t) for t in self.transactions
            if t["type"] == "payout" and t["status"] == "failed"
            and t["reference"].startswith("FAILED_")
            and self.booking(t["booking_id"])["payout_status"] == "failed"
        ]

    # user_queries

    async def get_payout_account(self, conn, cleaner_id):
        return self.accounts.get(str(cleaner_id))

    async def get_admin_ids(self, conn):
        return list(self.admin_ids)

    async def create_notifications(self, conn, message, recipient_ids):
        self.notifications.extend((message, r) for r in recipient_ids)

    async def get_user_by_id(self, conn, user_id):
        return deepcopy(self.users.get(str(user_id)))

    async def get_user_by_phone(self, conn, phone):
        return next((deepcopy(u) for u in self.users.values() if u["phone"] == phone), None)


class FakeGateway:
    def __init__(self, charge_result=None, transfer_result=None):
        self.charge_result = charge_result or GatewaySuccess(id="INV-123", tracking_id="TRK-1")
        self.transfer_result = transfer_result or GatewaySuccess(id="PAYOUT-TRK-9", tracking_id="PAYOUT-TRK-9")
        self.charges = []
        self.transfers = []

    async def collect_charge(self, amount, phone, reference, callback_url, metadata):
        self.charges.append({
            "amount": amount,
            "phone": phone,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata,
        })
        return self.charge_result

    async def transfer(self, amount, account, narrative):
        self.transfers.append({"amount": amount, "account": account, "narrative": narrative})
        if isinstance(self.transfer_result, Exception):
            raise self.transfer_result
        return self.transfer_result


_PATCHED = {
    booking_queries: [
        "get_booking", "get_client_unpaid_bookings", "update_booking_status",
        "mark_booking_paid", "set_payout_status", "mark_booking_refunded",
        "get_team_leader_paid_bookings", "create_booking", "assign_cleaner",
    ],
    transaction_queries: [
        "create_transaction", "complete_transaction", "fail_transaction",
        "get_booking_transactions", "get_failed_payouts",
    ],
    user_queries: [
        "get_payout_account", "get_admin_ids", "create_notifications",
        "get_user_by_id", "get_user_by_phone",
    ],
}


@pytest.fixture
def ledger(monkeypatch):
    fake = FakeLedger()
    for module, names in _PATCHED.items():
        for name in names:
            monkeypatch.setattr(module, name, getattr(fake, name))
    return fake


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def paid_gateway_failure():
    return FakeGateway(transfer_result=GatewayFailure(reason="Insufficient float balance"))


def client_actor(booking, **overrides):
    actor = {"id": booking["client_id"], "role": "client", "name": "Wanjiru", "phone": "0712345678"}
    actor.update(overrides)
    return actor
