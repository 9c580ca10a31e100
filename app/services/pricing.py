# app/services/pricing.py
"""Revenue split between the platform and the cleaner.

Each share is rounded half-up on its own, so for fractional prices
platform_fee + cleaner_payout can differ from total_price by one unit.
Settled amounts depend on this, so it is not normalised here.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Union

from ..config import settings

Number = Union[int, float, Decimal]


class PricingSplit(NamedTuple):
    total_price: Number
    platform_fee: int
    cleaner_payout: int

    @property
    def drift(self) -> Number:
        return self.platform_fee + self.cleaner_payout - self.total_price


def round_half_up(value: Number) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _scaled(amount: Number, rate: float) -> Decimal:
    return Decimal(str(amount)) * Decimal(str(rate))


def split_price(price: Number, platform_rate: float = None, payout_rate: float = None) -> PricingSplit:
    if price is None or price < 0:
        raise ValueError("price must be a non-negative amount")
    platform_rate = settings.platform_fee_rate if platform_rate is None else platform_rate
    payout_rate = settings.cleaner_payout_rate if payout_rate is None else payout_rate
    return PricingSplit(
        total_price=price,
        platform_fee=round_half_up(_scaled(price, platform_rate)),
        cleaner_payout=round_half_up(_scaled(price, payout_rate)),
    )


def team_leader_commission(amount: Number, rate: float = None) -> int:
    rate = settings.team_leader_commission_rate if rate is None else rate
    return round_half_up(_scaled(amount, rate))
