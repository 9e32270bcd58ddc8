from decimal import Decimal
from typing import Any

from travelbooks.core.errors import ValidationError
from travelbooks.core.money import ZERO, percent_of, round_money, to_decimal
from travelbooks.services.policy import PolicyProvider, SettingsPolicyProvider


class CommissionCalculator:
    """``booking_amount * rate / 100 + flat_fee``, rounded to cents.

    Rates are checked against the policy bounds and rejected, never clamped.
    """

    def __init__(self, policy: PolicyProvider | None = None):
        self.policy = policy or SettingsPolicyProvider()

    def validate_rate(self, rate: Any) -> Decimal:
        rate = to_decimal(rate)
        low, high = self.policy.commission_rate_bounds()
        if rate < low or rate > high:
            raise ValidationError(
                f"Commission rate {rate} is outside the allowed range [{low}, {high}]"
            )
        return rate

    def calculate(self, booking_amount: Any, rate: Any, flat_fee: Any = ZERO) -> Decimal:
        booking_amount = to_decimal(booking_amount)
        flat_fee = to_decimal(flat_fee)
        if booking_amount < ZERO:
            raise ValidationError("Booking amount must not be negative")
        if flat_fee < ZERO:
            raise ValidationError("Flat fee must not be negative")
        rate = self.validate_rate(rate)
        return round_money(percent_of(booking_amount, rate) + flat_fee)
