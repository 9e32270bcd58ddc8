"""Read-only access to the commission and refund policy values."""

from decimal import Decimal
from typing import Protocol

from travelbooks.core.config import Settings, settings
from travelbooks.models.shared import BookingType


class PolicyProvider(Protocol):
    def default_commission_rate(self) -> Decimal: ...

    def type_commission_rate(self, booking_type: BookingType) -> Decimal | None: ...

    def commission_rate_bounds(self) -> tuple[Decimal, Decimal]: ...

    def payment_terms_days(self) -> int: ...

    def payment_tolerance(self) -> Decimal: ...

    def refund_service_fee(self) -> tuple[str, Decimal]: ...


class SettingsPolicyProvider:
    """PolicyProvider backed by the environment-driven ``Settings``."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings

    def default_commission_rate(self) -> Decimal:
        return self.config.DEFAULT_COMMISSION_RATE

    def type_commission_rate(self, booking_type: BookingType) -> Decimal | None:
        rates = {
            BookingType.FLIGHT: self.config.FLIGHT_COMMISSION_RATE,
            BookingType.HOTEL: self.config.HOTEL_COMMISSION_RATE,
            BookingType.ACTIVITY: self.config.ACTIVITY_COMMISSION_RATE,
            BookingType.TRANSFER: self.config.TRANSFER_COMMISSION_RATE,
        }
        return rates.get(booking_type)

    def commission_rate_bounds(self) -> tuple[Decimal, Decimal]:
        return self.config.MIN_COMMISSION_RATE, self.config.MAX_COMMISSION_RATE

    def payment_terms_days(self) -> int:
        return self.config.DEFAULT_PAYMENT_TERMS_DAYS

    def payment_tolerance(self) -> Decimal:
        return self.config.PAYMENT_ROUNDING_TOLERANCE

    def refund_service_fee(self) -> tuple[str, Decimal]:
        return self.config.REFUND_SERVICE_FEE_TYPE, self.config.REFUND_SERVICE_FEE_VALUE
