from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "travelbooks"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/travelbooks.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Commission policy (percentages)
    DEFAULT_COMMISSION_RATE: Decimal = Decimal("10")
    FLIGHT_COMMISSION_RATE: Decimal = Decimal("8")
    HOTEL_COMMISSION_RATE: Decimal = Decimal("12")
    ACTIVITY_COMMISSION_RATE: Decimal = Decimal("15")
    TRANSFER_COMMISSION_RATE: Decimal = Decimal("10")
    MIN_COMMISSION_RATE: Decimal = Decimal("0")
    MAX_COMMISSION_RATE: Decimal = Decimal("50")

    # Invoicing
    DEFAULT_PAYMENT_TERMS_DAYS: int = 30
    PAYMENT_ROUNDING_TOLERANCE: Decimal = Decimal("0.01")

    # Refunds: "percentage" of the gross refund, or a "flat" amount
    REFUND_SERVICE_FEE_TYPE: str = "percentage"
    REFUND_SERVICE_FEE_VALUE: Decimal = Decimal("5")

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Background sweeps
    ESCROW_SWEEP_MINUTE: int = 15


settings = Settings()
