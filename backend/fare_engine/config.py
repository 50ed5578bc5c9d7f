"""Configuration for the fare engine."""

from decimal import Decimal
from typing import Dict, List
import os
from dotenv import load_dotenv

load_dotenv()


def _to_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings."""

    # API Settings
    API_TITLE = "Fare Engine"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = (
        "Price catalog and fare calculation for flat and per-segment route pricing"
    )

    # Database Settings
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fare_engine.db")

    # CORS Settings
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Pricing
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "PLN").upper()
    REJECT_OVERLAPPING_PRICES = _to_bool(os.getenv("REJECT_OVERLAPPING_PRICES"))

    # Digits after the decimal point; anything not listed uses two.
    CURRENCY_MINOR_UNITS: Dict[str, int] = {
        "JPY": 0,
        "KRW": 0,
        "KWD": 3,
        "BHD": 3,
    }

    @classmethod
    def minor_units(cls, currency: str) -> int:
        return cls.CURRENCY_MINOR_UNITS.get(currency.upper(), 2)

    @classmethod
    def quantum(cls, currency: str) -> Decimal:
        """
        Smallest representable amount for a currency.

        Args:
            currency: ISO-4217 style code

        Returns:
            Decimal such as Decimal("0.01") usable with Decimal.quantize
        """
        return Decimal(1).scaleb(-cls.minor_units(currency))


settings = Settings()
