"""Models for the fare engine."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PriceType(str, Enum):
    """How a price turns a journey into an amount."""
    FLAT = "FLAT"
    PER_SEGMENT = "PER_SEGMENT"


class PriceSegment(BaseModel):
    """Override for one adjacent stop pair on a route."""
    model_config = ConfigDict(from_attributes=True)

    from_stop_id: str = Field(..., min_length=1, description="Stop the segment starts at")
    to_stop_id: str = Field(..., min_length=1, description="Stop the segment ends at")
    price: Decimal = Field(
        ..., ge=0, max_digits=12, decimal_places=2, description="Amount charged for this segment"
    )


class Price(BaseModel):
    """A pricing policy read from the catalog."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    route_id: Optional[str] = None
    type: PriceType
    base_price: Decimal
    currency: str
    valid_from: datetime
    valid_to: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    segments: List[PriceSegment] = Field(default_factory=list)


class _PriceFields(BaseModel):
    @field_validator("currency", check_fields=False)
    def normalize_currency(cls, v):
        return v.upper() if v is not None else v

    @field_validator("valid_from", "valid_to", check_fields=False)
    def normalize_instant(cls, v):
        return utc_naive(v)


class PriceCreate(_PriceFields):
    """Request model for creating a price."""
    company_id: str = Field(..., min_length=1, description="Owning company")
    route_id: Optional[str] = Field(None, description="Route the price is limited to; omit for a company default")
    type: PriceType = Field(..., description="FLAT or PER_SEGMENT")
    base_price: Decimal = Field(
        ..., ge=0, max_digits=12, decimal_places=2,
        description="Journey price (FLAT) or per-segment fallback (PER_SEGMENT)"
    )
    currency: Optional[str] = Field(None, pattern=r"^[A-Za-z]{3}$", description="Defaults to the home currency")
    valid_from: Optional[datetime] = Field(None, description="Defaults to the creation time")
    valid_to: Optional[datetime] = Field(None, description="Omit for an open-ended price")
    segments: Optional[List[PriceSegment]] = None


class PriceUpdate(_PriceFields):
    """
    Request model for updating a price.

    Only fields that are explicitly set are applied. A segments list
    replaces the whole segment set.
    """
    route_id: Optional[str] = None
    type: Optional[PriceType] = None
    base_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, pattern=r"^[A-Za-z]{3}$")
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    is_active: Optional[bool] = None
    segments: Optional[List[PriceSegment]] = None

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in ("type", "base_price", "currency", "valid_from", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class PriceFilter(BaseModel):
    """Catalog query; omitting `at` disables the validity-window check."""
    company_id: str
    route_id: Optional[str] = None
    at: Optional[datetime] = None

    @field_validator("at")
    def normalize_at(cls, v):
        return utc_naive(v)


class RouteStop(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stop_id: str
    sequence_number: int


class RouteStopSequence(BaseModel):
    """Ordered stops of a route's current version."""
    route_id: str
    company_id: str
    stops: List[RouteStop]

    @property
    def stop_ids(self) -> List[str]:
        return [stop.stop_id for stop in self.stops]


class SegmentCharge(BaseModel):
    """One traversed stop pair and what it contributed to the fare."""
    from_stop_id: str
    to_stop_id: str
    price: Decimal


class FareQuery(BaseModel):
    """Request model for fare calculation."""
    route_id: str = Field(..., min_length=1)
    from_stop_id: str = Field(..., min_length=1, description="Boarding stop")
    to_stop_id: str = Field(..., min_length=1, description="Alighting stop")
    passengers: int = Field(1, description="Number of passengers, at least one")
    at: Optional[datetime] = Field(None, description="Pricing instant, defaults to now")

    @field_validator("at")
    def normalize_at(cls, v):
        return utc_naive(v)


class FareResult(BaseModel):
    """Response model for fare calculation."""
    unit_price: Decimal = Field(..., description="Fare for one passenger")
    total_price: Decimal = Field(..., description="Fare for all passengers")
    currency: str
    price_type: PriceType
    segments: Optional[List[SegmentCharge]] = Field(
        None,
        description="Per-pair breakdown, only for per-segment prices"
    )
