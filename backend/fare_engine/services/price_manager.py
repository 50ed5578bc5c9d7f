"""Create, update and soft-delete prices while keeping the catalog consistent."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from fare_engine.config import settings
from fare_engine.errors import ConflictError, InvalidInputError, NotFoundError
from fare_engine.models import Price, PriceCreate, PriceFilter, PriceSegment, PriceUpdate, utcnow
from fare_engine.services.price_catalog import PriceCatalog

logger = logging.getLogger(__name__)


def check_validity_window(valid_from: datetime, valid_to: Optional[datetime]):
    if valid_to is not None and valid_from > valid_to:
        raise InvalidInputError(
            f"valid_from ({valid_from.isoformat()}) must not be after valid_to ({valid_to.isoformat()})"
        )


def check_amount_precision(currency: str, base_price: Decimal, segments: Iterable[PriceSegment] = ()):
    """Amounts must be whole multiples of the currency's minor unit."""
    quantum = settings.quantum(currency)
    amounts = [("base_price", base_price)]
    amounts.extend((f"segment {s.from_stop_id}->{s.to_stop_id}", s.price) for s in segments)
    for label, amount in amounts:
        if amount % quantum != 0:
            raise InvalidInputError(f"{label} {amount} has more decimal places than {currency} allows")


def windows_overlap(
    first_from: datetime,
    first_to: Optional[datetime],
    second_from: datetime,
    second_to: Optional[datetime],
) -> bool:
    first_ends_before = first_to is not None and first_to < second_from
    second_ends_before = second_to is not None and second_to < first_from
    return not (first_ends_before or second_ends_before)


class PriceManager:
    """Lifecycle operations on prices."""

    def __init__(self, catalog: PriceCatalog, reject_overlaps: Optional[bool] = None):
        self.catalog = catalog
        self.reject_overlaps = settings.REJECT_OVERLAPPING_PRICES if reject_overlaps is None else reject_overlaps

    def list_prices(self, company_id: str, route_id: Optional[str] = None, at: Optional[datetime] = None) -> List[Price]:
        return self.catalog.list_prices(PriceFilter(company_id=company_id, route_id=route_id, at=at))

    def get_price(self, price_id: str) -> Price:
        price = self.catalog.get(price_id)
        if price is None:
            raise NotFoundError(f"Price with ID {price_id} not found")
        return price

    def create_price(self, data: PriceCreate) -> Price:
        """
        Create a price, with its segments if any.

        Currency falls back to the home currency and valid_from to now.

        Raises:
            InvalidInputError: If valid_from is after valid_to, or an
                amount is finer than the currency's minor unit
            ConflictError: If overlap rejection is enabled and an active
                price with the same scope overlaps the new window
        """
        values = data.model_dump(exclude={"segments"})
        values["currency"] = values["currency"] or settings.DEFAULT_CURRENCY
        values["valid_from"] = values["valid_from"] or utcnow()
        check_validity_window(values["valid_from"], values["valid_to"])
        check_amount_precision(values["currency"], values["base_price"], data.segments or ())

        if self.reject_overlaps:
            self._check_overlap(values["company_id"], values["route_id"], values["valid_from"], values["valid_to"])

        price = self.catalog.insert(values, data.segments)
        logger.info(
            "Created %s price %s for company %s route %s",
            price.type.value, price.id, price.company_id, price.route_id or "<default>",
        )
        return price

    def update_price(self, price_id: str, patch: PriceUpdate) -> Price:
        """
        Apply the fields set on the patch to an existing price.

        Raises:
            NotFoundError: If the price does not exist
            InvalidInputError: If the resulting window is inverted or an
                amount does not fit the resulting currency
        """
        current = self.get_price(price_id)
        values = patch.model_dump(exclude_unset=True, exclude={"segments"})

        valid_from = values.get("valid_from", current.valid_from)
        valid_to = values.get("valid_to", current.valid_to)
        check_validity_window(valid_from, valid_to)

        segments = patch.segments if "segments" in patch.model_fields_set else None
        check_amount_precision(
            values.get("currency", current.currency),
            values.get("base_price", current.base_price),
            current.segments if segments is None else segments,
        )

        if self.reject_overlaps and values.get("is_active", current.is_active):
            self._check_overlap(
                current.company_id,
                values.get("route_id", current.route_id),
                valid_from,
                valid_to,
                ignore_id=price_id,
            )

        price = self.catalog.update(price_id, values, segments)
        if price is None:
            raise NotFoundError(f"Price with ID {price_id} not found")
        logger.info("Updated price %s fields=%s", price_id, sorted(patch.model_fields_set))
        return price

    def delete_price(self, price_id: str) -> Price:
        """Soft delete: the record stays but never resolves again."""
        self.get_price(price_id)
        price = self.catalog.update(price_id, {"is_active": False})
        if price is None:
            raise NotFoundError(f"Price with ID {price_id} not found")
        logger.info("Deactivated price %s", price_id)
        return price

    def _check_overlap(
        self,
        company_id: str,
        route_id: Optional[str],
        valid_from: datetime,
        valid_to: Optional[datetime],
        ignore_id: Optional[str] = None,
    ):
        scope = PriceFilter(company_id=company_id, route_id=route_id)
        for other in self.catalog.list_prices(scope):
            if other.id == ignore_id or other.route_id != route_id:
                continue
            if windows_overlap(valid_from, valid_to, other.valid_from, other.valid_to):
                raise ConflictError(
                    f"Price {other.id} already covers route {route_id or '<default>'} in that period"
                )
