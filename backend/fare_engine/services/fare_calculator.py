"""Fare calculation service implementing business logic."""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from fare_engine.config import settings
from fare_engine.errors import InvalidInputError, NotFoundError
from fare_engine.models import FareQuery, FareResult, Price, PriceType, SegmentCharge
from fare_engine.services.price_resolver import PriceResolver
from fare_engine.services.stop_sequence import StopSequenceProvider

logger = logging.getLogger(__name__)


@runtime_checkable
class FareCalculatorInterface(Protocol):
    """
    Interface for fare calculation.
    This protocol defines the contract that all fare calculators must follow.
    """

    def calculate(
        self,
        route_id: str,
        from_stop_id: str,
        to_stop_id: str,
        passengers: int = 1,
        at: Optional[datetime] = None,
    ) -> FareResult:
        """Calculate the fare for a journey along one route."""
        ...


def locate_journey(stop_ids: List[str], from_stop_id: str, to_stop_id: str) -> Tuple[int, int]:
    """
    Positions of the boarding and alighting stops in a stop sequence.

    Raises:
        NotFoundError: If a stop is not on the route or boarding does not
            strictly precede alighting
    """
    try:
        from_index = stop_ids.index(from_stop_id)
        to_index = stop_ids.index(to_stop_id)
    except ValueError:
        raise NotFoundError("Invalid stop combination") from None

    if from_index >= to_index:
        raise NotFoundError("Invalid stop combination")
    return from_index, to_index


def segment_charges(price: Price, stop_ids: List[str], from_index: int, to_index: int) -> List[SegmentCharge]:
    """Charge for every adjacent pair travelled, falling back to the base price."""
    overrides = {}
    for segment in price.segments:
        # first override wins if the same pair was stored twice
        overrides.setdefault((segment.from_stop_id, segment.to_stop_id), segment.price)

    charges = []
    for i in range(from_index, to_index):
        pair = (stop_ids[i], stop_ids[i + 1])
        charges.append(SegmentCharge(
            from_stop_id=pair[0],
            to_stop_id=pair[1],
            price=overrides.get(pair, price.base_price),
        ))
    return charges


def round_amount(amount: Decimal, currency: str) -> Decimal:
    return amount.quantize(settings.quantum(currency), rounding=ROUND_HALF_UP)


class RouteFareCalculator:
    """
    Fare calculator for single-route journeys.
    Supports flat prices and prices accumulated per stop pair.
    """

    def __init__(self, stop_provider: StopSequenceProvider, resolver: PriceResolver):
        self.stop_provider = stop_provider
        self.resolver = resolver

    def calculate(
        self,
        route_id: str,
        from_stop_id: str,
        to_stop_id: str,
        passengers: int = 1,
        at: Optional[datetime] = None,
    ) -> FareResult:
        """
        Calculate the fare between two stops of a route.

        Segment amounts are summed exactly and the sum is rounded half-up
        to the currency's minor unit once; the total is that unit price
        times the passenger count, so it never needs rounding of its own.

        Args:
            route_id: Route travelled
            from_stop_id: Boarding stop
            to_stop_id: Alighting stop
            passengers: Number of passengers
            at: Pricing instant, defaults to now

        Returns:
            FareResult with unit and total price

        Raises:
            InvalidInputError: If passengers is below one
            NotFoundError: If the route, a price or the stop combination is missing
        """
        if passengers < 1:
            raise InvalidInputError(f"Passenger count must be at least 1, got {passengers}")

        route = self.stop_provider.get_route_with_current_stops(route_id)
        price = self.resolver.resolve(route.company_id, route_id, at)

        stop_ids = route.stop_ids
        try:
            from_index, to_index = locate_journey(stop_ids, from_stop_id, to_stop_id)
        except NotFoundError:
            logger.warning("Invalid stop combination %s -> %s on route %s", from_stop_id, to_stop_id, route_id)
            raise

        charges = []
        if price.type == PriceType.FLAT:
            unit_price = price.base_price
        else:
            charges = segment_charges(price, stop_ids, from_index, to_index)
            unit_price = sum((charge.price for charge in charges), Decimal(0))

        unit_price = round_amount(unit_price, price.currency)
        return FareResult(
            unit_price=unit_price,
            total_price=unit_price * passengers,
            currency=price.currency,
            price_type=price.type,
            segments=charges or None,
        )

    def quote(self, query: FareQuery) -> FareResult:
        return self.calculate(
            query.route_id,
            query.from_stop_id,
            query.to_stop_id,
            passengers=query.passengers,
            at=query.at,
        )
