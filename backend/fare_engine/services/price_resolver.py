"""Selection of the single price that applies to a route at an instant."""

import logging
from datetime import datetime
from typing import Optional, Tuple

from fare_engine.errors import NotFoundError
from fare_engine.models import Price, utc_naive, utcnow
from fare_engine.services.price_catalog import PriceCatalog

logger = logging.getLogger(__name__)

ROUTE_SPECIFIC = 2
COMPANY_DEFAULT = 1


def precedence_key(price: Price, route_id: Optional[str]) -> Tuple[int, datetime, str]:
    """
    Ranking key for competing prices, highest wins.

    Route-scoped prices outrank company defaults; within the same scope the
    most recently created price wins and the id settles exact timestamp ties.
    """
    specificity = ROUTE_SPECIFIC if route_id is not None and price.route_id == route_id else COMPANY_DEFAULT
    return specificity, price.created_at, price.id


class PriceResolver:
    """Picks the applicable price from the catalog's candidates."""

    def __init__(self, catalog: PriceCatalog):
        self.catalog = catalog

    def resolve(self, company_id: str, route_id: str, at: Optional[datetime] = None) -> Price:
        """
        Resolve the price for a route.

        Args:
            company_id: Company owning the route
            route_id: Route being priced
            at: Pricing instant, defaults to now

        Returns:
            The winning price

        Raises:
            NotFoundError: If no active price is valid at that instant
        """
        at = utc_naive(at) if at is not None else utcnow()
        candidates = self.catalog.find_active_prices(company_id, route_id, at)
        if not candidates:
            logger.warning("No active price for company %s route %s at %s", company_id, route_id, at.isoformat())
            raise NotFoundError("No active price found for this route")

        price = max(candidates, key=lambda candidate: precedence_key(candidate, route_id))
        logger.debug(
            "Resolved price %s for route %s at %s out of %d candidates",
            price.id, route_id, at.isoformat(), len(candidates),
        )
        return price
