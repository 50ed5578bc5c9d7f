"""Persistence of price records and their segments."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select

from fare_engine.database import DatabaseManager, PriceDB, PriceSegmentDB
from fare_engine.models import Price, PriceFilter, PriceSegment

logger = logging.getLogger(__name__)


def _valid_at(at: datetime):
    return [
        PriceDB.valid_from <= at,
        or_(PriceDB.valid_to.is_(None), PriceDB.valid_to >= at),
    ]


class PriceCatalog:
    """
    Read and write access to stored prices.
    Records leave the catalog as Price models, never as ORM objects.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def list_prices(self, price_filter: PriceFilter) -> List[Price]:
        """
        Active prices of a company, newest first.

        A route_id in the filter keeps only prices for exactly that route;
        an `at` instant keeps only prices whose window contains it.
        """
        query = select(PriceDB).where(
            PriceDB.company_id == price_filter.company_id,
            PriceDB.is_active.is_(True),
        )
        if price_filter.route_id is not None:
            query = query.where(PriceDB.route_id == price_filter.route_id)
        if price_filter.at is not None:
            query = query.where(*_valid_at(price_filter.at))
        query = query.order_by(PriceDB.created_at.desc(), PriceDB.id.desc())
        return self._fetch(query)

    def find_active_prices(self, company_id: str, route_id: Optional[str], at: datetime) -> List[Price]:
        """
        Active prices valid at an instant that apply to a route.

        Both prices scoped to route_id and company-wide defaults are
        returned; ranking them is left to the resolver.
        """
        query = select(PriceDB).where(
            PriceDB.company_id == company_id,
            PriceDB.is_active.is_(True),
            *_valid_at(at),
        )
        if route_id is not None:
            query = query.where(or_(PriceDB.route_id == route_id, PriceDB.route_id.is_(None)))
        else:
            query = query.where(PriceDB.route_id.is_(None))
        return self._fetch(query)

    def get(self, price_id: str) -> Optional[Price]:
        session = self.db_manager.get_session()
        try:
            record = session.get(PriceDB, price_id)
            return Price.model_validate(record) if record is not None else None
        finally:
            session.close()

    def insert(self, values: Dict[str, Any], segments: Optional[List[PriceSegment]] = None) -> Price:
        """Insert a price and its segments in one transaction."""
        session = self.db_manager.get_session()
        try:
            record = PriceDB(**values)
            record.segments = [PriceSegmentDB(**segment.model_dump()) for segment in segments or []]
            session.add(record)
            session.commit()
            return Price.model_validate(record)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update(
        self,
        price_id: str,
        values: Dict[str, Any],
        segments: Optional[List[PriceSegment]] = None,
    ) -> Optional[Price]:
        """
        Overwrite scalar fields of a price.

        When segments is not None the existing segment set is replaced.

        Returns:
            The updated price, or None if no record has that id
        """
        session = self.db_manager.get_session()
        try:
            record = session.get(PriceDB, price_id)
            if record is None:
                return None
            for field, value in values.items():
                setattr(record, field, value)
            if segments is not None:
                record.segments = [PriceSegmentDB(**segment.model_dump()) for segment in segments]
            session.commit()
            session.refresh(record)
            return Price.model_validate(record)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _fetch(self, query) -> List[Price]:
        session = self.db_manager.get_session()
        try:
            return [Price.model_validate(record) for record in session.scalars(query).all()]
        finally:
            session.close()
