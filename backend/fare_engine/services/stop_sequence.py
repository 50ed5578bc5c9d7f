"""Stop sequence lookup for the current version of a route."""

import logging
from typing import Protocol, runtime_checkable

from sqlalchemy import select

from fare_engine.database import DatabaseManager, RouteDB, RouteStopDB
from fare_engine.errors import NotFoundError
from fare_engine.models import RouteStop, RouteStopSequence

logger = logging.getLogger(__name__)


@runtime_checkable
class StopSequenceProvider(Protocol):
    """
    Source of ordered route stops.
    Route storage belongs to another service; the fare calculator only needs this read.
    """

    def get_route_with_current_stops(self, route_id: str) -> RouteStopSequence:
        """Return the route's company and its current stops; raise NotFoundError if missing."""
        ...


class SqlStopSequenceProvider:
    """Reads routes and their current version from the local datastore."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get_route_with_current_stops(self, route_id: str) -> RouteStopSequence:
        session = self.db_manager.get_session()
        try:
            route = session.get(RouteDB, route_id)
            if route is None or route.current_version_id is None:
                logger.warning("Route %s not found or has no current version", route_id)
                raise NotFoundError("Route not found")

            rows = session.scalars(
                select(RouteStopDB)
                .where(RouteStopDB.route_version_id == route.current_version_id)
                .order_by(RouteStopDB.sequence_number)
            ).all()

            return RouteStopSequence(
                route_id=route.id,
                company_id=route.company_id,
                stops=[RouteStop.model_validate(row) for row in rows],
            )
        finally:
            session.close()
