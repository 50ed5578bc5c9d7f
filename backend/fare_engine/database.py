"""Database models and setup for the fare engine."""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from fare_engine.config import settings
from fare_engine.models import PriceType, utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class RouteDB(Base):
    """A route; its stops live on the version pointed to by current_version_id."""
    __tablename__ = "routes"

    id = Column(String, primary_key=True, default=new_id)
    company_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    current_version_id = Column(String, nullable=True)

    versions = relationship("RouteVersionDB", back_populates="route", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Route(id={self.id}, company_id={self.company_id}, current_version_id={self.current_version_id})>"


class RouteVersionDB(Base):
    __tablename__ = "route_versions"

    id = Column(String, primary_key=True, default=new_id)
    route_id = Column(String, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False)
    version_number = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    route = relationship("RouteDB", back_populates="versions")
    stops = relationship(
        "RouteStopDB",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="RouteStopDB.sequence_number",
    )

    __table_args__ = (
        UniqueConstraint("route_id", "version_number", name="_route_version_uc"),
    )


class RouteStopDB(Base):
    __tablename__ = "route_stops"

    id = Column(Integer, primary_key=True, index=True)
    route_version_id = Column(String, ForeignKey("route_versions.id", ondelete="CASCADE"), nullable=False)
    stop_id = Column(String, nullable=False)
    sequence_number = Column(Integer, nullable=False)

    version = relationship("RouteVersionDB", back_populates="stops")

    __table_args__ = (
        UniqueConstraint("route_version_id", "sequence_number", name="_version_sequence_uc"),
    )


class PriceDB(Base):
    """Database model for storing prices."""
    __tablename__ = "prices"

    id = Column(String, primary_key=True, default=new_id)
    company_id = Column(String, nullable=False, index=True)
    route_id = Column(String, nullable=True, index=True)
    type = Column(Enum(PriceType, name="price_type"), nullable=False)
    base_price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    valid_from = Column(DateTime, nullable=False, default=utcnow)
    valid_to = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    segments = relationship(
        "PriceSegmentDB",
        back_populates="price_record",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Price(id={self.id}, route_id={self.route_id}, type={self.type}, base_price={self.base_price})>"


class PriceSegmentDB(Base):
    """Per-pair override belonging to a PER_SEGMENT price."""
    __tablename__ = "price_segments"

    id = Column(Integer, primary_key=True, index=True)
    price_id = Column(String, ForeignKey("prices.id", ondelete="CASCADE"), nullable=False, index=True)
    from_stop_id = Column(String, nullable=False)
    to_stop_id = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    price_record = relationship("PriceDB", back_populates="segments")

    def __repr__(self):
        return f"<PriceSegment(from_stop_id={self.from_stop_id}, to_stop_id={self.to_stop_id}, price={self.price})>"


class DatabaseManager:
    """Manager class for database operations."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or settings.DATABASE_URL

        engine_kwargs = {}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases vanish with their connection, so share one.
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(self.database_url, **engine_kwargs)

        # Create session factory
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

        # Create tables if they don't exist
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def add_route(
        self,
        company_id: str,
        stop_ids: List[str],
        route_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> RouteDB:
        """
        Store a new version of a route and make it current.

        Creates the route on first use. Stops are numbered 1..n in the
        order given.

        Args:
            company_id: Owning company
            stop_ids: Stop identifiers in travel order
            route_id: Identifier to use; generated when omitted
            name: Display name

        Returns:
            The route record
        """
        session = self.get_session()
        try:
            route = session.get(RouteDB, route_id) if route_id else None
            if route is None:
                route = RouteDB(id=route_id or new_id(), company_id=company_id, name=name)
                session.add(route)
                session.flush()

            last_version = session.scalar(
                select(func.max(RouteVersionDB.version_number)).where(RouteVersionDB.route_id == route.id)
            )
            version = RouteVersionDB(route_id=route.id, version_number=(last_version or 0) + 1)
            version.stops = [
                RouteStopDB(stop_id=stop_id, sequence_number=position)
                for position, stop_id in enumerate(stop_ids, 1)
            ]
            session.add(version)
            session.flush()

            route.current_version_id = version.id
            session.commit()
            logger.info(
                "Stored version %s of route %s with %d stops",
                version.version_number, route.id, len(stop_ids),
            )
            return route
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def seed_demo_catalog(self) -> bool:
        """
        Initialize database with a demo route and prices.

        Returns:
            True if data was written, False if prices already existed
        """
        session = self.get_session()
        try:
            if session.scalar(select(func.count()).select_from(PriceDB)):
                return False

            now = utcnow()
            session.add_all([
                PriceDB(
                    company_id="demo-company",
                    type=PriceType.FLAT,
                    base_price=Decimal("20.00"),
                    currency=settings.DEFAULT_CURRENCY,
                    valid_from=now,
                ),
                PriceDB(
                    company_id="demo-company",
                    route_id="R1",
                    type=PriceType.PER_SEGMENT,
                    base_price=Decimal("5.00"),
                    currency=settings.DEFAULT_CURRENCY,
                    valid_from=now,
                    segments=[PriceSegmentDB(from_stop_id="A", to_stop_id="B", price=Decimal("8.00"))],
                ),
            ])
            session.commit()
        finally:
            session.close()

        self.add_route("demo-company", ["A", "B", "C", "D"], route_id="R1", name="Demo line")
        logger.info("Seeded demo catalog")
        return True

    def count_prices(self) -> int:
        session = self.get_session()
        try:
            return session.scalar(select(func.count()).select_from(PriceDB)) or 0
        finally:
            session.close()


# Singleton instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get singleton database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
