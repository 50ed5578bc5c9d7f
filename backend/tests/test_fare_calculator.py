"""Unit tests for price resolution and fare calculation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fare_engine.database import DatabaseManager
from fare_engine.errors import InvalidInputError, NotFoundError
from fare_engine.models import (
    Price,
    PriceCreate,
    PriceSegment,
    PriceType,
    RouteStop,
    RouteStopSequence,
    utcnow,
)
from fare_engine.services import (
    FareCalculatorInterface,
    PriceCatalog,
    PriceManager,
    PriceResolver,
    RouteFareCalculator,
    SqlStopSequenceProvider,
    StopSequenceProvider,
)
from fare_engine.services.fare_calculator import locate_journey, round_amount
from fare_engine.services.price_resolver import precedence_key


def make_price(price_id, route_id=None, created_at=None, **overrides):
    now = utcnow()
    fields = dict(
        id=price_id,
        company_id="X",
        route_id=route_id,
        type=PriceType.FLAT,
        base_price=Decimal("20"),
        currency="PLN",
        valid_from=now - timedelta(days=1),
        created_at=created_at or now,
        updated_at=created_at or now,
    )
    fields.update(overrides)
    return Price(**fields)


class StaticCatalog:
    """Catalog stand-in returning a fixed candidate list."""

    def __init__(self, prices):
        self.prices = prices

    def find_active_prices(self, company_id, route_id, at):
        return list(self.prices)


class StaticStops:
    def __init__(self, company_id, stop_ids):
        self.company_id = company_id
        self.stop_ids = stop_ids

    def get_route_with_current_stops(self, route_id):
        if route_id != "R1":
            raise NotFoundError("Route not found")
        return RouteStopSequence(
            route_id=route_id,
            company_id=self.company_id,
            stops=[RouteStop(stop_id=s, sequence_number=i * 10) for i, s in enumerate(self.stop_ids, 1)],
        )


class TestFareCalculator:
    """Test fare calculation against a real datastore."""

    def setup_method(self):
        """Setup test fixtures."""
        self.db = DatabaseManager("sqlite://")
        self.db.add_route("X", ["A", "B", "C", "D"], route_id="R1")
        self.catalog = PriceCatalog(self.db)
        self.manager = PriceManager(self.catalog, reject_overlaps=False)
        self.calculator = RouteFareCalculator(
            SqlStopSequenceProvider(self.db),
            PriceResolver(self.catalog),
        )

    def add_flat(self, base_price="20", **fields):
        return self.manager.create_price(PriceCreate(
            company_id="X", type=PriceType.FLAT, base_price=Decimal(base_price), **fields
        ))

    def add_segmented(self, base_price="5", segments=(), **fields):
        return self.manager.create_price(PriceCreate(
            company_id="X",
            route_id="R1",
            type=PriceType.PER_SEGMENT,
            base_price=Decimal(base_price),
            segments=[PriceSegment(from_stop_id=f, to_stop_id=t, price=Decimal(p)) for f, t, p in segments],
            **fields
        ))

    def test_flat_price_whole_route(self):
        """Flat fare times passengers, no breakdown."""
        self.add_flat("20", currency="PLN")

        result = self.calculator.calculate("R1", "A", "D", passengers=2)

        assert result.unit_price == Decimal("20")
        assert result.total_price == Decimal("40")
        assert result.currency == "PLN"
        assert result.price_type == PriceType.FLAT
        assert result.segments is None

    def test_flat_price_independent_of_stops(self):
        self.add_flat("20")

        short = self.calculator.calculate("R1", "B", "C")
        long = self.calculator.calculate("R1", "A", "D")

        assert short.unit_price == long.unit_price == Decimal("20")

    def test_flat_price_ignores_segments(self):
        self.manager.create_price(PriceCreate(
            company_id="X",
            route_id="R1",
            type=PriceType.FLAT,
            base_price=Decimal("20"),
            segments=[PriceSegment(from_stop_id="A", to_stop_id="B", price=Decimal("99"))],
        ))

        result = self.calculator.calculate("R1", "A", "B")

        assert result.unit_price == Decimal("20")
        assert result.segments is None

    def test_per_segment_with_override_and_fallback(self):
        """A->B uses the override, B->C falls back to the base price."""
        self.add_segmented("5", segments=[("A", "B", "8")])

        result = self.calculator.calculate("R1", "A", "C", passengers=1)

        assert result.unit_price == Decimal("13")
        assert result.total_price == Decimal("13")
        assert result.price_type == PriceType.PER_SEGMENT
        assert [(s.from_stop_id, s.to_stop_id, s.price) for s in result.segments] == [
            ("A", "B", Decimal("8")),
            ("B", "C", Decimal("5")),
        ]

    def test_per_segment_total_multiplies_passengers(self):
        self.add_segmented("5", segments=[("B", "C", "7.50")])

        result = self.calculator.calculate("R1", "A", "D", passengers=3)

        assert result.unit_price == Decimal("17.50")
        assert result.total_price == Decimal("52.50")
        assert len(result.segments) == 3

    def test_override_direction_matters(self):
        """An override for B->A is not used when travelling A->B."""
        self.add_segmented("5", segments=[("B", "A", "8")])

        result = self.calculator.calculate("R1", "A", "B")

        assert result.unit_price == Decimal("5")

    def test_reversed_direction_rejected(self):
        self.add_flat()

        with pytest.raises(NotFoundError, match="Invalid stop combination"):
            self.calculator.calculate("R1", "D", "A")

    def test_same_stop_rejected(self):
        self.add_segmented()

        with pytest.raises(NotFoundError, match="Invalid stop combination"):
            self.calculator.calculate("R1", "B", "B")

    def test_stop_not_on_route_rejected(self):
        self.add_flat()

        with pytest.raises(NotFoundError, match="Invalid stop combination"):
            self.calculator.calculate("R1", "A", "Z")
        with pytest.raises(NotFoundError, match="Invalid stop combination"):
            self.calculator.calculate("R1", "Z", "A")

    def test_unknown_route(self):
        self.add_flat()

        with pytest.raises(NotFoundError, match="Route not found"):
            self.calculator.calculate("R404", "A", "B")

    def test_no_price_yet_valid(self):
        self.add_flat(valid_from=utcnow() + timedelta(days=1))

        with pytest.raises(NotFoundError, match="No active price"):
            self.calculator.calculate("R1", "A", "B")

    def test_non_positive_passengers_rejected(self):
        self.add_flat()

        with pytest.raises(InvalidInputError):
            self.calculator.calculate("R1", "A", "B", passengers=0)
        with pytest.raises(InvalidInputError):
            self.calculator.calculate("R1", "A", "B", passengers=-2)

    def test_passenger_check_precedes_lookup(self):
        """Invalid passenger counts fail before the route is even read."""
        with pytest.raises(InvalidInputError):
            self.calculator.calculate("R404", "A", "B", passengers=0)

    def test_pricing_instant_selects_window(self):
        now = utcnow()
        self.add_flat("10", valid_from=now - timedelta(days=30), valid_to=now - timedelta(days=10))
        self.add_flat("12", valid_from=now - timedelta(days=9))

        past = self.calculator.calculate("R1", "A", "B", at=now - timedelta(days=20))
        current = self.calculator.calculate("R1", "A", "B")

        assert past.unit_price == Decimal("10")
        assert current.unit_price == Decimal("12")

    def test_uses_current_route_version(self):
        self.add_segmented("5")
        self.db.add_route("X", ["A", "C", "D"], route_id="R1")

        result = self.calculator.calculate("R1", "A", "C")

        assert [(s.from_stop_id, s.to_stop_id) for s in result.segments] == [("A", "C")]
        with pytest.raises(NotFoundError):
            self.calculator.calculate("R1", "A", "B")

    def test_calculators_implement_protocol(self):
        """Test that the calculator implements the FareCalculatorInterface protocol."""
        assert isinstance(self.calculator, FareCalculatorInterface)
        assert isinstance(SqlStopSequenceProvider(self.db), StopSequenceProvider)


class TestFareCalculatorWithStubs:
    """Calculator behaviour with in-memory collaborators."""

    def test_stop_provider_is_pluggable(self):
        price = make_price("p1", route_id="R1", type=PriceType.PER_SEGMENT, base_price=Decimal("2.5"))
        calculator = RouteFareCalculator(StaticStops("X", ["S1", "S2", "S3"]), PriceResolver(StaticCatalog([price])))

        result = calculator.calculate("R1", "S1", "S3", passengers=2)

        assert result.unit_price == Decimal("5.00")
        assert result.total_price == Decimal("10.00")

    def test_total_is_unit_price_times_passengers(self):
        price = make_price("p1", route_id="R1", base_price=Decimal("0.125"))
        calculator = RouteFareCalculator(StaticStops("X", ["S1", "S2"]), PriceResolver(StaticCatalog([price])))

        result = calculator.calculate("R1", "S1", "S2", passengers=3)

        assert result.unit_price == Decimal("0.13")
        assert result.total_price == Decimal("0.39")
        assert result.total_price == result.unit_price * 3

    def test_zero_decimal_currency(self):
        price = make_price("p1", base_price=Decimal("150.5"), currency="JPY")
        calculator = RouteFareCalculator(StaticStops("X", ["S1", "S2"]), PriceResolver(StaticCatalog([price])))

        result = calculator.calculate("R1", "S1", "S2", passengers=2)

        assert result.unit_price == Decimal("151")
        assert result.total_price == Decimal("302")
        assert result.currency == "JPY"

    def test_first_occurrence_of_repeated_stop(self):
        assert locate_journey(["A", "B", "A", "C"], "A", "C") == (0, 3)

    def test_round_amount(self):
        assert round_amount(Decimal("1.005"), "PLN") == Decimal("1.01")
        assert round_amount(Decimal("1.0005"), "KWD") == Decimal("1.001")


class TestPriceResolver:
    """Test precedence between competing prices."""

    def test_route_specific_beats_default(self):
        default = make_price("default", route_id=None, created_at=utcnow())
        specific = make_price("specific", route_id="R1", created_at=utcnow() - timedelta(days=5))
        resolver = PriceResolver(StaticCatalog([default, specific]))

        assert resolver.resolve("X", "R1").id == "specific"

    def test_most_recent_wins_within_scope(self):
        older = make_price("older", route_id="R1", created_at=utcnow() - timedelta(days=2))
        newer = make_price("newer", route_id="R1", created_at=utcnow() - timedelta(days=1))

        assert PriceResolver(StaticCatalog([newer, older])).resolve("X", "R1").id == "newer"
        assert PriceResolver(StaticCatalog([older, newer])).resolve("X", "R1").id == "newer"

    def test_identical_timestamps_resolved_by_id(self):
        created = utcnow()
        first = make_price("aaa", route_id="R1", created_at=created)
        second = make_price("bbb", route_id="R1", created_at=created)

        assert PriceResolver(StaticCatalog([first, second])).resolve("X", "R1").id == "bbb"
        assert PriceResolver(StaticCatalog([second, first])).resolve("X", "R1").id == "bbb"

    def test_precedence_key(self):
        price = make_price("p", route_id="R1")
        assert precedence_key(price, "R1")[0] == 2
        assert precedence_key(make_price("d"), "R1")[0] == 1

    def test_empty_candidates(self):
        with pytest.raises(NotFoundError, match="No active price found for this route"):
            PriceResolver(StaticCatalog([])).resolve("X", "R1")

    def test_resolution_is_repeatable(self):
        db = DatabaseManager("sqlite://")
        manager = PriceManager(PriceCatalog(db), reject_overlaps=False)
        for base in ("10", "11", "12"):
            manager.create_price(PriceCreate(
                company_id="X", route_id="R1", type=PriceType.FLAT, base_price=Decimal(base)
            ))
        resolver = PriceResolver(PriceCatalog(db))
        at = utcnow()

        picks = {resolver.resolve("X", "R1", at).id for _ in range(5)}

        assert len(picks) == 1

    def test_expired_price_falls_through_to_default(self):
        db = DatabaseManager("sqlite://")
        catalog = PriceCatalog(db)
        manager = PriceManager(catalog, reject_overlaps=False)
        now = utcnow()
        manager.create_price(PriceCreate(
            company_id="X", type=PriceType.FLAT, base_price=Decimal("15"), valid_from=now - timedelta(days=30)
        ))
        manager.create_price(PriceCreate(
            company_id="X",
            route_id="R1",
            type=PriceType.FLAT,
            base_price=Decimal("9"),
            valid_from=now - timedelta(days=30),
            valid_to=now - timedelta(days=1),
        ))
        resolver = PriceResolver(catalog)

        assert resolver.resolve("X", "R1", now).base_price == Decimal("15")
        assert resolver.resolve("X", "R1", now - timedelta(days=2)).base_price == Decimal("9")

    def test_expired_price_without_fallback(self):
        db = DatabaseManager("sqlite://")
        catalog = PriceCatalog(db)
        now = utcnow()
        PriceManager(catalog).create_price(PriceCreate(
            company_id="X",
            route_id="R1",
            type=PriceType.FLAT,
            base_price=Decimal("9"),
            valid_from=now - timedelta(days=30),
            valid_to=now - timedelta(days=1),
        ))

        with pytest.raises(NotFoundError):
            PriceResolver(catalog).resolve("X", "R1", now)

    def test_window_bounds_are_inclusive(self):
        db = DatabaseManager("sqlite://")
        catalog = PriceCatalog(db)
        start = datetime(2026, 1, 1, 6, 0)
        end = datetime(2026, 1, 31, 23, 0)
        PriceManager(catalog).create_price(PriceCreate(
            company_id="X", type=PriceType.FLAT, base_price=Decimal("4"), valid_from=start, valid_to=end
        ))
        resolver = PriceResolver(catalog)

        assert resolver.resolve("X", "R1", start).base_price == Decimal("4")
        assert resolver.resolve("X", "R1", end).base_price == Decimal("4")
        with pytest.raises(NotFoundError):
            resolver.resolve("X", "R1", start - timedelta(microseconds=1))
        with pytest.raises(NotFoundError):
            resolver.resolve("X", "R1", end + timedelta(microseconds=1))

    def test_aware_instant_is_compared_in_utc(self):
        db = DatabaseManager("sqlite://")
        catalog = PriceCatalog(db)
        PriceManager(catalog).create_price(PriceCreate(
            company_id="X",
            type=PriceType.FLAT,
            base_price=Decimal("4"),
            valid_from=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        ))
        warsaw_winter = timezone(timedelta(hours=1))

        # 12:30 in UTC+1 is 11:30 UTC, before the price starts
        with pytest.raises(NotFoundError):
            PriceResolver(catalog).resolve("X", "R1", datetime(2026, 1, 1, 12, 30, tzinfo=warsaw_winter))

    def test_other_company_and_other_route_ignored(self):
        db = DatabaseManager("sqlite://")
        catalog = PriceCatalog(db)
        manager = PriceManager(catalog)
        manager.create_price(PriceCreate(company_id="Y", type=PriceType.FLAT, base_price=Decimal("1")))
        manager.create_price(PriceCreate(company_id="X", route_id="R2", type=PriceType.FLAT, base_price=Decimal("2")))

        with pytest.raises(NotFoundError):
            PriceResolver(catalog).resolve("X", "R1")

    def test_inactive_price_never_resolves(self):
        db = DatabaseManager("sqlite://")
        catalog = PriceCatalog(db)
        manager = PriceManager(catalog)
        specific = manager.create_price(PriceCreate(
            company_id="X", route_id="R1", type=PriceType.FLAT, base_price=Decimal("3")
        ))
        manager.create_price(PriceCreate(company_id="X", type=PriceType.FLAT, base_price=Decimal("6")))

        manager.delete_price(specific.id)

        assert PriceResolver(catalog).resolve("X", "R1").base_price == Decimal("6")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
