#!/usr/bin/env python3
"""
Database management utility for the fare engine.

Usage:
    python manage_db.py init        - Create tables and seed the demo catalog
    python manage_db.py show        - Show active prices of a company
    python manage_db.py add_route   - Store a new version of a route
    python manage_db.py quote       - Calculate a fare
    python manage_db.py deactivate  - Soft delete a price
"""

import logging
import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from fare_engine.config import settings
from fare_engine.database import DatabaseManager
from fare_engine.errors import PricingError
from fare_engine.models import FareQuery
from fare_engine.services import (
    PriceCatalog,
    PriceManager,
    PriceResolver,
    RouteFareCalculator,
    SqlStopSequenceProvider,
)

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")


def init_database():
    """Initialize database with the demo catalog."""
    print("Initializing database...")
    db = DatabaseManager()
    if db.seed_demo_catalog():
        print("Demo catalog created for company 'demo-company' (route R1: A-B-C-D)")
    else:
        print("Prices already present, nothing seeded.")
    show_prices("demo-company")


def show_prices(company_id=None):
    """Display active prices of a company."""
    company_id = company_id or input("Company ID: ").strip()
    manager = PriceManager(PriceCatalog(DatabaseManager()))
    prices = manager.list_prices(company_id)

    print("\n" + "="*78)
    print(f"ACTIVE PRICES FOR {company_id}")
    print("="*78)
    print(f"{'ID':<38} {'Route':<10} {'Type':<12} {'Base':>10} {'Cur':<4}")
    print("-"*78)

    for price in prices:
        print(
            f"{price.id:<38} {price.route_id or '*':<10} {price.type.value:<12} "
            f"{price.base_price:>10} {price.currency:<4}"
        )
        for segment in price.segments:
            print(f"{'':<38}   {segment.from_stop_id} -> {segment.to_stop_id}: {segment.price}")

    print("-"*78)
    print(f"Total prices: {len(prices)}")
    print("="*78)


def add_route():
    """Interactive route version entry."""
    print("\nADD ROUTE VERSION")
    print("-"*30)

    company_id = input("Company ID: ").strip()
    route_id = input("Route ID: ").strip()
    stops = [stop.strip() for stop in input("Stop IDs in order (comma separated): ").split(",") if stop.strip()]

    if len(stops) < 2:
        print("A route needs at least two stops!")
        return

    route = DatabaseManager().add_route(company_id, stops, route_id=route_id or None)
    print(f"✓ Route {route.id} now runs {' -> '.join(stops)}")


def quote_fare():
    """Interactive fare calculation."""
    print("\nQUOTE FARE")
    print("-"*30)

    db = DatabaseManager()
    catalog = PriceCatalog(db)
    calculator = RouteFareCalculator(SqlStopSequenceProvider(db), PriceResolver(catalog))

    try:
        route_id = input("Route ID: ").strip()
        from_stop_id = input("Boarding stop: ").strip()
        to_stop_id = input("Alighting stop: ").strip()
        passengers = int(input("Passengers [1]: ").strip() or "1")

        result = calculator.quote(FareQuery(
            route_id=route_id,
            from_stop_id=from_stop_id,
            to_stop_id=to_stop_id,
            passengers=passengers,
        ))
    except ValueError:
        print("Invalid input! Stops are required and passengers must be a whole number.")
        return
    except PricingError as e:
        print(f"✗ {e.message}")
        return

    for segment in result.segments or []:
        print(f"  {segment.from_stop_id} -> {segment.to_stop_id}: {segment.price} {result.currency}")
    print(f"Unit price:  {result.unit_price} {result.currency} ({result.price_type.value})")
    print(f"Total price: {result.total_price} {result.currency}")


def deactivate_price():
    """Soft delete a price by id."""
    price_id = input("Price ID: ").strip()
    manager = PriceManager(PriceCatalog(DatabaseManager()))
    try:
        price = manager.delete_price(price_id)
    except PricingError as e:
        print(f"✗ {e.message}")
        return
    print(f"✓ Price {price.id} deactivated")


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        return

    command = sys.argv[1].lower()

    commands = {
        'init': init_database,
        'show': show_prices,
        'add_route': add_route,
        'quote': quote_fare,
        'deactivate': deactivate_price,
    }

    if command in commands:
        commands[command]()
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == "__main__":
    main()
