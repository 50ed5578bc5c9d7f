"""API endpoints for price management and fare calculation."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from fare_engine.database import DatabaseManager, get_db_manager
from fare_engine.models import FareResult, Price, PriceCreate, PriceUpdate
from fare_engine.services import (
    FareCalculatorInterface,
    PriceCatalog,
    PriceManager,
    PriceResolver,
    RouteFareCalculator,
    SqlStopSequenceProvider,
)

router = APIRouter(prefix="/api", tags=["Pricing"])


def get_price_manager(db_manager: DatabaseManager = Depends(get_db_manager)) -> PriceManager:
    return PriceManager(PriceCatalog(db_manager))


def get_calculator(db_manager: DatabaseManager = Depends(get_db_manager)) -> FareCalculatorInterface:
    """
    Dependency injection for fare calculator.
    Returns any implementation of FareCalculatorInterface.
    """
    return RouteFareCalculator(
        SqlStopSequenceProvider(db_manager),
        PriceResolver(PriceCatalog(db_manager)),
    )


@router.get("/pricing", response_model=List[Price])
async def list_prices(
    company_id: str = Query(...),
    route_id: Optional[str] = Query(None),
    at: Optional[datetime] = Query(None, description="Only prices valid at this instant"),
    manager: PriceManager = Depends(get_price_manager),
):
    """
    Get all active prices for a company, newest first.

    Args:
        company_id: Owning company
        route_id: Restrict to prices for exactly this route
        at: Restrict to prices valid at this instant
    """
    return manager.list_prices(company_id, route_id, at)


@router.get(
    "/pricing/calculate",
    response_model=FareResult,
    response_model_exclude_none=True,
)
async def calculate_fare(
    route_id: str = Query(..., min_length=1),
    from_stop_id: str = Query(..., min_length=1),
    to_stop_id: str = Query(..., min_length=1),
    passengers: int = Query(1),
    at: Optional[datetime] = Query(None),
    calculator: FareCalculatorInterface = Depends(get_calculator),
) -> FareResult:
    """
    Calculate the fare for a journey. Public; no credentials needed.

    Note: calculator is injected as FareCalculatorInterface,
    allowing any implementation to be used.
    """
    return calculator.calculate(route_id, from_stop_id, to_stop_id, passengers=passengers, at=at)


@router.get("/pricing/{price_id}", response_model=Price)
async def get_price(price_id: str, manager: PriceManager = Depends(get_price_manager)):
    return manager.get_price(price_id)


@router.post("/pricing", response_model=Price, status_code=201)
async def create_price(data: PriceCreate, manager: PriceManager = Depends(get_price_manager)):
    """Create a price. Callers must be company managers; the gateway enforces that."""
    return manager.create_price(data)


@router.put("/pricing/{price_id}", response_model=Price)
async def update_price(price_id: str, data: PriceUpdate, manager: PriceManager = Depends(get_price_manager)):
    return manager.update_price(price_id, data)


@router.delete("/pricing/{price_id}", response_model=Price)
async def delete_price(price_id: str, manager: PriceManager = Depends(get_price_manager)):
    """Soft delete a price."""
    return manager.delete_price(price_id)


@router.get("/health")
async def health_check(db_manager: DatabaseManager = Depends(get_db_manager)):
    """Health check endpoint including database status."""
    db_status = "healthy"
    try:
        price_count = db_manager.count_prices()
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        price_count = 0

    return {
        "status": "healthy",
        "service": "Fare Engine",
        "datastore_status": db_status,
        "price_count": price_count,
    }
