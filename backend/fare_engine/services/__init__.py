"""Services package for the fare engine."""

from .fare_calculator import (
    FareCalculatorInterface,
    RouteFareCalculator,
)
from .price_catalog import PriceCatalog
from .price_manager import PriceManager
from .price_resolver import PriceResolver
from .stop_sequence import SqlStopSequenceProvider, StopSequenceProvider

__all__ = [
    'FareCalculatorInterface',
    'RouteFareCalculator',
    'PriceCatalog',
    'PriceManager',
    'PriceResolver',
    'SqlStopSequenceProvider',
    'StopSequenceProvider',
]
