"""Engine subpackage - offerte calculation core.

OfferteEngine lives in .offerte_engine; it pulls in the reference loader
and is imported from there directly.
"""
from .models import (
    CalculationContext,
    CalculationInput,
    CalculationResult,
    OfferteRegel,
    Totalen,
)
from .offerte_calculator import calculate_offerte, calculate_offerte_regels, calculate_totals

__all__ = [
    'CalculationInput',
    'CalculationContext',
    'CalculationResult',
    'OfferteRegel',
    'Totalen',
    'calculate_offerte',
    'calculate_offerte_regels',
    'calculate_totals',
]
