"""
Shared engine instance for the API routers.
"""
from ..engine.offerte_engine import OfferteEngine

engine = OfferteEngine()
