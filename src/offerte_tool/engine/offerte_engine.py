"""
Offerte Engine - session object around the pure calculator.

Loads the reference tables once and prices calculation inputs against
them until reload_data() is called.
"""
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from ..data.reference_loader import load_reference_data
from .models import (
    CalculationContext,
    CalculationInput,
    CalculationResult,
    ReferenceData,
)
from .offerte_calculator import calculate_offerte, offerte_overhead_regel

logger = logging.getLogger(__name__)


class OfferteEngine:
    """
    Prices quotes against reference data loaded from disk.

    Resolution order per request:
    1. Build a CalculationContext from the loaded reference data
    2. Calculate lines per scope selection (norm hours, factors, products)
    3. Append the overhead line when requested
    4. Aggregate totals with the quote's margin or the default margin
    """

    def __init__(self, settings: Optional[Settings] = None, reference: Optional[ReferenceData] = None):
        """Initialize engine with reference data from settings, or the given tables."""
        self.settings = settings or get_settings()
        self.report: dict = {}

        if reference is not None:
            self.reference = reference
            self.report = {"status": "success", "source": "in-memory"}
        else:
            self.reference, self.report = load_reference_data(
                self.settings.reference_source,
                overrides_csv=self.settings.correctie_overrides,
            )

    def reload_data(self):
        """Reload all reference tables from disk; the old tables stay on failure."""
        self.reference, self.report = load_reference_data(
            self.settings.reference_source,
            overrides_csv=self.settings.correctie_overrides,
        )

    def context(self) -> CalculationContext:
        return CalculationContext(reference=self.reference)

    def calculate(
        self,
        input: CalculationInput,
        marge_percentage: Optional[float] = None,
        scope_marges: Optional[dict] = None,
        include_overhead: bool = False,
    ) -> CalculationResult:
        """
        Calculate a quote.

        Args:
            input: Scope selections and condition modifiers
            marge_percentage: Per-quote margin override (default from Instellingen)
            scope_marges: Per-scope margins (default from Instellingen)
            include_overhead: Add the fixed preparation/administration line

        Returns:
            CalculationResult with lines and totals, or the error
        """
        extra = [offerte_overhead_regel()] if include_overhead else []
        result = calculate_offerte(
            input,
            self.context(),
            marge_percentage=marge_percentage,
            scope_marges=scope_marges,
            extra_regels=extra,
        )
        if result.ok:
            logger.debug(
                "Calculated %d lines, total incl. VAT %.2f",
                len(result.regels), result.totalen.totaal_incl_btw,
            )
        return result

    def status(self) -> dict:
        return {
            "source": self.report.get("source"),
            "status": self.report.get("status"),
            "normuren": len(self.reference.normuren),
            "correctiefactoren": len(self.reference.correctiefactoren),
            "producten": len(self.reference.producten),
            "loaded_at": self.report.get("timestamp"),
        }
