"""
Reference Service - validation and statistics for the rate tables.
"""
from dataclasses import dataclass, field

from ..engine.errors import ReferenceDataError
from ..engine.models import FactorType, ReferenceData, Scope
from ..engine.rate_tables import RateTables


@dataclass
class ValidationResult:
    """Result of reference data validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ReferenceService:
    """Checks a ReferenceData set before it is used for quotes."""

    # Scopes that only carry fixed lines and need no norm hours
    FIXED_SCOPES = {Scope.ALGEMEEN, Scope.GARANTIE}

    def __init__(self, reference: ReferenceData):
        self.reference = reference

    def validate(self) -> ValidationResult:
        """Validate table invariants and settings ranges."""
        result = ValidationResult(valid=True)
        instellingen = self.reference.instellingen

        try:
            tables = RateTables(self.reference)
        except ReferenceDataError as e:
            result.errors.extend(e.errors)
            result.valid = False
            tables = None

        if instellingen.uurtarief < 0:
            result.errors.append("Hourly rate must be >= 0")
            result.valid = False

        percentages = {
            "Default margin": instellingen.standaard_marge_percentage,
            "VAT": instellingen.btw_percentage,
        }
        for scope, pct in instellingen.scope_marges.items():
            percentages[f"Margin for {scope.value}"] = pct
        for label, pct in percentages.items():
            if not 0 <= pct <= 100:
                result.errors.append(f"{label} percentage must be between 0 and 100, got {pct}")
                result.valid = False

        inactive = [p.productnaam for p in self.reference.producten if not p.is_actief]
        if inactive:
            result.warnings.append(f"{len(inactive)} inactive product(s): {', '.join(inactive)}")

        if tables is not None:
            configured = tables.scopes_with_normuren()
            missing = [s.value for s in Scope if s not in configured and s not in self.FIXED_SCOPES]
            if missing:
                result.warnings.append(f"No norm hours configured for scope(s): {', '.join(missing)}")

        factor_keys = {(f.type, f.waarde) for f in self.reference.correctiefactoren}
        for bereikbaarheid in ("goed", "beperkt", "slecht"):
            if (FactorType.BEREIKBAARHEID, bereikbaarheid) not in factor_keys:
                result.warnings.append(f"No correction factor for bereikbaarheid={bereikbaarheid}")

        return result

    def get_stats(self) -> dict:
        """Get statistics about the reference tables."""
        by_scope = {}
        for normuur in self.reference.normuren:
            by_scope[normuur.scope.value] = by_scope.get(normuur.scope.value, 0) + 1

        by_type = {}
        for factor in self.reference.correctiefactoren:
            by_type[factor.type.value] = by_type.get(factor.type.value, 0) + 1

        active = [p for p in self.reference.producten if p.is_actief]
        return {
            'normuren': len(self.reference.normuren),
            'normuren_by_scope': by_scope,
            'correctiefactoren_by_type': by_type,
            'producten': len(self.reference.producten),
            'producten_active': len(active),
            'producten_inactive': len(self.reference.producten) - len(active),
        }
