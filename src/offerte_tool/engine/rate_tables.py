"""
Rate Tables - Indexed lookups over the reference data.

Used by the offerte calculator to resolve norm hours, correction factors
and products by exact key.
"""
import logging
import math
from typing import Optional

from .errors import MissingRateError, ReferenceDataError
from .models import (
    Correctiefactor,
    FactorType,
    Normuur,
    Product,
    ReferenceData,
    Scope,
)

logger = logging.getLogger(__name__)


class RateTables:
    """
    Exact-key indexes over norm hours, correction factors and products.

    Building the index enforces the table invariants: one norm hour per
    (scope, activiteit), one factor per (type, waarde), every factor > 0.
    """

    def __init__(self, reference: ReferenceData):
        self.reference = reference
        errors = []

        self._normuren: dict[tuple[Scope, str], Normuur] = {}
        for normuur in reference.normuren:
            key = (normuur.scope, normuur.activiteit.strip().lower())
            if key in self._normuren:
                errors.append(f"Duplicate norm hour for scope '{normuur.scope.value}', activity '{normuur.activiteit}'")
                continue
            if not math.isfinite(normuur.normuur_per_eenheid) or normuur.normuur_per_eenheid < 0:
                errors.append(f"Norm hour '{normuur.activiteit}' must be a non-negative number")
                continue
            self._normuren[key] = normuur

        self._factoren: dict[tuple[FactorType, str], Correctiefactor] = {}
        for factor in reference.correctiefactoren:
            key = (factor.type, factor.waarde.strip().lower())
            if key in self._factoren:
                errors.append(f"Duplicate correction factor '{factor.type.value}={factor.waarde}'")
                continue
            if not math.isfinite(factor.factor) or factor.factor <= 0:
                errors.append(f"Correction factor '{factor.type.value}={factor.waarde}' must be > 0")
                continue
            self._factoren[key] = factor

        self._producten: dict[str, Product] = {}
        for product in reference.producten:
            if product.id in self._producten:
                errors.append(f"Duplicate product id '{product.id}'")
                continue
            self._producten[product.id] = product

        if errors:
            raise ReferenceDataError(f"Reference data has {len(errors)} error(s)", errors=errors)

    def normuur(self, scope: Scope, activiteit: str) -> Normuur:
        """Norm hour for an activity; raises MissingRateError when not configured."""
        normuur = self._normuren.get((scope, activiteit.strip().lower()))
        if normuur is None:
            raise MissingRateError("normuur", activiteit, scope=scope.value)
        return normuur

    def factor(self, factor_type: FactorType, waarde: str) -> float:
        """Multiplier for a condition; raises MissingRateError when not configured."""
        factor = self._factoren.get((factor_type, str(waarde).strip().lower()))
        if factor is None:
            raise MissingRateError("correctiefactor", f"{factor_type.value}={waarde}")
        return factor.factor

    def product(self, product_id: str) -> Optional[Product]:
        """Active product by id, or None when it is unknown or inactive."""
        product = self._producten.get(product_id)
        if product is None:
            logger.debug("Product %s not found in catalogue", product_id)
            return None
        if not product.is_actief:
            logger.debug("Product %s is inactive", product_id)
            return None
        return product

    def scopes_with_normuren(self) -> set[Scope]:
        return {scope for scope, _ in self._normuren}
