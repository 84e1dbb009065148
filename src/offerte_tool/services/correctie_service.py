"""
Correction factor service - system defaults and tenant overrides.
"""
from typing import Iterable

from ..engine.models import Correctiefactor, FactorType


DEFAULT_CORRECTIEFACTOREN: dict[FactorType, dict[str, float]] = {
    FactorType.BEREIKBAARHEID: {"goed": 1.0, "beperkt": 1.2, "slecht": 1.5},
    FactorType.COMPLEXITEIT: {"laag": 1.0, "gemiddeld": 1.15, "hoog": 1.3},
    FactorType.INTENSITEIT: {"weinig": 0.8, "gemiddeld": 1.0, "veel": 1.3},
    FactorType.SNIJWERK: {"laag": 1.0, "gemiddeld": 1.2, "hoog": 1.4},
    FactorType.ACHTERSTALLIGHEID: {"laag": 1.0, "gemiddeld": 1.3, "hoog": 1.6},
}


def default_correctiefactoren() -> list[Correctiefactor]:
    """System default factors as Correctiefactor rows."""
    return [
        Correctiefactor(type=factor_type, waarde=waarde, factor=factor)
        for factor_type, waarden in DEFAULT_CORRECTIEFACTOREN.items()
        for waarde, factor in waarden.items()
    ]


def merge_correctiefactoren(
    system_defaults: Iterable[Correctiefactor],
    overrides: Iterable[Correctiefactor],
) -> list[Correctiefactor]:
    """
    Merge tenant overrides over the system defaults.

    An override replaces the default with the same (type, waarde) in place;
    overrides without a default are appended in their own order.
    """
    override_map = {(f.type, f.waarde.strip().lower()): f for f in overrides}

    merged = []
    seen = set()
    for factor in system_defaults:
        key = (factor.type, factor.waarde.strip().lower())
        merged.append(override_map.get(key, factor))
        seen.add(key)

    for key, factor in override_map.items():
        if key not in seen:
            merged.append(factor)

    return merged
