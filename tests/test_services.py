import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from offerte_tool.engine.models import (
    Correctiefactor,
    FactorType,
    Instellingen,
    Normuur,
    Product,
    ReferenceData,
    Scope,
)
from offerte_tool.services.correctie_service import (
    DEFAULT_CORRECTIEFACTOREN,
    default_correctiefactoren,
    merge_correctiefactoren,
)
from offerte_tool.services.reference_service import ReferenceService


@pytest.fixture
def reference():
    return ReferenceData(
        normuren=tuple(
            Normuur(f"n{i}", scope, "werk", 0.5, "m2")
            for i, scope in enumerate(Scope)
            if scope not in (Scope.ALGEMEEN, Scope.GARANTIE)
        ),
        correctiefactoren=tuple(default_correctiefactoren()),
        producten=(
            Product("p1", "Straatzand", "bestrating", 25, 35, "m3"),
            Product("p2", "Oude klinker", "bestrating", 10, 18, "m2", is_actief=False),
        ),
        instellingen=Instellingen(uurtarief=45, standaard_marge_percentage=15, btw_percentage=21),
    )


def test_default_factors_cover_all_factor_types():
    factoren = default_correctiefactoren()

    assert {f.type for f in factoren} == set(FactorType)
    assert len(factoren) == sum(len(v) for v in DEFAULT_CORRECTIEFACTOREN.values())
    assert all(f.factor > 0 for f in factoren)


def test_merge_replaces_defaults_in_place():
    overrides = [Correctiefactor(FactorType.BEREIKBAARHEID, "Slecht", 1.75, "Alleen via achterom")]

    merged = merge_correctiefactoren(default_correctiefactoren(), overrides)

    assert len(merged) == len(default_correctiefactoren())
    slecht = [f for f in merged if f.type is FactorType.BEREIKBAARHEID and f.waarde.lower() == "slecht"]
    assert len(slecht) == 1
    assert slecht[0].factor == 1.75
    assert merged.index(slecht[0]) == 2


def test_merge_appends_new_factors():
    extra = Correctiefactor(FactorType.COMPLEXITEIT, "extreem", 1.8)

    merged = merge_correctiefactoren(default_correctiefactoren(), [extra])

    assert merged[-1] == extra
    assert len(merged) == len(default_correctiefactoren()) + 1


def test_merge_without_overrides_keeps_defaults():
    assert merge_correctiefactoren(default_correctiefactoren(), []) == default_correctiefactoren()


def test_valid_reference(reference):
    result = ReferenceService(reference).validate()

    assert result.valid, result.errors
    assert result.errors == []
    assert result.warnings == ["1 inactive product(s): Oude klinker"]


def test_duplicates_and_bad_factors_invalidate(reference):
    broken = ReferenceData(
        normuren=reference.normuren + (Normuur("dup", Scope.GRONDWERK, "Werk", 0.3, "m2"),),
        correctiefactoren=reference.correctiefactoren + (Correctiefactor(FactorType.SNIJWERK, "extreem", 0),),
        producten=reference.producten,
        instellingen=reference.instellingen,
    )

    result = ReferenceService(broken).validate()

    assert not result.valid
    assert len(result.errors) == 2


def test_out_of_range_settings_invalidate(reference):
    broken = ReferenceData(
        normuren=reference.normuren,
        correctiefactoren=reference.correctiefactoren,
        producten=reference.producten,
        instellingen=Instellingen(
            uurtarief=-1, standaard_marge_percentage=15, btw_percentage=21,
            scope_marges={Scope.BESTRATING: 120},
        ),
    )

    result = ReferenceService(broken).validate()

    assert not result.valid
    assert "Hourly rate must be >= 0" in result.errors
    assert any("bestrating" in e for e in result.errors)


def test_missing_scopes_and_conditions_are_warnings(reference):
    sparse = ReferenceData(
        normuren=reference.normuren[:1],
        correctiefactoren=(Correctiefactor(FactorType.BEREIKBAARHEID, "goed", 1.0),),
        producten=(),
        instellingen=reference.instellingen,
    )

    result = ReferenceService(sparse).validate()

    assert result.valid
    assert any(w.startswith("No norm hours configured for scope(s)") for w in result.warnings)
    assert "No correction factor for bereikbaarheid=beperkt" in result.warnings
    assert "No correction factor for bereikbaarheid=slecht" in result.warnings


def test_stats(reference):
    stats = ReferenceService(reference).get_stats()

    assert stats['normuren'] == len(Scope) - 2
    assert stats['normuren_by_scope']['grondwerk'] == 1
    assert stats['correctiefactoren_by_type']['bereikbaarheid'] == 3
    assert stats['producten_active'] == 1
    assert stats['producten_inactive'] == 1
