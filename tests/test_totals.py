import math
import pytest
import sys
import os

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from offerte_tool.engine import calculate_totals
from offerte_tool.engine.errors import InvalidInputError
from offerte_tool.engine.models import OfferteRegel, RegelType, Scope
from offerte_tool.engine.offerte_calculator import (
    garantiepakket_regel,
    offerte_overhead_regel,
    round2,
    round_to_quarter,
)


def regel(scope, type, totaal, hoeveelheid=1.0, eenheid="uur", marge_percentage=None, n=1):
    return OfferteRegel(
        id=f"{scope.value}-{n:03d}",
        scope=scope,
        omschrijving=f"{scope.value} {type.value}",
        type=type,
        hoeveelheid=hoeveelheid,
        eenheid=eenheid,
        prijs_per_eenheid=round2(totaal / hoeveelheid) if hoeveelheid else 0.0,
        totaal=totaal,
        marge_percentage=marge_percentage,
    )


LINE_SETS = [
    [regel(Scope.GRONDWERK, RegelType.ARBEID, 517.50, 11.5)],
    [
        regel(Scope.GRONDWERK, RegelType.ARBEID, 33.33, 0.74),
        regel(Scope.GRONDWERK, RegelType.MATERIAAL, 66.67, 2.2, "m3", n=2),
        regel(Scope.BESTRATING, RegelType.MATERIAAL, 0.01, 1, "stuk", n=3),
    ],
    [
        regel(Scope.BORDERS, RegelType.ARBEID, 1234.56, 27.43),
        regel(Scope.BORDERS, RegelType.MACHINE, 185.0, 1, "dag", n=2),
        regel(Scope.GRAS, RegelType.MATERIAAL, 999.99, 142.86, "m2", n=3),
    ],
]


@pytest.mark.parametrize("regels", LINE_SETS)
@pytest.mark.parametrize("marge,btw", [(0, 0), (15, 21), (20, 9), (12.5, 21)])
def test_totals_cascade(regels, marge, btw):
    totalen = calculate_totals(regels, marge, btw)

    assert totalen.subtotaal == round2(totalen.materiaalkosten + totalen.arbeidskosten)
    assert totalen.marge == round2(totalen.subtotaal * marge / 100)
    assert totalen.totaal_ex_btw == round2(totalen.subtotaal + totalen.marge)
    assert totalen.btw == round2(totalen.totaal_ex_btw * btw / 100)
    assert totalen.totaal_incl_btw == round2(totalen.totaal_ex_btw + totalen.btw)


@pytest.mark.parametrize("regels", LINE_SETS)
def test_totals_are_additive_over_lines(regels):
    totalen = calculate_totals(regels, 15, 21)

    materiaal = sum(r.totaal for r in regels if r.type is RegelType.MATERIAAL)
    arbeid = sum(r.totaal for r in regels if r.type is not RegelType.MATERIAAL)
    assert totalen.materiaalkosten == round2(materiaal)
    assert totalen.arbeidskosten == round2(arbeid)
    assert math.isclose(totalen.subtotaal, round2(materiaal + arbeid))


@pytest.mark.parametrize("regels", LINE_SETS)
def test_zero_margin_and_vat_leave_subtotal_unchanged(regels):
    totalen = calculate_totals(regels, 0, 0)

    assert totalen.marge == 0.0
    assert totalen.btw == 0.0
    assert totalen.totaal_incl_btw == totalen.subtotaal


def test_hours_only_count_hourly_labour():
    regels = [
        regel(Scope.GRONDWERK, RegelType.ARBEID, 90.0, 2.0),
        regel(Scope.GRONDWERK, RegelType.MACHINE, 185.0, 1, "dag", n=2),
        regel(Scope.GRONDWERK, RegelType.MATERIAAL, 30.0, 1, "m3", n=3),
        offerte_overhead_regel(),
    ]

    totalen = calculate_totals(regels, 0, 21)

    assert totalen.totaal_uren == 2.0
    assert totalen.arbeidskosten == 90.0 + 185.0 + 200.0
    assert totalen.materiaalkosten == 30.0


def test_empty_lines_give_zero_totals():
    totalen = calculate_totals([], 15, 21)

    assert totalen.subtotaal == 0.0
    assert totalen.totaal_incl_btw == 0.0
    assert totalen.marge_percentage == 15


def test_scope_margins_apply_per_scope():
    regels = [
        regel(Scope.GRONDWERK, RegelType.ARBEID, 100.0, 2.0),
        regel(Scope.BESTRATING, RegelType.MATERIAAL, 200.0, 1, "m3", n=2),
    ]

    totalen = calculate_totals(regels, 20, 21, scope_marges={Scope.BESTRATING: 30})

    # 20% of 100 + 30% of 200
    assert totalen.marge == 80.0
    assert totalen.marge_percentage == 26.67
    assert totalen.totaal_ex_btw == 380.0
    assert totalen.btw == 79.8
    assert totalen.totaal_incl_btw == 459.8


def test_scope_margins_accept_string_keys():
    regels = [regel(Scope.BESTRATING, RegelType.MATERIAAL, 200.0, 1, "m3")]

    totalen = calculate_totals(regels, 20, 0, scope_marges={"bestrating": 10})

    assert totalen.marge == 20.0


def test_line_margin_overrides_scope_margin():
    regels = [
        regel(Scope.GRONDWERK, RegelType.ARBEID, 100.0, 2.0),
        regel(Scope.BESTRATING, RegelType.MATERIAAL, 200.0, 1, "m3", marge_percentage=0, n=2),
    ]

    totalen = calculate_totals(regels, 20, 0, scope_marges={Scope.BESTRATING: 30})

    assert totalen.marge == 20.0


@pytest.mark.parametrize("bad", [-0.01, 100.01, float("nan"), float("inf")])
def test_out_of_range_percentages_are_rejected(bad):
    regels = LINE_SETS[0]

    with pytest.raises(InvalidInputError):
        calculate_totals(regels, bad, 21)
    with pytest.raises(InvalidInputError):
        calculate_totals(regels, 15, bad)
    with pytest.raises(InvalidInputError):
        calculate_totals(regels, 15, 21, scope_marges={Scope.GRONDWERK: bad})


def test_boundary_percentages_are_accepted():
    totalen = calculate_totals(LINE_SETS[0], 100, 100)

    assert totalen.marge == totalen.subtotaal
    assert totalen.btw == totalen.totaal_ex_btw


def test_guarantee_package_is_material():
    totalen = calculate_totals([garantiepakket_regel("Premium", 349.0)], 0, 21)

    assert totalen.materiaalkosten == 349.0
    assert totalen.totaal_incl_btw == 422.29


def test_guarantee_package_rejects_negative_price():
    with pytest.raises(InvalidInputError):
        garantiepakket_regel("Basis", -1)


def test_totals_serialize_with_stored_keys():
    data = calculate_totals(LINE_SETS[0], 20, 21).to_dict()

    assert set(data) == {
        "materiaalkosten", "arbeidskosten", "totaalUren", "subtotaal", "marge",
        "margePercentage", "totaalExBtw", "btw", "totaalInclBtw",
    }
    assert data["totaalInclBtw"] == 751.41


@pytest.mark.parametrize("value,expected", [
    (2.675, 2.68),
    (1.005, 1.01),
    (11.499999999999998, 11.5),
    (-0.125, -0.13),
    (0.0, 0.0),
])
def test_round2_rounds_half_up(value, expected):
    assert round2(value) == expected


@pytest.mark.parametrize("hours,expected", [(1.0, 1.0), (1.1, 1.0), (1.125, 1.25), (1.15, 1.25), (1.4, 1.5), (0.0, 0.0)])
def test_round_to_quarter_rounds_to_nearest_quarter(hours, expected):
    assert round_to_quarter(hours) == expected


@pytest.mark.parametrize("bad", [True, False])
def test_boolean_percentages_are_rejected(bad):
    with pytest.raises(InvalidInputError):
        calculate_totals(LINE_SETS[0], bad, 21)
    with pytest.raises(InvalidInputError):
        calculate_totals(LINE_SETS[0], 15, bad)


def test_round2_rejects_out_of_range_amounts():
    with pytest.raises(InvalidInputError):
        round2(1e30)
    with pytest.raises(InvalidInputError):
        round_to_quarter(float("inf"))
