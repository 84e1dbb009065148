"""
Offerte Calculator - turns scope selections into priced quote lines and totals.

Resolution per post:
1. Labour posts: norm hours per unit × quantity
2. Correction factors for accessibility, backlog and scope parameters,
   composed multiplicatively
3. Hours priced at the hourly rate from Instellingen
4. Material/machine posts: active catalogue product × quantity (+ waste %)

Totals cascade: subtotal → margin → ex-VAT → VAT → incl-VAT, each monetary
field rounded half-up to cents.
"""
import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from .errors import CalculationError, InvalidInputError
from .models import (
    Bereikbaarheid,
    CalculationContext,
    CalculationInput,
    CalculationResult,
    FactorType,
    Instellingen,
    OfferteRegel,
    SCOPES_PER_TYPE,
    Post,
    RegelType,
    Scope,
    Totalen,
)
from .rate_tables import RateTables

logger = logging.getLogger(__name__)

# Fixed preparation & administration cost per quote
OFFERTE_OVERHEAD = 200.0

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to 2 decimals (minor currency unit)."""
    try:
        return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidInputError(f"Amount {value} is out of range", value=value) from None


def round_to_quarter(hours: float) -> float:
    """Round hours to the nearest quarter hour, halves upwards."""
    try:
        quarters = (Decimal(str(hours)) * 4).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidInputError(f"Hours {hours} are out of range", value=hours) from None
    return float(quarters / 4)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _validate_percentage(value, field: str):
    if not _is_number(value) or not 0 <= value <= 100:
        raise InvalidInputError(f"{field} must be between 0 and 100, got {value}", field=field, value=value)


def _validate_instellingen(instellingen: Instellingen):
    uurtarief = instellingen.uurtarief
    if not _is_number(uurtarief) or uurtarief < 0:
        raise InvalidInputError(f"uurtarief must be >= 0, got {uurtarief}", field="uurtarief", value=uurtarief)
    _validate_percentage(instellingen.standaard_marge_percentage, "standaard_marge_percentage")
    _validate_percentage(instellingen.btw_percentage, "btw_percentage")


def _validate_post(scope: Scope, post: Post):
    q = post.hoeveelheid
    if not _is_number(q) or q < 0:
        raise InvalidInputError(
            f"Quantity for '{post.key}' in scope '{scope.value}' must be a finite number >= 0, got {q}",
            field="hoeveelheid",
            value=q,
        )
    if post.marge_percentage is not None:
        _validate_percentage(post.marge_percentage, "marge_percentage")


def _arbeids_regel(
    scope: Scope,
    post: Post,
    factoren: dict[FactorType, str],
    tables: RateTables,
    instellingen: Instellingen,
    regel_id: str,
) -> OfferteRegel:
    normuur = tables.normuur(scope, post.key)
    uren = post.hoeveelheid * normuur.normuur_per_eenheid

    regel = OfferteRegel(
        id=regel_id,
        scope=scope,
        omschrijving=post.omschrijving or normuur.omschrijving or normuur.activiteit,
        type=RegelType.ARBEID,
        hoeveelheid=0.0,
        eenheid="uur",
        prijs_per_eenheid=instellingen.uurtarief,
        totaal=0.0,
        marge_percentage=post.marge_percentage,
    )
    regel.add_trace(
        "Normuur",
        f"{post.hoeveelheid} {normuur.eenheid} × {normuur.normuur_per_eenheid} uur/{normuur.eenheid}",
        f"{uren:.2f} uur",
    )

    for factor_type, waarde in factoren.items():
        factor = tables.factor(factor_type, waarde)
        uren *= factor
        regel.add_trace("Correctie", f"{factor_type.value}={waarde} × {factor}", f"{uren:.2f} uur")

    if instellingen.uren_afronden_op_kwartier:
        uren = round_to_quarter(uren)
        regel.add_trace("Afronding", "Rounded to quarter hour", f"{uren:.2f} uur")

    regel.hoeveelheid = round2(uren)
    regel.totaal = round2(regel.hoeveelheid * regel.prijs_per_eenheid)
    regel.add_trace("Extension", f"{regel.hoeveelheid} uur × €{regel.prijs_per_eenheid:.2f}", f"€{regel.totaal:.2f}")
    return regel


def _materiaal_regel(scope: Scope, post: Post, tables: RateTables, regel_id: str) -> Optional[OfferteRegel]:
    product = tables.product(post.key)
    if product is None:
        return None

    hoeveelheid = round2(post.hoeveelheid * (1 + product.verliespercentage / 100))
    regel = OfferteRegel(
        id=regel_id,
        scope=scope,
        omschrijving=post.omschrijving or product.productnaam,
        type=RegelType.MACHINE if post.soort is RegelType.MACHINE else RegelType.MATERIAAL,
        hoeveelheid=hoeveelheid,
        eenheid=product.eenheid,
        prijs_per_eenheid=product.verkoopprijs,
        totaal=round2(hoeveelheid * product.verkoopprijs),
        marge_percentage=post.marge_percentage,
    )
    regel.add_trace("Product Lookup", f"Found product {product.productnaam}", product.id)
    if product.verliespercentage:
        regel.add_trace("Verlies", f"{post.hoeveelheid} + {product.verliespercentage}% waste", str(hoeveelheid))
    regel.add_trace("Extension", f"{hoeveelheid} {product.eenheid} × €{product.verkoopprijs:.2f}", f"€{regel.totaal:.2f}")
    return regel


def calculate_offerte_regels(input: CalculationInput, context: CalculationContext) -> list[OfferteRegel]:
    """
    Calculate priced lines for every post of every selected scope.

    Lines follow scope order, then post order within each scope. Posts with
    quantity 0 and products that are unknown or inactive produce no line.
    Every selected scope must belong to the quote type (aanleg or onderhoud).

    Raises:
        MissingRateError: a labour post or condition has no configured rate
        InvalidInputError: a quantity or setting is out of range
        ReferenceDataError: the reference tables violate their invariants
        TypeError: input or context is not the expected type
    """
    if not isinstance(input, CalculationInput):
        raise TypeError(f"input must be a CalculationInput, got {type(input).__name__}")
    if not isinstance(context, CalculationContext):
        raise TypeError(f"context must be a CalculationContext, got {type(context).__name__}")

    instellingen = context.reference.instellingen
    _validate_instellingen(instellingen)
    tables = RateTables(context.reference)

    bereikbaarheid = input.bereikbaarheid or context.bereikbaarheid or Bereikbaarheid.GOED
    achterstalligheid = input.achterstalligheid or context.achterstalligheid

    global_factoren = {FactorType.BEREIKBAARHEID: bereikbaarheid.value}
    if achterstalligheid is not None:
        global_factoren[FactorType.ACHTERSTALLIGHEID] = achterstalligheid.value

    regels: list[OfferteRegel] = []
    toegestaan = SCOPES_PER_TYPE[input.type]
    for selectie in input.scope_selecties:
        if selectie.scope not in toegestaan:
            raise InvalidInputError(
                f"Scope '{selectie.scope.value}' is not available on a {input.type.value} quote",
                field="scope",
                value=selectie.scope.value,
            )

        # Scope parameters replace a global condition of the same type
        factoren = {**global_factoren, **selectie.parameters}

        for post in selectie.posten:
            _validate_post(selectie.scope, post)
            if post.hoeveelheid == 0:
                continue

            regel_id = f"{selectie.scope.value}-{len(regels) + 1:03d}"
            if post.soort is RegelType.ARBEID:
                regel = _arbeids_regel(selectie.scope, post, factoren, tables, instellingen, regel_id)
            else:
                regel = _materiaal_regel(selectie.scope, post, tables, regel_id)

            if regel is not None:
                regels.append(regel)

    return regels


def _effective_marge(regel: OfferteRegel, scope_marges: dict, standaard: float) -> float:
    # Line override → scope margin → default
    if regel.marge_percentage is not None:
        return regel.marge_percentage
    scope_marge = scope_marges.get(regel.scope)
    if scope_marge is None:
        scope_marge = scope_marges.get(regel.scope.value)
    if scope_marge is not None:
        return scope_marge
    return standaard


def calculate_totals(
    regels: list[OfferteRegel],
    marge_percentage: float,
    btw_percentage: float,
    scope_marges: Optional[dict] = None,
) -> Totalen:
    """
    Aggregate line totals into the quote totals.

    Margin is taken on the subtotal (per line, honouring scope and line
    overrides); VAT is taken on the post-margin ex-VAT total.
    """
    _validate_percentage(marge_percentage, "marge_percentage")
    _validate_percentage(btw_percentage, "btw_percentage")
    scope_marges = scope_marges or {}
    for scope, pct in scope_marges.items():
        _validate_percentage(pct, f"scope_marges[{getattr(scope, 'value', scope)}]")

    materiaalkosten = 0.0
    arbeidskosten = 0.0
    totaal_uren = 0.0
    per_marge: dict[float, float] = {}

    for regel in regels:
        if regel.marge_percentage is not None:
            _validate_percentage(regel.marge_percentage, "marge_percentage")

        if regel.type is RegelType.MATERIAAL:
            materiaalkosten += regel.totaal
        else:
            arbeidskosten += regel.totaal
            if regel.type is RegelType.ARBEID and regel.eenheid == "uur":
                totaal_uren += regel.hoeveelheid

        pct = _effective_marge(regel, scope_marges, marge_percentage)
        per_marge[pct] = per_marge.get(pct, 0.0) + regel.totaal

    materiaalkosten = round2(materiaalkosten)
    arbeidskosten = round2(arbeidskosten)
    subtotaal = round2(materiaalkosten + arbeidskosten)

    if len(per_marge) <= 1:
        pct = next(iter(per_marge), marge_percentage)
        marge = round2(subtotaal * pct / 100)
    else:
        marge = round2(sum(round2(basis) * pct / 100 for pct, basis in per_marge.items()))

    effectief = round2(marge / subtotaal * 100) if subtotaal > 0 else marge_percentage
    totaal_ex_btw = round2(subtotaal + marge)
    btw = round2(totaal_ex_btw * btw_percentage / 100)
    totaal_incl_btw = round2(totaal_ex_btw + btw)

    return Totalen(
        materiaalkosten=materiaalkosten,
        arbeidskosten=arbeidskosten,
        totaal_uren=round2(totaal_uren),
        subtotaal=subtotaal,
        marge=marge,
        marge_percentage=effectief,
        totaal_ex_btw=totaal_ex_btw,
        btw=btw,
        totaal_incl_btw=totaal_incl_btw,
    )


def calculate_offerte(
    input: CalculationInput,
    context: CalculationContext,
    marge_percentage: Optional[float] = None,
    scope_marges: Optional[dict] = None,
    extra_regels: Iterable[OfferteRegel] = (),
) -> CalculationResult:
    """
    Calculate lines and totals, returning a CalculationResult.

    Margin and scope margins default to Instellingen; a quote may override
    them. Expected data errors come back as a failed result, programmer
    errors (wrong argument types) are raised.
    """
    try:
        regels = calculate_offerte_regels(input, context)
        regels.extend(extra_regels)

        instellingen = context.reference.instellingen
        if marge_percentage is None:
            marge_percentage = instellingen.standaard_marge_percentage
        if scope_marges is None:
            scope_marges = instellingen.scope_marges

        totalen = calculate_totals(regels, marge_percentage, instellingen.btw_percentage, scope_marges)
    except CalculationError as e:
        logger.info("Calculation aborted: %s", e.message)
        return CalculationResult.failure(e)

    return CalculationResult.success(regels, totalen)


def offerte_overhead_regel(bedrag: float = OFFERTE_OVERHEAD) -> OfferteRegel:
    """Fixed line for quote preparation and administration."""
    return OfferteRegel(
        id="algemeen-overhead",
        scope=Scope.ALGEMEEN,
        omschrijving="Offerte voorbereiding & administratie",
        type=RegelType.ARBEID,
        hoeveelheid=1,
        eenheid="vast",
        prijs_per_eenheid=bedrag,
        totaal=round2(bedrag),
    )


def garantiepakket_regel(pakket_naam: str, prijs: float) -> OfferteRegel:
    """Line for a guarantee package added to the quote."""
    if not math.isfinite(prijs) or prijs < 0:
        raise InvalidInputError(f"Guarantee package price must be >= 0, got {prijs}", field="prijs", value=prijs)
    return OfferteRegel(
        id="garantie-pakket",
        scope=Scope.GARANTIE,
        omschrijving=f"Garantiepakket: {pakket_naam}",
        type=RegelType.MATERIAAL,
        hoeveelheid=1,
        eenheid="pakket",
        prijs_per_eenheid=prijs,
        totaal=round2(prijs),
    )
