"""
Data models for the offerte calculation engine.

Uses dataclasses for reference data, calculation input and output, and
str-valued enums for every closed dimension (scope, accessibility, severity).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import CalculationError, InvalidInputError


class Scope(str, Enum):
    """Category of landscaping work that can be selected on a quote."""
    # Aanleg
    GRONDWERK = "grondwerk"
    BESTRATING = "bestrating"
    BORDERS = "borders"
    GRAS = "gras"
    HOUTWERK = "houtwerk"
    WATER_ELEKTRA = "water_elektra"
    SPECIALS = "specials"
    # Onderhoud
    GRAS_ONDERHOUD = "gras_onderhoud"
    BORDERS_ONDERHOUD = "borders_onderhoud"
    HEGGEN_ONDERHOUD = "heggen_onderhoud"
    BOMEN_ONDERHOUD = "bomen_onderhoud"
    OVERIG_ONDERHOUD = "overig_onderhoud"
    REINIGING = "reiniging"
    BEMESTING = "bemesting"
    GAZONANALYSE = "gazonanalyse"
    MOLLENBESTRIJDING = "mollenbestrijding"
    # Synthetic scopes for fixed lines
    ALGEMEEN = "algemeen"
    GARANTIE = "garantie"


class OfferteType(str, Enum):
    AANLEG = "aanleg"
    ONDERHOUD = "onderhoud"


# Scopes that may be selected per quote type; ALGEMEEN and GARANTIE only carry
# fixed lines and are allowed on both.
SCOPES_PER_TYPE = {
    OfferteType.AANLEG: frozenset({
        Scope.GRONDWERK, Scope.BESTRATING, Scope.BORDERS, Scope.GRAS,
        Scope.HOUTWERK, Scope.WATER_ELEKTRA, Scope.SPECIALS,
        Scope.ALGEMEEN, Scope.GARANTIE,
    }),
    OfferteType.ONDERHOUD: frozenset({
        Scope.GRAS_ONDERHOUD, Scope.BORDERS_ONDERHOUD, Scope.HEGGEN_ONDERHOUD,
        Scope.BOMEN_ONDERHOUD, Scope.OVERIG_ONDERHOUD, Scope.REINIGING,
        Scope.BEMESTING, Scope.GAZONANALYSE, Scope.MOLLENBESTRIJDING,
        Scope.ALGEMEEN, Scope.GARANTIE,
    }),
}


class Bereikbaarheid(str, Enum):
    """Site accessibility."""
    GOED = "goed"
    BEPERKT = "beperkt"
    SLECHT = "slecht"


class Achterstalligheid(str, Enum):
    """Backlog / neglect severity of the garden."""
    LAAG = "laag"
    GEMIDDELD = "gemiddeld"
    HOOG = "hoog"


class FactorType(str, Enum):
    """Dimension a correction factor applies to."""
    BEREIKBAARHEID = "bereikbaarheid"
    ACHTERSTALLIGHEID = "achterstalligheid"
    SNIJWERK = "snijwerk"
    COMPLEXITEIT = "complexiteit"
    INTENSITEIT = "intensiteit"


class RegelType(str, Enum):
    ARBEID = "arbeid"
    MATERIAAL = "materiaal"
    MACHINE = "machine"


def parse_enum(enum_cls, value, field_name: str):
    """Convert a raw value to a member of enum_cls, rejecting unknown keys."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        valid = [m.value for m in enum_cls]
        raise InvalidInputError(
            f"Unknown {field_name} '{value}', must be one of: {valid}",
            field=field_name,
            value=value,
        ) from None


# ============================================================================
# REFERENCE DATA
# ============================================================================

@dataclass(frozen=True)
class Normuur:
    """Standard labour hours per unit for one activity within a scope."""
    id: str
    scope: Scope
    activiteit: str
    normuur_per_eenheid: float
    eenheid: str
    omschrijving: Optional[str] = None


@dataclass(frozen=True)
class Correctiefactor:
    """Multiplier applied to labour hours for a site condition."""
    type: FactorType
    waarde: str
    factor: float
    omschrijving: Optional[str] = None


@dataclass(frozen=True)
class Product:
    """Catalogue entry priced per unit."""
    id: str
    productnaam: str
    categorie: str
    inkoopprijs: float
    verkoopprijs: float
    eenheid: str
    verliespercentage: float = 0.0
    is_actief: bool = True


@dataclass(frozen=True)
class Instellingen:
    """Business-wide pricing settings."""
    uurtarief: float
    standaard_marge_percentage: float
    btw_percentage: float
    scope_marges: dict[Scope, float] = field(default_factory=dict)
    uren_afronden_op_kwartier: bool = False


@dataclass(frozen=True)
class ReferenceData:
    """All rate tables a calculation reads from."""
    normuren: tuple[Normuur, ...]
    correctiefactoren: tuple[Correctiefactor, ...]
    producten: tuple[Product, ...]
    instellingen: Instellingen


# ============================================================================
# CALCULATION INPUT
# ============================================================================

@dataclass(frozen=True)
class Post:
    """
    One quantity within a scope selection.

    For ARBEID posts `key` is a norm-hour activity; for MATERIAAL and MACHINE
    posts it is a product id.
    """
    key: str
    hoeveelheid: float
    soort: RegelType = RegelType.ARBEID
    omschrijving: Optional[str] = None
    marge_percentage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Post':
        if not data.get('key'):
            raise InvalidInputError("Post key is required", field='key', value=data.get('key'))
        try:
            hoeveelheid = float(data.get('hoeveelheid', 0))
        except (TypeError, ValueError):
            raise InvalidInputError(
                f"Quantity for '{data['key']}' must be numeric",
                field='hoeveelheid',
                value=data.get('hoeveelheid'),
            ) from None
        marge = data.get('marge_percentage')
        try:
            marge = float(marge) if marge is not None else None
        except (TypeError, ValueError):
            raise InvalidInputError(
                f"Margin for '{data['key']}' must be numeric",
                field='marge_percentage',
                value=marge,
            ) from None
        return cls(
            key=str(data['key']).strip(),
            hoeveelheid=hoeveelheid,
            soort=parse_enum(RegelType, data.get('soort', 'arbeid'), 'soort'),
            omschrijving=data.get('omschrijving') or None,
            marge_percentage=marge,
        )


@dataclass(frozen=True)
class ScopeSelectie:
    """A selected scope with its ordered posts and scope-specific factors."""
    scope: Scope
    posten: tuple[Post, ...] = ()
    parameters: dict[FactorType, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> 'ScopeSelectie':
        parameters = {
            parse_enum(FactorType, k, 'parameter'): str(v).strip().lower()
            for k, v in (data.get('parameters') or {}).items()
        }
        return cls(
            scope=parse_enum(Scope, data.get('scope'), 'scope'),
            posten=tuple(Post.from_dict(p) for p in data.get('posten', [])),
            parameters=parameters,
        )


@dataclass(frozen=True)
class CalculationInput:
    """
    Form state for one recalculation.

    Condition modifiers left as None fall back to the CalculationContext.
    """
    scope_selecties: tuple[ScopeSelectie, ...]
    bereikbaarheid: Optional[Bereikbaarheid] = None
    achterstalligheid: Optional[Achterstalligheid] = None
    type: OfferteType = OfferteType.AANLEG

    @classmethod
    def from_dict(cls, data: dict) -> 'CalculationInput':
        """Build an input from loosely typed form data."""
        bereikbaarheid = data.get('bereikbaarheid')
        achterstalligheid = data.get('achterstalligheid')
        return cls(
            scope_selecties=tuple(ScopeSelectie.from_dict(s) for s in data.get('scopes', [])),
            bereikbaarheid=(
                parse_enum(Bereikbaarheid, bereikbaarheid, 'bereikbaarheid')
                if bereikbaarheid else None
            ),
            achterstalligheid=(
                parse_enum(Achterstalligheid, achterstalligheid, 'achterstalligheid')
                if achterstalligheid else None
            ),
            type=parse_enum(OfferteType, data.get('type', 'aanleg'), 'type'),
        )


@dataclass(frozen=True)
class CalculationContext:
    """Reference data plus default condition modifiers."""
    reference: ReferenceData
    bereikbaarheid: Optional[Bereikbaarheid] = None
    achterstalligheid: Optional[Achterstalligheid] = None


# ============================================================================
# CALCULATION OUTPUT
# ============================================================================

@dataclass
class TraceStep:
    """A single step in the line resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class OfferteRegel:
    """A single priced line on a quote."""
    id: str
    scope: Scope
    omschrijving: str
    type: RegelType
    hoeveelheid: float
    eenheid: str
    prijs_per_eenheid: float
    totaal: float
    marge_percentage: Optional[float] = None
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this line."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert to the stored quote line shape."""
        data = {
            "id": self.id,
            "scope": self.scope.value,
            "omschrijving": self.omschrijving,
            "eenheid": self.eenheid,
            "hoeveelheid": self.hoeveelheid,
            "prijsPerEenheid": self.prijs_per_eenheid,
            "totaal": self.totaal,
            "type": self.type.value,
        }
        if self.marge_percentage is not None:
            data["margePercentage"] = self.marge_percentage
        return data


@dataclass(frozen=True)
class Totalen:
    """Aggregate financial totals of a quote."""
    materiaalkosten: float
    arbeidskosten: float
    totaal_uren: float
    subtotaal: float
    marge: float
    marge_percentage: float
    totaal_ex_btw: float
    btw: float
    totaal_incl_btw: float

    def to_dict(self) -> dict:
        """Convert to the stored quote totals shape."""
        return {
            "materiaalkosten": self.materiaalkosten,
            "arbeidskosten": self.arbeidskosten,
            "totaalUren": self.totaal_uren,
            "subtotaal": self.subtotaal,
            "marge": self.marge,
            "margePercentage": self.marge_percentage,
            "totaalExBtw": self.totaal_ex_btw,
            "btw": self.btw,
            "totaalInclBtw": self.totaal_incl_btw,
        }


@dataclass
class CalculationResult:
    """Either priced lines with totals, or the error that stopped the calculation."""
    ok: bool
    regels: list[OfferteRegel] = field(default_factory=list)
    totalen: Optional[Totalen] = None
    error: Optional[CalculationError] = None

    @classmethod
    def success(cls, regels: list[OfferteRegel], totalen: Totalen) -> 'CalculationResult':
        return cls(ok=True, regels=regels, totalen=totalen)

    @classmethod
    def failure(cls, error: CalculationError) -> 'CalculationResult':
        return cls(ok=False, error=error)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "regels": [r.to_dict() for r in self.regels],
            "totalen": self.totalen.to_dict() if self.totalen else None,
            "error": self.error.to_dict() if self.error else None,
        }
