from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
import logging
import sys
from pathlib import Path

# Add src to path for internal imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from offerte_tool import __version__
from offerte_tool.engine import CalculationInput, calculate_totals
from offerte_tool.engine.errors import CalculationError
from offerte_tool.engine.models import (
    Achterstalligheid,
    Bereikbaarheid,
    FactorType,
    OfferteRegel,
    OfferteType,
    RegelType,
    Scope,
)
from offerte_tool.api.reference_api import router as reference_router
from offerte_tool.api.state import engine

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Offerte Calculator API",
    description="Quote pricing engine for landscaping projects",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reference_router)


class PostModel(BaseModel):
    key: str
    hoeveelheid: float
    soort: RegelType = RegelType.ARBEID
    omschrijving: Optional[str] = None
    marge_percentage: Optional[float] = None


class ScopeSelectieModel(BaseModel):
    scope: Scope
    posten: List[PostModel] = []
    parameters: Dict[FactorType, str] = {}


class CalcRequest(BaseModel):
    type: OfferteType = OfferteType.AANLEG
    bereikbaarheid: Optional[Bereikbaarheid] = None
    achterstalligheid: Optional[Achterstalligheid] = None
    scopes: List[ScopeSelectieModel] = []
    marge_percentage: Optional[float] = None
    scope_marges: Optional[Dict[Scope, float]] = None
    include_overhead: bool = False


class RegelModel(BaseModel):
    """A quote line in its stored shape."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    scope: Scope
    omschrijving: str
    type: RegelType
    hoeveelheid: float
    eenheid: str
    prijs_per_eenheid: float = Field(alias="prijsPerEenheid")
    totaal: float
    marge_percentage: Optional[float] = Field(default=None, alias="margePercentage")


class TotalsRequest(BaseModel):
    regels: List[RegelModel] = []
    marge_percentage: Optional[float] = None
    btw_percentage: Optional[float] = None
    scope_marges: Optional[Dict[Scope, float]] = None


@app.get("/")
async def root():
    return {"status": "online", "message": "Offerte Calculator API Active"}


@app.post("/calculate")
async def calculate_offerte(req: CalcRequest):
    try:
        calc_input = CalculationInput.from_dict(req.model_dump(mode="json"))
    except CalculationError as e:
        return {"ok": False, "regels": [], "totalen": None, "error": e.to_dict()}

    try:
        result = engine.calculate(
            calc_input,
            marge_percentage=req.marge_percentage,
            scope_marges=req.scope_marges,
            include_overhead=req.include_overhead,
        )
    except Exception as e:
        logger.exception("Calculation failed")
        raise HTTPException(status_code=500, detail=str(e))
    return result.to_dict()


@app.post("/totals")
async def calculate_offerte_totals(req: TotalsRequest):
    instellingen = engine.reference.instellingen
    regels = [
        OfferteRegel(
            id=r.id,
            scope=r.scope,
            omschrijving=r.omschrijving,
            type=r.type,
            hoeveelheid=r.hoeveelheid,
            eenheid=r.eenheid,
            prijs_per_eenheid=r.prijs_per_eenheid,
            totaal=r.totaal,
            marge_percentage=r.marge_percentage,
        )
        for r in req.regels
    ]
    try:
        totalen = calculate_totals(
            regels,
            req.marge_percentage if req.marge_percentage is not None else instellingen.standaard_marge_percentage,
            req.btw_percentage if req.btw_percentage is not None else instellingen.btw_percentage,
            req.scope_marges if req.scope_marges is not None else instellingen.scope_marges,
        )
    except CalculationError as e:
        return {"ok": False, "totalen": None, "error": e.to_dict()}
    return {"ok": True, "totalen": totalen.to_dict(), "error": None}


@app.get("/system/status")
async def get_status():
    return {
        "engine_active": True,
        "version": __version__,
        "reference": engine.status(),
    }
