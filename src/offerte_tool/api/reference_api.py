"""
Reference API - FastAPI router for the rate tables behind the calculator.
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..engine.errors import ReferenceDataError
from ..engine.models import Scope
from ..services.reference_service import ReferenceService
from .state import engine

router = APIRouter(prefix="/api/reference", tags=["reference"])


class NormuurResponse(BaseModel):
    """Response model for a norm hour."""
    id: str
    scope: str
    activiteit: str
    normuur_per_eenheid: float
    eenheid: str
    omschrijving: Optional[str]


class CorrectiefactorResponse(BaseModel):
    """Response model for a correction factor."""
    type: str
    waarde: str
    factor: float
    omschrijving: Optional[str]


class ProductResponse(BaseModel):
    """Response model for a catalogue product."""
    id: str
    productnaam: str
    categorie: str
    verkoopprijs: float
    eenheid: str
    verliespercentage: float
    is_actief: bool


class ValidationResponse(BaseModel):
    """Response model for validation."""
    valid: bool
    errors: list[str]
    warnings: list[str]


# Endpoints

@router.get("/normuren", response_model=list[NormuurResponse])
async def list_normuren(scope: Optional[Scope] = None):
    """List norm hours, optionally for one scope."""
    return [
        NormuurResponse(
            id=n.id,
            scope=n.scope.value,
            activiteit=n.activiteit,
            normuur_per_eenheid=n.normuur_per_eenheid,
            eenheid=n.eenheid,
            omschrijving=n.omschrijving,
        )
        for n in engine.reference.normuren
        if scope is None or n.scope == scope
    ]


@router.get("/correctiefactoren", response_model=list[CorrectiefactorResponse])
async def list_correctiefactoren():
    """List correction factors after tenant overrides."""
    return [
        CorrectiefactorResponse(type=f.type.value, waarde=f.waarde, factor=f.factor, omschrijving=f.omschrijving)
        for f in engine.reference.correctiefactoren
    ]


@router.get("/producten", response_model=list[ProductResponse])
async def list_producten(include_inactive: bool = False):
    """List catalogue products."""
    return [
        ProductResponse(
            id=p.id,
            productnaam=p.productnaam,
            categorie=p.categorie,
            verkoopprijs=p.verkoopprijs,
            eenheid=p.eenheid,
            verliespercentage=p.verliespercentage,
            is_actief=p.is_actief,
        )
        for p in engine.reference.producten
        if include_inactive or p.is_actief
    ]


@router.get("/stats")
async def get_stats():
    """Get reference table statistics."""
    return ReferenceService(engine.reference).get_stats()


@router.get("/validate", response_model=ValidationResponse)
async def validate_reference():
    """Validate the loaded reference tables."""
    result = ReferenceService(engine.reference).validate()
    return ValidationResponse(valid=result.valid, errors=result.errors, warnings=result.warnings)


@router.post("/reload")
async def reload_reference():
    """Reload reference tables from disk."""
    try:
        engine.reload_data()
    except (FileNotFoundError, ReferenceDataError) as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "status": engine.status()}
