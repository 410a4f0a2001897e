"""
Scenarios Router — named optimizer configurations, at most one default.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, http_error
from core.errors import DomainError
from optimization import scenarios as scenario_service

router = APIRouter(prefix="/api/v1/scenarios", tags=["scenarios"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class ScenarioCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    strategy: str | None = Field(None, max_length=100)
    campaign_window_days: int | None = Field(None, ge=0)
    gravity: bool | None = None
    resource_priority: list[int] = Field(default_factory=list)
    is_default: bool = False


class ScenarioUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    strategy: str | None = Field(None, max_length=100)
    campaign_window_days: int | None = Field(None, ge=0)
    gravity: bool | None = None
    resource_priority: list[int] | None = None
    is_default: bool | None = None


class ScenarioResponse(BaseModel):
    id: int
    name: str
    description: str | None
    strategy: str | None
    campaign_window_days: int | None
    gravity: bool | None
    resource_priority: list[int]
    is_default: bool
    created_at: datetime
    updated_at: datetime


class OperationResponse(BaseModel):
    success: bool
    message: str


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[ScenarioResponse])
async def list_scenarios(db: AsyncSession = Depends(get_db)):
    """List scenarios ordered by name."""
    return [scenario_service.serialize_scenario(s) for s in await scenario_service.list_scenarios(db)]


@router.get("/{scenario_id}", response_model=ScenarioResponse)
async def get_scenario(scenario_id: int, db: AsyncSession = Depends(get_db)):
    try:
        scenario = await scenario_service.get_scenario(db, scenario_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return scenario_service.serialize_scenario(scenario)


@router.post("/", response_model=ScenarioResponse, status_code=201)
async def create_scenario(body: ScenarioCreate, db: AsyncSession = Depends(get_db)):
    """Create a scenario. A duplicate name returns 409."""
    payload = body.model_dump(exclude={"is_default"})
    try:
        scenario = await scenario_service.create_scenario(db, payload, is_default=body.is_default)
    except DomainError as exc:
        raise http_error(exc) from exc
    return scenario_service.serialize_scenario(scenario)


@router.patch("/{scenario_id}", response_model=ScenarioResponse)
async def update_scenario(scenario_id: int, body: ScenarioUpdate, db: AsyncSession = Depends(get_db)):
    """Update only the supplied fields."""
    try:
        scenario = await scenario_service.update_scenario(db, scenario_id, body.model_dump(exclude_unset=True))
    except DomainError as exc:
        raise http_error(exc) from exc
    return scenario_service.serialize_scenario(scenario)


@router.post("/{scenario_id}/default", response_model=OperationResponse)
async def set_default_scenario(scenario_id: int, db: AsyncSession = Depends(get_db)):
    """Make this scenario the only default."""
    result = await scenario_service.set_default_scenario(db, scenario_id)
    if result.not_found:
        raise HTTPException(status_code=404, detail=result.message)
    return result.to_dict()


@router.delete("/{scenario_id}", response_model=OperationResponse)
async def delete_scenario(scenario_id: int, db: AsyncSession = Depends(get_db)):
    result = await scenario_service.delete_scenario(db, scenario_id)
    if result.not_found:
        raise HTTPException(status_code=404, detail=result.message)
    return result.to_dict()
