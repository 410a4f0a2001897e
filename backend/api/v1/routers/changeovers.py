"""
Changeovers Router — changeover groups, baseline times and setup-time matrices.

Endpoints:
  GET    /changeovers/groups                              — List groups
  POST   /changeovers/groups                              — Create group
  GET    /changeovers/groups/{id}                         — Get group
  PATCH  /changeovers/groups/{id}                         — Rename group
  DELETE /changeovers/groups/{id}                         — Delete group + its matrix
  GET    /changeovers/groups/{id}/matrix                  — Full matrix of the group
  GET    /changeovers/groups/{id}/times                   — Baselines of the group
  PUT    /changeovers/times                               — Upsert baseline
  DELETE /changeovers/times/{id}                          — Delete baseline + its cells
  GET    /changeovers/groups/{id}/attributes/{aid}/cells  — Cells for one attribute
  PUT    /changeovers/cells                               — Upsert cell
  DELETE /changeovers/cells/{id}                          — Delete cell
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, http_error
from changeover import matrix as matrix_service
from core.errors import DomainError, OperationResult

router = APIRouter(prefix="/api/v1/changeovers", tags=["changeovers"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class GroupResponse(BaseModel):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChangeoverTimeInput(BaseModel):
    changeover_group_id: int
    attribute_id: int
    changeover_time: float = Field(..., ge=0)


class ChangeoverTimeResponse(BaseModel):
    id: int
    changeover_group_id: int
    attribute_id: int
    changeover_time: float
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChangeoverDataInput(BaseModel):
    changeover_group_id: int
    attribute_id: int
    from_attr_param_id: int
    to_attr_param_id: int
    setup_time: float = Field(..., ge=0)


class ChangeoverDataResponse(BaseModel):
    id: int
    changeover_group_id: int
    attribute_id: int
    from_attr_param_id: int
    to_attr_param_id: int
    setup_time: float
    updated_at: datetime

    model_config = {"from_attributes": True}


class OperationResponse(BaseModel):
    success: bool
    message: str


def _operation_response(result: OperationResult) -> dict:
    if result.not_found:
        raise HTTPException(status_code=404, detail=result.message)
    return result.to_dict()


# ─── Groups ─────────────────────────────────────────────────────────────────


@router.get("/groups", response_model=list[GroupResponse])
async def list_groups(db: AsyncSession = Depends(get_db)):
    return await matrix_service.list_groups(db)


@router.post("/groups", response_model=GroupResponse, status_code=201)
async def create_group(body: GroupCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await matrix_service.create_group(db, body.name)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.get("/groups/{group_id}", response_model=GroupResponse)
async def get_group(group_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await matrix_service.get_group(db, group_id)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.patch("/groups/{group_id}", response_model=GroupResponse)
async def rename_group(group_id: int, body: GroupCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await matrix_service.rename_group(db, group_id, body.name)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.delete("/groups/{group_id}", response_model=OperationResponse)
async def delete_group(group_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a group together with all of its baselines and matrix cells."""
    return _operation_response(await matrix_service.delete_group(db, group_id))


@router.get("/groups/{group_id}/matrix")
async def get_group_matrix(group_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    """Every baseline and cell of the group, grouped by attribute."""
    try:
        matrix = await matrix_service.get_group_matrix(db, group_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return matrix.to_dict()


# ─── Baselines ──────────────────────────────────────────────────────────────


@router.get("/groups/{group_id}/times", response_model=list[ChangeoverTimeResponse])
async def list_baselines(group_id: int, db: AsyncSession = Depends(get_db)):
    return await matrix_service.list_baselines(db, group_id)


@router.put("/times", response_model=ChangeoverTimeResponse)
async def set_changeover_time(body: ChangeoverTimeInput, db: AsyncSession = Depends(get_db)):
    """Create or update the baseline for (group, attribute)."""
    try:
        return await matrix_service.set_baseline_time(
            db, body.changeover_group_id, body.attribute_id, body.changeover_time
        )
    except DomainError as exc:
        raise http_error(exc) from exc


@router.delete("/times/{changeover_time_id}", response_model=OperationResponse)
async def delete_changeover_time(changeover_time_id: int, db: AsyncSession = Depends(get_db)):
    return _operation_response(await matrix_service.delete_baseline_time(db, changeover_time_id))


# ─── Matrix cells ───────────────────────────────────────────────────────────


@router.get(
    "/groups/{group_id}/attributes/{attribute_id}/cells",
    response_model=list[ChangeoverDataResponse],
)
async def get_matrix(group_id: int, attribute_id: int, db: AsyncSession = Depends(get_db)):
    return await matrix_service.get_matrix(db, group_id, attribute_id)


@router.put("/cells", response_model=ChangeoverDataResponse)
async def set_changeover_data(body: ChangeoverDataInput, db: AsyncSession = Depends(get_db)):
    """Create or update one from -> to cell."""
    try:
        return await matrix_service.set_matrix_cell(
            db,
            body.changeover_group_id,
            body.attribute_id,
            body.from_attr_param_id,
            body.to_attr_param_id,
            body.setup_time,
        )
    except DomainError as exc:
        raise http_error(exc) from exc


@router.delete("/cells/{cell_id}", response_model=OperationResponse)
async def delete_changeover_data(cell_id: int, db: AsyncSession = Depends(get_db)):
    return _operation_response(await matrix_service.delete_matrix_cell(db, cell_id))
