"""
Attributes Router — production attributes and their enumerated values.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, http_error
from changeover import attributes as attribute_service
from core.errors import DomainError

router = APIRouter(prefix="/api/v1/attributes", tags=["attributes"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class AttributeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    is_param: bool | None = None


class AttributeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    is_param: bool | None = None


class ParameterCreate(BaseModel):
    value: str = Field(..., min_length=1, max_length=255)


class ParameterResponse(BaseModel):
    id: int
    attribute_id: int
    value: str

    model_config = {"from_attributes": True}


class AttributeResponse(BaseModel):
    id: int
    name: str
    is_param: bool
    created_at: datetime
    parameters: list[ParameterResponse] = []

    model_config = {"from_attributes": True}


class OperationResponse(BaseModel):
    success: bool
    message: str


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[AttributeResponse])
async def list_attributes(db: AsyncSession = Depends(get_db)):
    """List attributes with their enumerated values."""
    return await attribute_service.list_attributes(db)


@router.post("/", response_model=AttributeResponse, status_code=201)
async def create_attribute(body: AttributeCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await attribute_service.create_attribute(db, body.name, body.is_param)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.patch("/{attribute_id}", response_model=AttributeResponse)
async def update_attribute(attribute_id: int, body: AttributeUpdate, db: AsyncSession = Depends(get_db)):
    try:
        return await attribute_service.update_attribute(db, attribute_id, body.name, body.is_param)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.delete("/{attribute_id}", response_model=OperationResponse)
async def delete_attribute(attribute_id: int, db: AsyncSession = Depends(get_db)):
    """Delete an attribute and its values."""
    result = await attribute_service.delete_attribute(db, attribute_id)
    if result.not_found:
        raise HTTPException(status_code=404, detail=result.message)
    return result.to_dict()


@router.post("/{attribute_id}/parameters", response_model=ParameterResponse, status_code=201)
async def create_parameter(attribute_id: int, body: ParameterCreate, db: AsyncSession = Depends(get_db)):
    """Add an enumerated value to a parameterized attribute."""
    try:
        return await attribute_service.create_parameter(db, attribute_id, body.value)
    except DomainError as exc:
        raise http_error(exc) from exc


@router.delete("/parameters/{parameter_id}", response_model=OperationResponse)
async def delete_parameter(parameter_id: int, db: AsyncSession = Depends(get_db)):
    result = await attribute_service.delete_parameter(db, parameter_id)
    if result.not_found:
        raise HTTPException(status_code=404, detail=result.message)
    return result.to_dict()
