"""
Attribute Catalogue — production properties referenced by the changeover matrix.

An attribute is either parameterized (values drawn from an enumerated set of
AttributeParameter rows) or free-text. Only parameterized attributes can carry
a transition matrix, so only they accept enumerated values here.
"""

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.errors import ConflictError, InvalidInputError, NotFoundError, OperationResult
from db.models import Attribute, AttributeParameter, ChangeoverData

logger = structlog.get_logger()


async def list_attributes(db: AsyncSession) -> list[Attribute]:
    result = await db.execute(
        select(Attribute)
        .options(selectinload(Attribute.parameters))
        .order_by(Attribute.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_attribute(db: AsyncSession, attribute_id: int) -> Attribute:
    result = await db.execute(
        select(Attribute)
        .options(selectinload(Attribute.parameters))
        .where(Attribute.id == attribute_id)
        .execution_options(populate_existing=True)
    )
    attribute = result.scalar_one_or_none()
    if attribute is None:
        raise NotFoundError(f"Attribute {attribute_id} not found")
    return attribute


async def create_attribute(db: AsyncSession, name: str, is_param: bool | None = None) -> Attribute:
    """Create an attribute. ``is_param`` defaults to True when not provided."""
    if not name or not name.strip():
        raise InvalidInputError("Attribute name is required")
    attribute = Attribute(name=name.strip(), is_param=True if is_param is None else is_param)
    db.add(attribute)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("An attribute with this name already exists.") from exc
    logger.info("attribute.created", attribute_id=attribute.id, is_param=attribute.is_param)
    return await get_attribute(db, attribute.id)


async def update_attribute(
    db: AsyncSession,
    attribute_id: int,
    name: str | None = None,
    is_param: bool | None = None,
) -> Attribute:
    attribute = await get_attribute(db, attribute_id)
    if is_param is False and attribute.is_param:
        await _require_no_enumerated_data(db, attribute)
    if name is not None:
        if not name.strip():
            raise InvalidInputError("Attribute name cannot be blank")
        attribute.name = name.strip()
    if is_param is not None:
        attribute.is_param = is_param
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("An attribute with this name already exists.") from exc
    return await get_attribute(db, attribute_id)


async def delete_attribute(db: AsyncSession, attribute_id: int) -> OperationResult:
    """Delete an attribute and its enumerated parameters in one transaction."""
    attribute = await db.get(Attribute, attribute_id)
    if attribute is None:
        return OperationResult(success=False, message="Attribute not found", not_found=True)
    try:
        await db.execute(delete(AttributeParameter).where(AttributeParameter.attribute_id == attribute_id))
        await db.execute(delete(Attribute).where(Attribute.id == attribute_id))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("attribute.delete_failed", attribute_id=attribute_id, error=str(exc))
        return OperationResult(success=False, message=str(exc))
    return OperationResult(success=True, message="Attribute deleted successfully")


async def create_parameter(db: AsyncSession, attribute_id: int, value: str) -> AttributeParameter:
    attribute = await db.get(Attribute, attribute_id)
    if attribute is None:
        raise NotFoundError(f"Attribute {attribute_id} not found")
    if not attribute.is_param:
        raise InvalidInputError(f"Attribute '{attribute.name}' is free-text and takes no enumerated values")
    if not value or not value.strip():
        raise InvalidInputError("Parameter value is required")

    parameter = AttributeParameter(attribute_id=attribute_id, value=value.strip())
    db.add(parameter)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Value '{value.strip()}' already exists for this attribute.") from exc
    await db.refresh(parameter)
    return parameter


async def delete_parameter(db: AsyncSession, parameter_id: int) -> OperationResult:
    parameter = await db.get(AttributeParameter, parameter_id)
    if parameter is None:
        return OperationResult(success=False, message="Parameter not found", not_found=True)
    try:
        await db.delete(parameter)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("attribute.parameter_delete_failed", parameter_id=parameter_id, error=str(exc))
        return OperationResult(success=False, message=str(exc))
    return OperationResult(success=True, message="Parameter deleted")


async def _require_no_enumerated_data(db: AsyncSession, attribute: Attribute) -> None:
    """A free-text attribute carries neither enumerated values nor matrix cells."""
    cell_count = (
        await db.execute(select(func.count(ChangeoverData.id)).where(ChangeoverData.attribute_id == attribute.id))
    ).scalar()
    if attribute.parameters or cell_count:
        raise InvalidInputError(
            f"Attribute '{attribute.name}' still has {len(attribute.parameters)} values and "
            f"{cell_count} matrix cells; remove them before making it free-text"
        )
