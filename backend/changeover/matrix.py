"""
Changeover Matrix Store — sequence-dependent setup times per machine family.

A changeover group owns, per attribute (color, material, ...):
  - one baseline changeover time (ChangeoverTime)
  - a from -> to transition matrix over the attribute's enumerated values
    (ChangeoverData cells)

Writes use lookup-then-upsert keyed by (group, attribute) and
(group, attribute, from, to). The lookup and the write share one transaction;
the compound unique constraints catch a concurrent insert that slipped past the
lookup, in which case the write is retried once as an update.

Deletes report a structured OperationResult rather than raising.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InternalError, InvalidInputError, NotFoundError, OperationResult
from db.models import Attribute, AttributeParameter, ChangeoverData, ChangeoverGroup, ChangeoverTime

logger = structlog.get_logger()

UPSERT_ATTEMPTS = 2


@dataclass
class GroupMatrix:
    """Full setup-time matrix of one changeover group, keyed by attribute."""

    group_id: int
    group_name: str
    baselines: dict[int, float] = field(default_factory=dict)
    cells: dict[int, dict[tuple[int, int], float]] = field(default_factory=dict)

    def setup_time(self, attribute_id: int, from_param_id: int, to_param_id: int) -> float:
        """
        Setup time for switching ``attribute_id`` from one value to another.

        Explicit cell first; otherwise a self-transition costs nothing and any
        other transition falls back to the attribute's baseline (0 when unset).
        """
        attribute_cells = self.cells.get(attribute_id, {})
        key = (from_param_id, to_param_id)
        if key in attribute_cells:
            return attribute_cells[key]
        if from_param_id == to_param_id:
            return 0.0
        return self.baselines.get(attribute_id, 0.0)

    def to_dict(self) -> dict[str, Any]:
        attribute_ids = sorted(set(self.baselines) | set(self.cells))
        return {
            "group_id": self.group_id,
            "group_name": self.group_name,
            "attributes": [
                {
                    "attribute_id": attribute_id,
                    "changeover_time": self.baselines.get(attribute_id),
                    "cells": [
                        {"from_attr_param_id": from_id, "to_attr_param_id": to_id, "setup_time": setup}
                        for (from_id, to_id), setup in sorted(self.cells.get(attribute_id, {}).items())
                    ],
                }
                for attribute_id in attribute_ids
            ],
        }


# ── Groups ────────────────────────────────────────────────────────────────


async def list_groups(db: AsyncSession) -> list[ChangeoverGroup]:
    result = await db.execute(select(ChangeoverGroup).order_by(ChangeoverGroup.id))
    return list(result.scalars().all())


async def get_group(db: AsyncSession, group_id: int) -> ChangeoverGroup:
    group = await db.get(ChangeoverGroup, group_id)
    if group is None:
        raise NotFoundError(f"Changeover group {group_id} not found")
    return group


async def create_group(db: AsyncSession, name: str) -> ChangeoverGroup:
    if not name or not name.strip():
        raise InvalidInputError("Changeover group name is required")
    group = ChangeoverGroup(name=name.strip())
    db.add(group)
    await db.commit()
    await db.refresh(group)
    logger.info("changeover.group_created", group_id=group.id, name=group.name)
    return group


async def rename_group(db: AsyncSession, group_id: int, name: str) -> ChangeoverGroup:
    if not name or not name.strip():
        raise InvalidInputError("Changeover group name is required")
    group = await get_group(db, group_id)
    group.name = name.strip()
    await db.commit()
    await db.refresh(group)
    return group


async def delete_group(db: AsyncSession, group_id: int) -> OperationResult:
    """Remove every cell and baseline of the group, then the group, atomically."""
    group = await db.get(ChangeoverGroup, group_id)
    if group is None:
        return OperationResult(success=False, message="Changeover group not found", not_found=True)

    try:
        cells = await db.execute(delete(ChangeoverData).where(ChangeoverData.changeover_group_id == group_id))
        baselines = await db.execute(delete(ChangeoverTime).where(ChangeoverTime.changeover_group_id == group_id))
        await db.execute(delete(ChangeoverGroup).where(ChangeoverGroup.id == group_id))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("changeover.group_delete_failed", group_id=group_id, error=str(exc))
        return OperationResult(success=False, message=str(exc))

    logger.info(
        "changeover.group_deleted",
        group_id=group_id,
        cells_removed=cells.rowcount,
        baselines_removed=baselines.rowcount,
    )
    return OperationResult(success=True, message="Changeover Group deleted")


# ── Baselines ─────────────────────────────────────────────────────────────


async def list_baselines(db: AsyncSession, group_id: int) -> list[ChangeoverTime]:
    result = await db.execute(
        select(ChangeoverTime)
        .where(ChangeoverTime.changeover_group_id == group_id)
        .order_by(ChangeoverTime.attribute_id)
    )
    return list(result.scalars().all())


async def set_baseline_time(
    db: AsyncSession,
    group_id: int,
    attribute_id: int,
    duration: float,
) -> ChangeoverTime:
    """Upsert the baseline changeover time for (group, attribute)."""
    if duration is None or duration < 0:
        raise InvalidInputError("Changeover time must be a non-negative number")
    await get_group(db, group_id)
    await _require_attribute(db, attribute_id)

    return await _upsert(
        db,
        ChangeoverTime,
        key={"changeover_group_id": group_id, "attribute_id": attribute_id},
        values={"changeover_time": float(duration)},
    )


async def delete_baseline_time(db: AsyncSession, changeover_time_id: int) -> OperationResult:
    """Delete a baseline together with every matrix cell of the same (group, attribute)."""
    record = await db.get(ChangeoverTime, changeover_time_id)
    if record is None:
        return OperationResult(success=False, message="Record not found", not_found=True)

    group_id, attribute_id = record.changeover_group_id, record.attribute_id
    try:
        await db.execute(
            delete(ChangeoverData).where(
                ChangeoverData.changeover_group_id == group_id,
                ChangeoverData.attribute_id == attribute_id,
            )
        )
        await db.execute(delete(ChangeoverTime).where(ChangeoverTime.id == changeover_time_id))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("changeover.baseline_delete_failed", changeover_time_id=changeover_time_id, error=str(exc))
        return OperationResult(success=False, message=str(exc))

    logger.info("changeover.baseline_deleted", group_id=group_id, attribute_id=attribute_id)
    return OperationResult(
        success=True,
        message="Attribute and all associated matrix data removed from group.",
    )


# ── Matrix cells ──────────────────────────────────────────────────────────


async def get_matrix(db: AsyncSession, group_id: int, attribute_id: int) -> list[ChangeoverData]:
    result = await db.execute(
        select(ChangeoverData)
        .where(
            ChangeoverData.changeover_group_id == group_id,
            ChangeoverData.attribute_id == attribute_id,
        )
        .order_by(ChangeoverData.from_attr_param_id, ChangeoverData.to_attr_param_id)
    )
    return list(result.scalars().all())


async def set_matrix_cell(
    db: AsyncSession,
    group_id: int,
    attribute_id: int,
    from_param_id: int,
    to_param_id: int,
    setup_time: float,
) -> ChangeoverData:
    """Upsert one transition cell keyed by (group, attribute, from, to)."""
    if setup_time is None or setup_time < 0:
        raise InvalidInputError("Setup time must be a non-negative number")
    await get_group(db, group_id)
    attribute = await _require_attribute(db, attribute_id)
    if not attribute.is_param:
        raise InvalidInputError(f"Attribute '{attribute.name}' is free-text and cannot have a transition matrix")
    await _require_parameter_of(db, attribute_id, from_param_id)
    await _require_parameter_of(db, attribute_id, to_param_id)

    return await _upsert(
        db,
        ChangeoverData,
        key={
            "changeover_group_id": group_id,
            "attribute_id": attribute_id,
            "from_attr_param_id": from_param_id,
            "to_attr_param_id": to_param_id,
        },
        values={"setup_time": float(setup_time)},
    )


async def delete_matrix_cell(db: AsyncSession, cell_id: int) -> OperationResult:
    cell = await db.get(ChangeoverData, cell_id)
    if cell is None:
        return OperationResult(success=False, message="Record not found", not_found=True)
    try:
        await db.delete(cell)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("changeover.cell_delete_failed", cell_id=cell_id, error=str(exc))
        return OperationResult(success=False, message=str(exc))
    return OperationResult(success=True, message="Changeover data deleted.")


async def get_group_matrix(db: AsyncSession, group_id: int) -> GroupMatrix:
    """Assemble baselines and cells of a group into a lookup structure."""
    group = await get_group(db, group_id)
    matrix = GroupMatrix(group_id=group.id, group_name=group.name)

    for baseline in await list_baselines(db, group_id):
        matrix.baselines[baseline.attribute_id] = baseline.changeover_time

    result = await db.execute(select(ChangeoverData).where(ChangeoverData.changeover_group_id == group_id))
    for cell in result.scalars().all():
        matrix.cells.setdefault(cell.attribute_id, {})[
            (cell.from_attr_param_id, cell.to_attr_param_id)
        ] = cell.setup_time
    return matrix


# ── Helpers ───────────────────────────────────────────────────────────────


async def _require_attribute(db: AsyncSession, attribute_id: int) -> Attribute:
    attribute = await db.get(Attribute, attribute_id)
    if attribute is None:
        raise NotFoundError(f"Attribute {attribute_id} not found")
    return attribute


async def _require_parameter_of(db: AsyncSession, attribute_id: int, parameter_id: int) -> AttributeParameter:
    parameter = await db.get(AttributeParameter, parameter_id)
    if parameter is None:
        raise NotFoundError(f"Attribute parameter {parameter_id} not found")
    if parameter.attribute_id != attribute_id:
        raise InvalidInputError(
            f"Attribute parameter {parameter_id} belongs to attribute {parameter.attribute_id}, not {attribute_id}"
        )
    return parameter


async def _upsert(db: AsyncSession, model, key: dict[str, int], values: dict[str, Any]):
    for attempt in range(1, UPSERT_ATTEMPTS + 1):
        result = await db.execute(
            select(model).where(*(getattr(model, column) == value for column, value in key.items())).with_for_update()
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = model(**key, **values)
            db.add(record)
        else:
            for column, value in values.items():
                setattr(record, column, value)

        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("changeover.upsert_collision", table=model.__tablename__, attempt=attempt, **key)
            if attempt == UPSERT_ATTEMPTS:
                raise InternalError(f"Could not upsert {model.__tablename__} row") from exc
            continue

        await db.refresh(record)
        return record
