"""
Scenario Registry — named, reusable optimizer run configurations.

At most one scenario is the default at any time. There is no database
constraint for this: every write that sets ``is_default`` clears the flag on
the other rows inside the same transaction. On PostgreSQL those writers also
take a transaction-scoped advisory lock first, so concurrent default writers
run one after the other.
"""

from typing import Any

import structlog
from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, InvalidInputError, NotFoundError, OperationResult
from db.models import OptimizationScenario
from optimization.priority import decode_priority, encode_priority
from optimization.settings import validate_strategy

logger = structlog.get_logger()

SCENARIO_FIELDS = ("name", "description", "strategy", "campaign_window_days", "gravity", "resource_priority")
DUPLICATE_NAME_MESSAGE = "A scenario with this name already exists."
DEFAULT_FLAG_LOCK_KEY = 7_041_001


def serialize_scenario(scenario: OptimizationScenario) -> dict[str, Any]:
    return {
        "id": scenario.id,
        "name": scenario.name,
        "description": scenario.description,
        "strategy": scenario.strategy,
        "campaign_window_days": scenario.campaign_window_days,
        "gravity": scenario.gravity,
        "resource_priority": decode_priority(scenario.resource_priority),
        "is_default": scenario.is_default,
        "created_at": scenario.created_at,
        "updated_at": scenario.updated_at,
    }


async def list_scenarios(db: AsyncSession) -> list[OptimizationScenario]:
    result = await db.execute(
        select(OptimizationScenario)
        .order_by(OptimizationScenario.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_scenario(db: AsyncSession, scenario_id: int) -> OptimizationScenario:
    result = await db.execute(
        select(OptimizationScenario)
        .where(OptimizationScenario.id == scenario_id)
        .execution_options(populate_existing=True)
    )
    scenario = result.scalar_one_or_none()
    if scenario is None:
        raise NotFoundError(f"Scenario {scenario_id} not found")
    return scenario


async def get_default_scenario(db: AsyncSession) -> OptimizationScenario | None:
    result = await db.execute(
        select(OptimizationScenario).where(OptimizationScenario.is_default.is_(True)).limit(1)
    )
    return result.scalar_one_or_none()


async def create_scenario(
    db: AsyncSession,
    payload: dict[str, Any],
    is_default: bool | None = False,
) -> OptimizationScenario:
    """Insert a scenario; when it is the default, demote every other row in the same transaction."""
    values = _validated_values(payload)
    if not values.get("name"):
        raise InvalidInputError("Scenario name is required")

    if is_default:
        await _lock_default_flag(db)
    scenario = OptimizationScenario(**values, is_default=bool(is_default))
    db.add(scenario)
    try:
        await db.flush()
        if is_default:
            await _clear_default_flags(db, exclude_id=scenario.id)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(DUPLICATE_NAME_MESSAGE) from exc

    await db.refresh(scenario)
    logger.info("scenario.created", scenario_id=scenario.id, name=scenario.name, is_default=scenario.is_default)
    return scenario


async def update_scenario(db: AsyncSession, scenario_id: int, changes: dict[str, Any]) -> OptimizationScenario:
    """
    Apply only the supplied fields. ``is_default=True`` demotes every other
    row; ``is_default=False`` just clears this one.
    """
    changes = dict(changes)
    is_default = changes.pop("is_default", None)
    values = _validated_values(changes)
    if "name" in values and not values["name"]:
        raise InvalidInputError("Scenario name cannot be blank")

    if is_default is True:
        await _lock_default_flag(db)
    scenario = await get_scenario(db, scenario_id)
    for key, value in values.items():
        setattr(scenario, key, value)
    if is_default is not None:
        scenario.is_default = is_default

    try:
        await db.flush()
        if is_default is True:
            await _clear_default_flags(db, exclude_id=scenario.id)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(DUPLICATE_NAME_MESSAGE) from exc

    await db.refresh(scenario)
    logger.info("scenario.updated", scenario_id=scenario.id, fields=sorted(changes), is_default=scenario.is_default)
    return scenario


async def set_default_scenario(db: AsyncSession, scenario_id: int) -> OperationResult:
    """Make ``scenario_id`` the only default, clearing all others in one transaction."""
    scenario = await db.get(OptimizationScenario, scenario_id)
    if scenario is None:
        return OperationResult(success=False, message="Scenario not found", not_found=True)

    try:
        await _lock_default_flag(db)
        await db.execute(
            update(OptimizationScenario)
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            update(OptimizationScenario)
            .where(OptimizationScenario.id == scenario_id)
            .values(is_default=True)
            .execution_options(synchronize_session="fetch")
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("scenario.set_default_failed", scenario_id=scenario_id, error=str(exc))
        return OperationResult(success=False, message=f"Failed to set default: {exc}")

    logger.info("scenario.default_set", scenario_id=scenario_id)
    return OperationResult(success=True, message="Scenario set as default successfully.")


async def delete_scenario(db: AsyncSession, scenario_id: int) -> OperationResult:
    # Executions keep resolved parameters by value, so nothing cascades.
    scenario = await db.get(OptimizationScenario, scenario_id)
    if scenario is None:
        return OperationResult(success=False, message="Scenario not found", not_found=True)
    try:
        await db.delete(scenario)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("scenario.delete_failed", scenario_id=scenario_id, error=str(exc))
        return OperationResult(success=False, message=str(exc))
    return OperationResult(success=True, message="Scenario deleted successfully.")


async def _lock_default_flag(db: AsyncSession) -> None:
    """Hold the default-flag lock until the current transaction ends. SQLite already serializes writers."""
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": DEFAULT_FLAG_LOCK_KEY})


async def _clear_default_flags(db: AsyncSession, exclude_id: int) -> None:
    await db.execute(
        update(OptimizationScenario)
        .where(OptimizationScenario.id != exclude_id, OptimizationScenario.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )


def _validated_values(payload: dict[str, Any]) -> dict[str, Any]:
    unknown = set(payload) - set(SCENARIO_FIELDS)
    if unknown:
        raise InvalidInputError(f"Unknown scenario fields: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for key, value in payload.items():
        if key == "name":
            values["name"] = (value or "").strip()
        elif key == "resource_priority":
            if any(resource_id < 0 for resource_id in value or []):
                raise InvalidInputError("resource_priority ids must be non-negative")
            values["resource_priority"] = encode_priority(value)
        elif key == "campaign_window_days":
            if value is not None and value < 0:
                raise InvalidInputError("campaign_window_days cannot be negative")
            values[key] = value
        elif key == "strategy":
            validate_strategy(value)
            values[key] = value
        else:
            values[key] = value
    return values
