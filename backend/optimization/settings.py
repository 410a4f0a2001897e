"""
Global optimizer defaults (the ``optimizer_settings`` singleton).

The row is created lazily on first write. Reads never create it: when it is
absent, the hard-coded fallback is returned instead.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidInputError
from db.models import OPTIMIZER_SETTINGS_ID, OptimizerSetting
from optimization.priority import decode_priority, encode_priority

logger = structlog.get_logger()

FALLBACK_STRATEGY = "balanced"
FALLBACK_CAMPAIGN_WINDOW_DAYS = 0
FALLBACK_GRAVITY = True


def validate_strategy(strategy: str | None) -> None:
    """A strategy is the optimizer's positional argument, so it must not read as an option."""
    if strategy is not None and strategy.strip().startswith("-"):
        raise InvalidInputError(f"Invalid strategy '{strategy}': must not start with '-'")


@dataclass(frozen=True)
class OptimizerDefaults:
    strategy: str = FALLBACK_STRATEGY
    campaign_window_days: int = FALLBACK_CAMPAIGN_WINDOW_DAYS
    gravity: bool = FALLBACK_GRAVITY
    resource_priority: list[int] = field(default_factory=list)
    persisted: bool = False

    @classmethod
    def from_row(cls, row: OptimizerSetting) -> "OptimizerDefaults":
        return cls(
            strategy=row.strategy,
            campaign_window_days=row.campaign_window_days,
            gravity=row.gravity,
            resource_priority=decode_priority(row.resource_priority),
            persisted=True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "campaign_window_days": self.campaign_window_days,
            "gravity": self.gravity,
            "resource_priority": list(self.resource_priority),
            "persisted": self.persisted,
        }


async def get_settings_or_default(db: AsyncSession) -> OptimizerDefaults:
    row = await db.get(OptimizerSetting, OPTIMIZER_SETTINGS_ID)
    if row is None:
        return OptimizerDefaults()
    return OptimizerDefaults.from_row(row)


async def update_optimizer_settings(db: AsyncSession, changes: dict[str, Any]) -> OptimizerDefaults:
    """
    Apply ``changes`` to the singleton, creating it with fallback values first
    if this is the first write. Keys absent from ``changes`` are left untouched.
    """
    unknown = set(changes) - {"strategy", "campaign_window_days", "gravity", "resource_priority"}
    if unknown:
        raise InvalidInputError(f"Unknown optimizer settings: {', '.join(sorted(unknown))}")
    if changes.get("campaign_window_days") is not None and changes["campaign_window_days"] < 0:
        raise InvalidInputError("campaign_window_days cannot be negative")
    if changes.get("strategy") is not None and not changes["strategy"].strip():
        raise InvalidInputError("strategy cannot be blank")
    validate_strategy(changes.get("strategy"))
    if any(resource_id < 0 for resource_id in changes.get("resource_priority") or []):
        raise InvalidInputError("resource_priority ids must be non-negative")

    row = await db.get(OptimizerSetting, OPTIMIZER_SETTINGS_ID)
    if row is None:
        row = OptimizerSetting(
            id=OPTIMIZER_SETTINGS_ID,
            strategy=FALLBACK_STRATEGY,
            campaign_window_days=FALLBACK_CAMPAIGN_WINDOW_DAYS,
            gravity=FALLBACK_GRAVITY,
            resource_priority="",
        )
        db.add(row)
        logger.info("optimizer.settings_created")

    for key, value in changes.items():
        if value is None:
            continue
        if key == "resource_priority":
            row.resource_priority = encode_priority(value)
        elif key == "strategy":
            row.strategy = value.strip()
        else:
            setattr(row, key, value)

    await db.commit()
    await db.refresh(row)
    logger.info("optimizer.settings_updated", fields=sorted(changes))
    return OptimizerDefaults.from_row(row)
