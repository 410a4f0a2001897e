"""
Parameter Resolver — turns a partial run request into concrete optimizer parameters.

Each field is resolved independently, first non-empty value wins:
  1. the run request
  2. the named scenario (or the default scenario when none is named)
  3. the global optimizer settings singleton
  4. hard-coded fallback (balanced / 0 / gravity on / no priority)

"Empty" means: blank string, window <= 0, gravity None (False is a real
value), empty priority list. The resolver only reads.
"""

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidInputError
from db.models import OptimizationScenario
from optimization.priority import DELIMITER, decode_priority, encode_priority
from optimization.scenarios import get_default_scenario, get_scenario
from optimization.settings import (
    FALLBACK_CAMPAIGN_WINDOW_DAYS,
    FALLBACK_GRAVITY,
    FALLBACK_STRATEGY,
    get_settings_or_default,
    validate_strategy,
)


@dataclass
class RunRequest:
    """Optional overrides supplied by whoever starts a run."""

    strategy: str | None = None
    campaign_window_days: int | None = None
    gravity: bool | None = None
    resource_priority: list[int] | None = None
    scenario_id: int | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "RunRequest":
        payload = payload or {}
        unknown = set(payload) - {"strategy", "campaign_window_days", "gravity", "resource_priority", "scenario_id"}
        if unknown:
            raise InvalidInputError(f"Unknown run parameters: {', '.join(sorted(unknown))}")
        return cls(**payload)

    def validate(self) -> None:
        validate_strategy(self.strategy)
        if self.campaign_window_days is not None and self.campaign_window_days < 0:
            raise InvalidInputError("campaign_window_days cannot be negative")
        if self.gravity is not None and not isinstance(self.gravity, bool):
            raise InvalidInputError("gravity must be a boolean")
        for resource_id in self.resource_priority or []:
            if isinstance(resource_id, bool) or not isinstance(resource_id, int) or resource_id < 0:
                raise InvalidInputError("resource_priority must contain non-negative integer ids")


@dataclass(frozen=True)
class ResolvedParameters:
    strategy: str
    campaign_window_days: int
    gravity: bool
    resource_priority: list[int] = field(default_factory=list)
    scenario_name: str | None = None

    @property
    def encoded_priority(self) -> str:
        return encode_priority(self.resource_priority)

    def to_cli_args(self) -> list[str]:
        """Translate into the optimizer's argument contract (a list, never a shell string)."""
        args = [self.strategy]
        if self.campaign_window_days > 0:
            args += ["--campaign_window_days", str(self.campaign_window_days)]
        args.append("--gravity" if self.gravity else "--no-gravity")
        if self.resource_priority:
            args += ["--resource_priority", DELIMITER.join(str(rid) for rid in self.resource_priority)]
        return args

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "campaign_window_days": self.campaign_window_days,
            "gravity": self.gravity,
            "resource_priority": list(self.resource_priority),
            "scenario_name": self.scenario_name,
        }


def _first_strategy(*candidates: str | None) -> str:
    for candidate in candidates:
        if candidate is not None and candidate.strip():
            return candidate.strip()
    return FALLBACK_STRATEGY


def _first_window(*candidates: int | None) -> int:
    for candidate in candidates:
        if candidate is not None and candidate > 0:
            return int(candidate)
    return FALLBACK_CAMPAIGN_WINDOW_DAYS


def _first_gravity(*candidates: bool | None) -> bool:
    for candidate in candidates:
        if candidate is not None:
            return bool(candidate)
    return FALLBACK_GRAVITY


def _first_priority(*candidates: list[int] | None) -> list[int]:
    for candidate in candidates:
        if candidate:
            return list(candidate)
    return []


async def _scenario_for(db: AsyncSession, request: RunRequest) -> OptimizationScenario | None:
    if request.scenario_id is not None:
        return await get_scenario(db, request.scenario_id)
    return await get_default_scenario(db)


async def resolve_parameters(db: AsyncSession, request: RunRequest | None = None) -> ResolvedParameters:
    """
    Resolve a run request to concrete parameters.

    Raises InvalidInputError for malformed overrides and NotFoundError for an
    unknown scenario_id, before anything is written.
    """
    request = request or RunRequest()
    request.validate()

    scenario = await _scenario_for(db, request)
    defaults = await get_settings_or_default(db)

    scenario_strategy = scenario.strategy if scenario else None
    scenario_window = scenario.campaign_window_days if scenario else None
    scenario_gravity = scenario.gravity if scenario else None
    scenario_priority = decode_priority(scenario.resource_priority) if scenario else None

    return ResolvedParameters(
        strategy=_first_strategy(request.strategy, scenario_strategy, defaults.strategy),
        campaign_window_days=_first_window(request.campaign_window_days, scenario_window, defaults.campaign_window_days),
        gravity=_first_gravity(request.gravity, scenario_gravity, defaults.gravity),
        resource_priority=_first_priority(request.resource_priority, scenario_priority, defaults.resource_priority),
        scenario_name=scenario.name if scenario else None,
    )
