"""
Optimizer API — global settings, run launch and execution history.

Endpoints:
  GET  /optimizer/settings          — Global defaults (fallback values if never saved)
  PUT  /optimizer/settings          — Update global defaults (creates the row on first write)
  POST /optimizer/run               — Resolve parameters and run the optimizer
  GET  /optimizer/executions        — Most recent executions
  GET  /optimizer/executions/{id}   — One execution
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_optimizer_runner, http_error
from core.config import get_settings
from core.errors import DomainError
from optimization.orchestrator import get_execution, list_executions, run_optimizer, serialize_execution
from optimization.resolver import RunRequest, resolve_parameters
from optimization.runner import OptimizerRunner
from optimization.settings import get_settings_or_default, update_optimizer_settings

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/optimizer", tags=["optimizer"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class OptimizerSettingsUpdate(BaseModel):
    strategy: str | None = Field(None, min_length=1, max_length=100)
    campaign_window_days: int | None = Field(None, ge=0)
    gravity: bool | None = None
    resource_priority: list[int] | None = None


class OptimizerSettingsResponse(BaseModel):
    strategy: str
    campaign_window_days: int
    gravity: bool
    resource_priority: list[int]
    persisted: bool


class RunOptimizerRequest(BaseModel):
    strategy: str | None = None
    campaign_window_days: int | None = None
    gravity: bool | None = None
    resource_priority: list[int] | None = None
    scenario_id: int | None = None


class RunOptimizerResponse(BaseModel):
    success: bool
    message: str
    execution_id: int | None = None
    task_id: str | None = None


class ExecutionResponse(BaseModel):
    id: int
    status: str
    scenario_name: str | None
    strategy: str
    campaign_window_days: int
    gravity: bool
    resource_priority: list[int]
    start_time: datetime
    end_time: datetime | None
    duration_seconds: float | None
    record_count: int
    error_message: str | None


# ─── Settings ───────────────────────────────────────────────────────────────


@router.get("/settings", response_model=OptimizerSettingsResponse)
async def get_optimizer_settings(db: AsyncSession = Depends(get_db)):
    defaults = await get_settings_or_default(db)
    return defaults.to_dict()


@router.put("/settings", response_model=OptimizerSettingsResponse)
async def put_optimizer_settings(body: OptimizerSettingsUpdate, db: AsyncSession = Depends(get_db)):
    try:
        defaults = await update_optimizer_settings(db, body.model_dump(exclude_unset=True))
    except DomainError as exc:
        raise http_error(exc) from exc
    return defaults.to_dict()


# ─── Runs ───────────────────────────────────────────────────────────────────


@router.post("/run", response_model=RunOptimizerResponse)
async def run(
    body: RunOptimizerRequest | None = None,
    background: bool = Query(False, description="Queue the run on the optimizer worker instead of waiting"),
    db: AsyncSession = Depends(get_db),
    runner: OptimizerRunner = Depends(get_optimizer_runner),
):
    """
    Run the optimizer with request > scenario > settings > fallback parameters.

    A failed run still answers 200 with success=false; the execution history
    holds the details. Malformed requests and unknown scenarios answer 4xx
    before any execution is recorded.
    """
    payload = body.model_dump(exclude_unset=True) if body else {}

    try:
        request = RunRequest.from_dict(payload)
        if background:
            # Reject bad requests here rather than inside the worker.
            await resolve_parameters(db, request)
        else:
            summary = await run_optimizer(db, request, runner)
    except DomainError as exc:
        raise http_error(exc) from exc

    if background:
        from workers.optimizer import run_optimizer as run_optimizer_task

        task = run_optimizer_task.delay(payload)
        logger.info("optimizer.run_queued", task_id=task.id)
        return {"success": True, "message": "Optimizer run queued.", "task_id": task.id}
    return summary.to_dict()


@router.get("/executions", response_model=list[ExecutionResponse])
async def get_executions(
    limit: int | None = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Most recent executions first (50 by default)."""
    executions = await list_executions(db, limit or get_settings().optimizer_history_limit)
    return [serialize_execution(e) for e in executions]


@router.get("/executions/{execution_id}", response_model=ExecutionResponse)
async def get_execution_by_id(execution_id: int, db: AsyncSession = Depends(get_db)):
    try:
        execution = await get_execution(db, execution_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return serialize_execution(execution)
