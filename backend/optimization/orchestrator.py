"""
Optimizer Run Orchestrator — one execution record per run attempt.

Lifecycle (no other transitions):
    RUNNING -> SUCCESS   process exited 0
    RUNNING -> FAILED    non-zero exit, or the process could not be started

Workflow:
  1. Resolve parameters (request > scenario > settings > fallback)
  2. Persist a RUNNING execution row and commit it *before* launching, so a
     crash mid-run leaves an inspectable record
  3. Launch the optimizer and wait for it without blocking the event loop
  4. Parse ``PROCESSED_COUNT: <n>`` out of stdout (0 if absent)
  5. Write the terminal status, end time, duration, record count and, on
     failure, the error text to the same row
  6. Return a {success, message} summary

A failed run is a normal outcome and is reported, not raised. Only request
validation errors from step 1 propagate, and they happen before any write.
There is no single-flight lock: concurrent runs each get their own row and
their own process.
"""

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ExternalProcessFailure, NotFoundError
from db.models import OptimizerExecution
from optimization.priority import decode_priority
from optimization.resolver import ResolvedParameters, RunRequest, resolve_parameters
from optimization.runner import OptimizerRunner, ProcessResult

logger = structlog.get_logger()

PROCESSED_COUNT_PATTERN = re.compile(r"PROCESSED_COUNT:\s*(\d+)")
DEFAULT_HISTORY_LIMIT = 50


@dataclass
class RunSummary:
    success: bool
    message: str
    execution_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def parse_processed_count(stdout: str) -> int:
    match = PROCESSED_COUNT_PATTERN.search(stdout or "")
    if not match:
        return 0
    try:
        return int(match.group(1))
    except ValueError:
        return 0


async def run_optimizer(
    db: AsyncSession,
    request: RunRequest | None,
    runner: OptimizerRunner,
) -> RunSummary:
    params = await resolve_parameters(db, request)

    execution = await _start_execution(db, params)
    logger.info("optimizer.run_started", execution_id=execution.id, **params.to_dict())

    failure_reason: str | None = None
    try:
        outcome = await runner.run(params)
    except ExternalProcessFailure as exc:
        failure_reason = str(exc)
        outcome = ProcessResult(exit_code=-1, stdout="", stderr="")
    except Exception as exc:  # noqa: BLE001
        logger.error("optimizer.runner_crashed", execution_id=execution.id, error=str(exc), exc_info=True)
        failure_reason = f"Optimizer runner error: {exc}"
        outcome = ProcessResult(exit_code=-1, stdout="", stderr="")

    end_time = datetime.utcnow()
    execution.end_time = end_time
    execution.duration_seconds = (end_time - execution.start_time).total_seconds()
    execution.record_count = parse_processed_count(outcome.stdout)

    if failure_reason is None and outcome.exit_code == 0:
        execution.status = "SUCCESS"
        summary = RunSummary(True, "Optimizer finished successfully.", execution.id)
    else:
        error_text = outcome.stderr.strip() or failure_reason or f"Optimizer exited with code {outcome.exit_code}"
        execution.status = "FAILED"
        execution.error_message = error_text
        summary = RunSummary(False, f"Execution failed: {error_text}", execution.id)

    await db.commit()

    log = logger.info if summary.success else logger.error
    log(
        "optimizer.run_finished",
        execution_id=execution.id,
        status=execution.status,
        exit_code=outcome.exit_code,
        record_count=execution.record_count,
        duration_seconds=round(execution.duration_seconds, 3),
    )
    return summary


async def _start_execution(db: AsyncSession, params: ResolvedParameters) -> OptimizerExecution:
    execution = OptimizerExecution(
        status="RUNNING",
        scenario_name=params.scenario_name,
        strategy=params.strategy,
        campaign_window_days=params.campaign_window_days,
        gravity=params.gravity,
        resource_priority=params.encoded_priority,
        start_time=datetime.utcnow(),
        record_count=0,
    )
    db.add(execution)
    await db.commit()
    await db.refresh(execution)
    return execution


async def list_executions(db: AsyncSession, limit: int = DEFAULT_HISTORY_LIMIT) -> list[OptimizerExecution]:
    """Most recent executions first; older rows stay in storage but are not listed."""
    result = await db.execute(
        select(OptimizerExecution)
        .order_by(OptimizerExecution.start_time.desc(), OptimizerExecution.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_execution(db: AsyncSession, execution_id: int) -> OptimizerExecution:
    execution = await db.get(OptimizerExecution, execution_id)
    if execution is None:
        raise NotFoundError(f"Execution {execution_id} not found")
    return execution


def serialize_execution(execution: OptimizerExecution) -> dict[str, Any]:
    return {
        "id": execution.id,
        "status": execution.status,
        "scenario_name": execution.scenario_name,
        "strategy": execution.strategy,
        "campaign_window_days": execution.campaign_window_days,
        "gravity": execution.gravity,
        "resource_priority": decode_priority(execution.resource_priority),
        "start_time": execution.start_time,
        "end_time": execution.end_time,
        "duration_seconds": execution.duration_seconds,
        "record_count": execution.record_count,
        "error_message": execution.error_message,
    }
