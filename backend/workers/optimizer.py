"""
Optimizer Worker — queued optimizer runs.

The API can run the optimizer inline or hand the request to this task.
Either way the same orchestrator writes the execution row, so the run
history looks identical.

Queue: optimizer (long-running, one process per run)
"""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


@celery_app.task(
    name="workers.optimizer.run_optimizer",
    bind=True,
    acks_late=True,
)
def run_optimizer(self, request: dict | None = None):
    """
    Resolve parameters, launch the optimizer and record the execution.

    Args:
        request: optional run overrides (strategy, campaign_window_days,
            gravity, resource_priority, scenario_id)

    No retries: a failed run is a terminal FAILED execution, not a task error.
    """
    task_id = self.request.id or "manual"
    logger.info("optimizer.task_started", task_id=task_id)

    async def _run():
        from core.config import get_settings
        from optimization.orchestrator import run_optimizer as orchestrate
        from optimization.resolver import RunRequest
        from optimization.runner import build_runner

        settings = get_settings()
        run_request = RunRequest.from_dict(request)
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                summary = await orchestrate(db, run_request, build_runner(settings))
        finally:
            await engine.dispose()

        result = {**summary.to_dict(), "task_id": task_id}
        logger.info("optimizer.task_complete", **result)
        return result

    return asyncio.run(_run())
