"""
Unit Tests — Optimizer run orchestration and execution history.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from core.errors import ExternalProcessFailure, NotFoundError
from db.models import OptimizerExecution
from optimization.orchestrator import (
    get_execution,
    list_executions,
    parse_processed_count,
    run_optimizer,
)
from optimization.resolver import RunRequest
from optimization.runner import ProcessResult
from optimization.scenarios import create_scenario


class TestParseProcessedCount:
    def test_marker_found(self):
        assert parse_processed_count("step 1\nPROCESSED_COUNT: 42\ndone\n") == 42

    def test_marker_without_space(self):
        assert parse_processed_count("PROCESSED_COUNT:7") == 7

    def test_missing_marker_is_zero(self):
        assert parse_processed_count("nothing useful here") == 0
        assert parse_processed_count("") == 0

    def test_first_marker_wins(self):
        assert parse_processed_count("PROCESSED_COUNT: 3\nPROCESSED_COUNT: 9\n") == 3


@pytest.mark.asyncio
class TestRunOptimizer:
    async def test_successful_run_records_count(self, test_db, fake_runner):
        summary = await run_optimizer(test_db, RunRequest(), fake_runner)

        assert summary.success is True
        execution = await get_execution(test_db, summary.execution_id)
        assert execution.status == "SUCCESS"
        assert execution.record_count == 42
        assert execution.end_time is not None
        assert execution.duration_seconds >= 0
        assert execution.error_message is None

    async def test_runner_receives_resolved_parameters(self, test_db, fake_runner):
        scenario = await create_scenario(
            test_db, {"name": "Campaign", "strategy": "campaign", "resource_priority": [2, 5]}
        )

        await run_optimizer(test_db, RunRequest(scenario_id=scenario.id, gravity=False), fake_runner)

        (params,) = fake_runner.calls
        assert params.strategy == "campaign"
        assert params.gravity is False
        assert params.to_cli_args()[-2:] == ["--resource_priority", "2,5"]

        (execution,) = await list_executions(test_db)
        assert execution.scenario_name == "Campaign"
        assert execution.resource_priority == "2,5"

    async def test_non_zero_exit_is_failed_with_stderr(self, test_db, runner_factory):
        runner = runner_factory(ProcessResult(exit_code=1, stdout="partial output\n", stderr="solver crashed\n"))

        summary = await run_optimizer(test_db, RunRequest(), runner)

        assert summary.success is False
        assert summary.message == "Execution failed: solver crashed"
        execution = await get_execution(test_db, summary.execution_id)
        assert execution.status == "FAILED"
        assert execution.record_count == 0
        assert execution.error_message == "solver crashed"

    async def test_non_zero_exit_without_stderr_reports_exit_code(self, test_db, runner_factory):
        runner = runner_factory(ProcessResult(exit_code=3, stdout="", stderr=""))

        summary = await run_optimizer(test_db, RunRequest(), runner)

        execution = await get_execution(test_db, summary.execution_id)
        assert execution.error_message == "Optimizer exited with code 3"

    async def test_spawn_failure_is_recorded_not_raised(self, test_db, runner_factory):
        runner = runner_factory(error=ExternalProcessFailure("Could not start optimizer: no such file"))

        summary = await run_optimizer(test_db, RunRequest(), runner)

        assert summary.success is False
        execution = await get_execution(test_db, summary.execution_id)
        assert execution.status == "FAILED"
        assert execution.end_time is not None
        assert "no such file" in execution.error_message

    async def test_unexpected_runner_error_is_recorded(self, test_db, runner_factory):
        runner = runner_factory(error=RuntimeError("pipe closed"))

        summary = await run_optimizer(test_db, RunRequest(), runner)

        assert summary.success is False
        execution = await get_execution(test_db, summary.execution_id)
        assert execution.status == "FAILED"
        assert "pipe closed" in execution.error_message

    async def test_running_row_is_committed_before_launch(self, test_db, session_factory):
        seen: list[tuple[str, datetime | None]] = []

        class InspectingRunner:
            async def run(self, params):
                async with session_factory() as other:
                    rows = (await other.execute(select(OptimizerExecution))).scalars().all()
                    seen.extend((row.status, row.end_time) for row in rows)
                return ProcessResult(exit_code=0, stdout="PROCESSED_COUNT: 1", stderr="")

        summary = await run_optimizer(test_db, RunRequest(), InspectingRunner())

        assert seen == [("RUNNING", None)]
        assert (await get_execution(test_db, summary.execution_id)).status == "SUCCESS"

    async def test_invalid_request_writes_no_execution(self, test_db, fake_runner):
        with pytest.raises(NotFoundError):
            await run_optimizer(test_db, RunRequest(scenario_id=77), fake_runner)

        assert fake_runner.calls == []
        assert await list_executions(test_db) == []


@pytest.mark.asyncio
class TestExecutionHistory:
    async def test_history_is_capped_and_newest_first(self, test_db):
        base = datetime(2026, 1, 1, 8, 0, 0)
        test_db.add_all(
            [
                OptimizerExecution(
                    status="SUCCESS",
                    strategy="balanced",
                    start_time=base + timedelta(minutes=i),
                    end_time=base + timedelta(minutes=i, seconds=30),
                    record_count=i,
                )
                for i in range(55)
            ]
        )
        await test_db.commit()

        history = await list_executions(test_db)

        assert len(history) == 50
        assert history[0].record_count == 54
        assert history[-1].record_count == 5
        starts = [e.start_time for e in history]
        assert starts == sorted(starts, reverse=True)

    async def test_custom_limit(self, test_db, fake_runner):
        for _ in range(3):
            await run_optimizer(test_db, RunRequest(), fake_runner)

        assert len(await list_executions(test_db, limit=2)) == 2

    async def test_missing_execution_raises(self, test_db):
        with pytest.raises(NotFoundError):
            await get_execution(test_db, 5)
