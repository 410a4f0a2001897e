"""
Unit Tests — Parameter precedence: request > scenario > global settings > fallback.
"""

import pytest

from core.errors import InvalidInputError, NotFoundError
from optimization.resolver import ResolvedParameters, RunRequest, resolve_parameters
from optimization.scenarios import create_scenario
from optimization.settings import update_optimizer_settings


@pytest.mark.asyncio
class TestResolveParameters:
    async def test_fallback_when_nothing_is_configured(self, test_db):
        params = await resolve_parameters(test_db, RunRequest())

        assert params == ResolvedParameters(
            strategy="balanced", campaign_window_days=0, gravity=True, resource_priority=[], scenario_name=None
        )

    async def test_zero_window_in_request_falls_through_to_settings(self, test_db):
        await update_optimizer_settings(test_db, {"campaign_window_days": 5})

        params = await resolve_parameters(test_db, RunRequest(campaign_window_days=0))
        assert params.campaign_window_days == 5

    async def test_positive_window_in_request_wins(self, test_db):
        await update_optimizer_settings(test_db, {"campaign_window_days": 5})

        params = await resolve_parameters(test_db, RunRequest(campaign_window_days=10))
        assert params.campaign_window_days == 10

    async def test_explicit_false_gravity_wins_over_true_settings(self, test_db):
        await update_optimizer_settings(test_db, {"gravity": True})

        params = await resolve_parameters(test_db, RunRequest(gravity=False))
        assert params.gravity is False

    async def test_blank_strategy_and_empty_priority_fall_through(self, test_db):
        await update_optimizer_settings(test_db, {"strategy": "changeover", "resource_priority": [9, 8]})

        params = await resolve_parameters(test_db, RunRequest(strategy="  ", resource_priority=[]))
        assert params.strategy == "changeover"
        assert params.resource_priority == [9, 8]

    async def test_named_scenario_layer_sits_between_request_and_settings(self, test_db):
        await update_optimizer_settings(
            test_db, {"strategy": "balanced", "campaign_window_days": 2, "gravity": True, "resource_priority": [1]}
        )
        scenario = await create_scenario(
            test_db, {"name": "Campaign", "strategy": "campaign", "campaign_window_days": 14, "gravity": None}
        )

        params = await resolve_parameters(test_db, RunRequest(scenario_id=scenario.id, strategy="due_date"))

        assert params.strategy == "due_date"
        assert params.campaign_window_days == 14
        assert params.gravity is True
        assert params.resource_priority == [1]
        assert params.scenario_name == "Campaign"

    async def test_default_scenario_used_when_none_named(self, test_db):
        await create_scenario(test_db, {"name": "House Style", "gravity": False}, is_default=True)

        params = await resolve_parameters(test_db, RunRequest())
        assert params.gravity is False
        assert params.scenario_name == "House Style"

    async def test_unknown_scenario_raises_not_found(self, test_db):
        with pytest.raises(NotFoundError):
            await resolve_parameters(test_db, RunRequest(scenario_id=31337))

    @pytest.mark.parametrize(
        "request_kwargs",
        [
            {"campaign_window_days": -3},
            {"gravity": "yes"},
            {"strategy": "--no-gravity"},
            {"strategy": "-h"},
            {"resource_priority": [1, -1]},
        ],
    )
    async def test_malformed_request_rejected(self, test_db, request_kwargs):
        with pytest.raises(InvalidInputError):
            await resolve_parameters(test_db, RunRequest(**request_kwargs))


class TestRunRequest:
    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(InvalidInputError, match="Unknown run parameters"):
            RunRequest.from_dict({"strategy": "balanced", "turbo": True})

    def test_from_dict_accepts_none(self):
        assert RunRequest.from_dict(None) == RunRequest()


class TestCliArgs:
    def test_minimal_arguments(self):
        params = ResolvedParameters(strategy="balanced", campaign_window_days=0, gravity=True)
        assert params.to_cli_args() == ["balanced", "--gravity"]

    def test_full_arguments(self):
        params = ResolvedParameters(
            strategy="campaign", campaign_window_days=7, gravity=False, resource_priority=[3, 1, 2]
        )
        assert params.to_cli_args() == [
            "campaign",
            "--campaign_window_days",
            "7",
            "--no-gravity",
            "--resource_priority",
            "3,1,2",
        ]

    def test_to_dict_round_trips_fields(self):
        params = ResolvedParameters(strategy="x", campaign_window_days=1, gravity=True, resource_priority=[5])
        assert params.to_dict()["resource_priority"] == [5]
        assert params.encoded_priority == "5"
