import pytest
from sqlalchemy import func, select

from core.errors import InvalidInputError
from db.models import OptimizerSetting
from optimization.settings import get_settings_or_default, update_optimizer_settings


async def _row_count(db) -> int:
    return (await db.execute(select(func.count(OptimizerSetting.id)))).scalar()


@pytest.mark.asyncio
class TestOptimizerSettings:
    async def test_read_without_row_returns_fallback_and_writes_nothing(self, test_db):
        defaults = await get_settings_or_default(test_db)

        assert defaults.to_dict() == {
            "strategy": "balanced",
            "campaign_window_days": 0,
            "gravity": True,
            "resource_priority": [],
            "persisted": False,
        }
        assert await _row_count(test_db) == 0

    async def test_first_update_creates_singleton(self, test_db):
        defaults = await update_optimizer_settings(test_db, {"campaign_window_days": 5})

        assert defaults.persisted is True
        assert defaults.campaign_window_days == 5
        assert defaults.strategy == "balanced"
        assert defaults.gravity is True
        assert await _row_count(test_db) == 1

    async def test_subsequent_updates_reuse_the_row(self, test_db):
        await update_optimizer_settings(test_db, {"strategy": "changeover"})
        defaults = await update_optimizer_settings(test_db, {"gravity": False, "resource_priority": [4, 2]})

        assert defaults.strategy == "changeover"
        assert defaults.gravity is False
        assert defaults.resource_priority == [4, 2]
        assert await _row_count(test_db) == 1

        row = await test_db.get(OptimizerSetting, 1)
        assert row.resource_priority == "4,2"

    @pytest.mark.parametrize(
        "changes",
        [
            {"campaign_window_days": -1},
            {"strategy": "  "},
            {"resource_priority": [1, -2]},
            {"speed": 3},
            {"strategy": "--help"},
        ],
    )
    async def test_invalid_updates_rejected(self, test_db, changes):
        with pytest.raises(InvalidInputError):
            await update_optimizer_settings(test_db, changes)
        assert await _row_count(test_db) == 0
