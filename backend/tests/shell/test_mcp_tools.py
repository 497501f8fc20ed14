"""Tests for MCP tool functions with a mocked Firestore client."""

import asyncio
import pytest
from datetime import date
from unittest.mock import MagicMock, patch

from macroplan.core.models import UserMetrics
from macroplan.core.nutrition import compute_targets
from macroplan.shell import mcp_server
from macroplan.shell.firestore_client import FitnessFirestoreClient
from macroplan.shell.plan_cache import MemoryPlanCache


METRICS = {
    "age": 30,
    "weight": 180,
    "feet_height": 5,
    "inches_height": 10,
    "sex": "male",
    "activity_level": "moderate",
    "primary_goal": "muscle_gain",
}


@pytest.fixture
def db():
    db = MagicMock(spec=FitnessFirestoreClient)
    db.get_profile.return_value = UserMetrics(**METRICS)
    db.list_nutrition_entries.return_value = []
    db.list_workouts.return_value = []
    return db


@pytest.fixture(autouse=True)
def tool_context(db):
    """Authenticated user, mocked store and fresh sessions for each test."""
    token = mcp_server.current_user_id.set("user-1")
    with patch.object(mcp_server, "get_firestore_client", return_value=db), \
            patch.object(mcp_server, "_plan_cache", MemoryPlanCache()), \
            patch.object(mcp_server, "_sessions", {}):
        yield
    mcp_server.current_user_id.reset(token)


class TestProfileTools:
    """Tests for profile and target tools."""

    def test_setup_profile(self, db):
        """Valid metrics are saved and targets returned."""
        db.save_profile.return_value = True

        result = mcp_server.setup_profile(**METRICS)

        assert result["targets"] == compute_targets(UserMetrics(**METRICS)).model_dump()
        assert db.save_profile.call_args[0][0] == "user-1"

    def test_setup_profile_invalid(self, db):
        """Out-of-range metrics are reported and not saved."""
        result = mcp_server.setup_profile(**{**METRICS, "age": 10})

        assert result["fields"]["age"] == "Age must be between 13 and 100"
        db.save_profile.assert_not_called()

    def test_targets_without_profile(self, db):
        """Targets need a saved profile."""
        db.get_profile.return_value = None
        assert "error" in mcp_server.get_macro_targets()

    def test_requires_user(self):
        """Tools refuse to run without an authenticated user."""
        mcp_server.current_user_id.set(None)
        with pytest.raises(RuntimeError):
            mcp_server.get_profile()


class TestPlanTools:
    """Tests for weekly plan tools."""

    def test_get_week_plan_for_date(self):
        """A date loads its Monday-based week with goal workouts."""
        result = asyncio.run(mcp_server.get_week_plan("2025-03-05"))

        assert result["week_start"] == "2025-03-03"
        assert len(result["days"]) == 7
        assert result["days"][0]["workouts"][-1]["name"] == "Deadlifts"

    def test_get_week_plan_bad_date(self):
        """Malformed dates are reported."""
        assert "error" in asyncio.run(mcp_server.get_week_plan("March 5"))

    def test_add_meal_and_summary(self):
        """A custom meal shows up in the plan and the summary."""
        async def scenario():
            await mcp_server.get_week_plan("2025-03-03")
            added = await mcp_server.add_meal("Oatmeal", 300, 10, 50, 6, day_index=0)
            summary = await mcp_server.get_week_summary()
            return added, summary

        added, summary = asyncio.run(scenario())

        assert [m["name"] for m in added["days"][0]["meals"]] == ["Oatmeal"]
        assert summary["completion_percentage"] == 0
        assert summary["days"][0]["total_calories"] == 0
        assert summary["days"][0]["calories_remaining"] == summary["targets"]["calories"]

    def test_add_workout_unknown_group(self):
        """Unknown muscle groups are rejected with the valid choices."""
        result = asyncio.run(mcp_server.add_workout("Neck rolls", "neck", 3, 10))
        assert "chest" in result["muscle_groups"]

    def test_add_workout_day_out_of_range(self, db):
        """A day outside the week is an error and nothing is created."""
        async def scenario():
            await mcp_server.get_week_plan("2025-03-03")
            return await mcp_server.add_workout("Rows", "back", 3, 10, day_index=9)

        assert "error" in asyncio.run(scenario())
        db.create_workout.assert_not_called()

    def test_add_workout_negative_sets(self, db):
        """Negative counts are an error and nothing is created."""
        async def scenario():
            await mcp_server.get_week_plan("2025-03-03")
            return await mcp_server.add_workout("Rows", "back", -1, 10)

        assert "error" in asyncio.run(scenario())
        db.create_workout.assert_not_called()

    def test_navigate_direction(self):
        """Only next and prev are accepted."""
        assert "error" in asyncio.run(mcp_server.navigate_week("sideways"))

    def test_navigate_next(self):
        """Next moves one week forward."""
        async def scenario():
            await mcp_server.get_week_plan("2025-03-03")
            return await mcp_server.navigate_week("next")

        assert asyncio.run(scenario())["week_start"] == "2025-03-10"

    def test_session_reused(self):
        """The user's session persists across tool calls."""
        asyncio.run(mcp_server.get_week_plan("2025-03-03"))
        session = mcp_server._sessions["user-1"]
        asyncio.run(mcp_server.get_week_plan())
        assert mcp_server._sessions["user-1"] is session
        assert session.plan.week_start == date(2025, 3, 3)
