"""MCP Server - Tool definitions for assistant integration.

Defines the MCP tools an assistant can invoke to manage metrics, targets and
the weekly plan. Handles authentication via API key in Authorization header.
"""

import asyncio
import logging
import os
from contextvars import ContextVar
from datetime import date
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError

from ..core.dates import format_local_date, parse_local_date
from ..core.macros import calculate_completion_percentage, calculate_day_intake
from ..core.models import MealDraft, UserMetrics, WorkoutDraft
from ..core.nutrition import compute_targets
from ..core.planner import MUSCLE_GROUPS, PlanValidationError
from ..core.validation import validate_metrics
from .firestore_client import FitnessFirestoreClient, FirestoreConfig
from .plan_cache import FilePlanCache, MemoryPlanCache, PlanCache, PlanStore
from .remote_store import FirestoreEntryStore
from .week_session import WeekSession


logger = logging.getLogger(__name__)

# Context variable to store current user_id per request
current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)

# Configure transport security for container deployment
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "*.run.app:*",
        "*.run.app",
    ],
)

mcp = FastMCP(
    "macroplan",
    instructions="""MacroPlan - Personal nutrition targets and weekly plan assistant.

Use these tools to record the user's body metrics, show their daily calorie
and macro targets, and manage their weekly plan of meals and workouts.

On first use, call setup_profile with the user's metrics.
Meals are only saved to the user's log when marked eaten with toggle_meal.
Meals cannot be marked eaten for future dates.""",
    stateless_http=True,
    transport_security=transport_security,
)

# Lazy-initialized clients
_firestore_client: FitnessFirestoreClient | None = None
_plan_cache: PlanCache | None = None
_sessions: dict[str, WeekSession] = {}


def get_firestore_client() -> FitnessFirestoreClient:
    """Get or create Firestore client."""
    global _firestore_client
    if _firestore_client is None:
        config = FirestoreConfig(
            database=os.environ.get("FIRESTORE_DATABASE", "macroplan"),
        )
        _firestore_client = FitnessFirestoreClient(config)
    return _firestore_client


def get_plan_cache() -> PlanCache:
    """Get or create the plan cache (file-backed when PLAN_CACHE_DIR is set)."""
    global _plan_cache
    if _plan_cache is None:
        cache_dir = os.environ.get("PLAN_CACHE_DIR")
        _plan_cache = FilePlanCache(cache_dir) if cache_dir else MemoryPlanCache()
    return _plan_cache


def get_user_id() -> str:
    """Get current authenticated user ID.

    Raises:
        RuntimeError: If no user is authenticated
    """
    user_id = current_user_id.get()
    if user_id is None:
        raise RuntimeError("No authenticated user. Ensure API key is provided.")
    return user_id


async def get_session(user_id: str) -> WeekSession:
    """Get the user's week session, loading the current week on first use."""
    session = _sessions.get(user_id)
    if session is not None:
        return session

    db = get_firestore_client()
    profile = await asyncio.to_thread(db.get_profile, user_id)
    session = WeekSession(
        store=FirestoreEntryStore(db, user_id),
        plans=PlanStore(get_plan_cache(), user_id),
        goal=profile.primary_goal if profile else "maintenance",
    )
    await session.load_week(date.today())
    _sessions[user_id] = session
    return session


def plan_view(session: WeekSession) -> dict[str, Any]:
    """Render the session's plan for a tool response."""
    plan = session.plan
    return {
        "week_start": format_local_date(plan.week_start),
        "selected_day": session.selected_index,
        "completion_percentage": calculate_completion_percentage(plan),
        "days": [day.model_dump(mode="json") for day in plan.days],
    }


# ==================== Profile Tools ====================


@mcp.tool()
def setup_profile(
    age: int,
    weight: float,
    feet_height: int,
    inches_height: int,
    sex: str,
    activity_level: str,
    primary_goal: str,
) -> dict:
    """Save the user's body metrics and return their daily targets.

    Call this on first use or when the user's metrics change.

    Args:
        age: Age in years (13-100)
        weight: Body weight in pounds (70-500)
        feet_height: Height, feet part (3-8)
        inches_height: Height, inches part (0-11)
        sex: male or female
        activity_level: sedentary, light, moderate, active or very_active
        primary_goal: weight_loss, fat_loss, muscle_gain, maintenance or endurance

    Returns:
        Saved metrics and computed targets, or field errors
    """
    user_id = get_user_id()
    db = get_firestore_client()

    data = {
        "age": age,
        "weight": weight,
        "feet_height": feet_height,
        "inches_height": inches_height,
        "sex": sex,
        "activity_level": activity_level,
        "primary_goal": primary_goal,
    }
    errors = validate_metrics(data)
    if errors:
        return {"error": "Invalid metrics.", "fields": errors}

    metrics = UserMetrics(**data)
    if not db.save_profile(user_id, metrics):
        return {"error": "Failed to save profile. Please try again."}

    if user_id in _sessions:
        _sessions[user_id].goal = metrics.primary_goal

    return {
        "profile": metrics.model_dump(mode="json", exclude={"updated_at"}),
        "targets": compute_targets(metrics).model_dump(),
    }


@mcp.tool()
def get_profile() -> dict:
    """Retrieve the user's saved body metrics.

    Returns:
        Dictionary with metrics, or error message if not set up
    """
    user_id = get_user_id()
    profile = get_firestore_client().get_profile(user_id)
    if profile is None:
        return {"error": "No profile found. Please use setup_profile first."}
    return profile.model_dump(mode="json", exclude={"updated_at"})


@mcp.tool()
def get_macro_targets() -> dict:
    """Compute the user's daily calorie and macro targets from their metrics.

    Returns:
        Dictionary with calories, protein, carbs and fat
    """
    user_id = get_user_id()
    profile = get_firestore_client().get_profile(user_id)
    if profile is None:
        return {"error": "No profile found. Please use setup_profile first."}
    return compute_targets(profile).model_dump()


# ==================== Plan Tools ====================


@mcp.tool()
async def get_week_plan(date_str: str | None = None) -> dict:
    """Get the weekly plan of meals and workouts.

    Args:
        date_str: Any date in the wanted week, YYYY-MM-DD (defaults to the loaded week)

    Returns:
        Week start, selected day index, completion percentage and the seven days
    """
    session = await get_session(get_user_id())
    if date_str:
        try:
            anchor = parse_local_date(date_str)
        except ValueError:
            return {"error": "Invalid date format. Use YYYY-MM-DD."}
        await session.load_week(anchor)
    return plan_view(session)


@mcp.tool()
async def navigate_week(direction: str) -> dict:
    """Move to the next or previous week.

    Args:
        direction: "next" or "prev"

    Returns:
        The newly loaded week
    """
    if direction not in ("next", "prev"):
        return {"error": "Direction must be 'next' or 'prev'."}
    session = await get_session(get_user_id())
    await session.navigate(1 if direction == "next" else -1)
    return plan_view(session)


@mcp.tool()
async def toggle_meal(day_index: int, meal_index: int) -> dict:
    """Mark a planned meal as eaten, or unmark it.

    Eaten meals are saved to the user's nutrition log; unmarking removes them.

    Args:
        day_index: Day of the week, 0 = Monday
        meal_index: Position of the meal within the day

    Returns:
        Updated week, or an error if the meal could not be changed
    """
    session = await get_session(get_user_id())
    if not await session.toggle_meal_completion(day_index, meal_index):
        return {"error": "Meal not updated. Future meals cannot be marked eaten."}
    return plan_view(session)


@mcp.tool()
async def add_meal(
    name: str,
    calories: int,
    protein: int,
    carbs: int,
    fat: int,
    day_index: int | None = None,
    whole_week: bool = False,
) -> dict:
    """Add a custom meal to a day, or to that day and the rest of the week.

    Args:
        name: Meal name
        calories: Calories
        protein: Protein in grams
        carbs: Carbohydrates in grams
        fat: Fat in grams
        day_index: Day of the week, 0 = Monday (defaults to the selected day)
        whole_week: Also add to every later day of the week

    Returns:
        Updated week
    """
    session = await get_session(get_user_id())
    try:
        if day_index is not None:
            session.select_day(day_index)
        session.add_custom_meal(
            MealDraft(name=name, calories=calories, protein=protein, carbs=carbs, fat=fat),
            whole_week=whole_week,
        )
    except (PlanValidationError, ValidationError, IndexError) as e:
        return {"error": str(e)}
    return plan_view(session)


@mcp.tool()
async def delete_meal(day_index: int, meal_index: int) -> dict:
    """Delete a meal from a day (and from the nutrition log if it was eaten).

    Args:
        day_index: Day of the week, 0 = Monday
        meal_index: Position of the meal within the day

    Returns:
        Updated week, or an error if the delete failed
    """
    session = await get_session(get_user_id())
    if not await session.delete_meal(day_index, meal_index):
        return {"error": "Failed to delete meal. Please try again."}
    return plan_view(session)


@mcp.tool()
async def add_workout(
    name: str,
    muscle_group: str,
    sets: int,
    reps: int,
    weight: float | None = None,
    day_index: int | None = None,
) -> dict:
    """Create a workout and add it to a day.

    Args:
        name: Workout name
        muscle_group: One of chest, back, shoulders, arms, legs, core, cardio
        sets: Number of sets
        reps: Reps per set
        weight: Optional weight in pounds
        day_index: Day of the week, 0 = Monday (defaults to the selected day)

    Returns:
        Updated week, or an error if the workout could not be created
    """
    session = await get_session(get_user_id())
    try:
        draft = WorkoutDraft(name=name, category=muscle_group, sets=sets, reps=reps, weight=weight)
        entry = await session.add_workout(draft, day_index)
    except PlanValidationError as e:
        return {"error": str(e), "muscle_groups": list(MUSCLE_GROUPS)}
    except (ValidationError, IndexError) as e:
        return {"error": str(e)}
    if entry is None:
        return {"error": "Failed to create workout. Please try again."}
    return plan_view(session)


@mcp.tool()
async def delete_workout(day_index: int, workout_index: int) -> dict:
    """Delete a workout from a day.

    Args:
        day_index: Day of the week, 0 = Monday
        workout_index: Position of the workout within the day

    Returns:
        Updated week, or an error if the delete failed
    """
    session = await get_session(get_user_id())
    if not await session.delete_workout(day_index, workout_index):
        return {"error": "Failed to delete workout. Please try again."}
    return plan_view(session)


@mcp.tool()
async def toggle_workout(day_index: int, workout_index: int) -> dict:
    """Mark a workout done, or not done.

    Args:
        day_index: Day of the week, 0 = Monday
        workout_index: Position of the workout within the day

    Returns:
        Updated week
    """
    session = await get_session(get_user_id())
    if not session.toggle_workout_completion(day_index, workout_index):
        return {"error": "Workout not found."}
    return plan_view(session)


@mcp.tool()
async def get_week_summary() -> dict:
    """Summarize eaten meals per day against the user's targets.

    Returns:
        Targets (if metrics are set), completion percentage and per-day intake
    """
    user_id = get_user_id()
    session = await get_session(user_id)
    profile = get_firestore_client().get_profile(user_id)
    targets = compute_targets(profile) if profile else None

    return {
        "week_start": format_local_date(session.plan.week_start),
        "targets": targets.model_dump() if targets else None,
        "completion_percentage": calculate_completion_percentage(session.plan),
        "days": [
            calculate_day_intake(day, targets).model_dump(mode="json")
            for day in session.plan.days
        ],
    }
