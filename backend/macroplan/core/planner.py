"""Weekly Plan - Pure functions for building, merging and editing plans.

Every function returns a new WeekPlan; inputs are never mutated. The shell's
WeekSession decides when a returned plan becomes the current one.
"""

from datetime import date
from typing import Optional

from .dates import week_dates
from .models import (
    DayPlan,
    MealDraft,
    MealEntry,
    NutritionEntry,
    WeekPlan,
    WorkoutDraft,
    WorkoutEntry,
    WorkoutRecord,
)


DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

MUSCLE_GROUPS = ("chest", "back", "shoulders", "arms", "legs", "core", "cardio")

BASE_EXERCISES = (
    {"name": "Push-ups", "sets": 3, "reps": 12},
    {"name": "Squats", "sets": 3, "reps": 15},
    {"name": "Plank", "sets": 3, "reps": 1, "duration": 30},
)

GOAL_EXERCISES = {
    "muscle_gain": (
        {"name": "Bench Press", "sets": 4, "reps": 8, "weight": 135},
        {"name": "Deadlifts", "sets": 4, "reps": 6, "weight": 185},
    ),
    "weight_loss": (
        {"name": "Burpees", "sets": 3, "reps": 10},
        {"name": "Mountain Climbers", "sets": 3, "reps": 20},
    ),
    "fat_loss": (
        {"name": "Burpees", "sets": 3, "reps": 10},
        {"name": "Mountain Climbers", "sets": 3, "reps": 20},
    ),
}


class PlanValidationError(ValueError):
    """Raised when user input for the plan is incomplete or invalid."""


def default_exercises(goal: str) -> list[WorkoutEntry]:
    """Suggested exercises for a day, by goal."""
    specs = BASE_EXERCISES + GOAL_EXERCISES.get(goal, ())
    return [WorkoutEntry(**spec) for spec in specs]


def generate_week_plan(start: date, goal: str = "maintenance") -> WeekPlan:
    """Build a fresh seven-day plan: default exercises, no meals.

    Args:
        start: Monday of the week
        goal: Primary goal used to pick the suggested exercises

    Returns:
        New WeekPlan
    """
    days = [
        DayPlan(
            id=f"day-{i}",
            day=DAY_NAMES[d.weekday()],
            plan_date=d,
            meals=[],
            workouts=default_exercises(goal),
        )
        for i, d in enumerate(week_dates(start))
    ]
    return WeekPlan(week_start=start, days=days)


def is_plan_for_week(plan: WeekPlan, start: date) -> bool:
    """True if the plan covers exactly the seven dates of the week at start."""
    return plan.week_start == start and [d.plan_date for d in plan.days] == week_dates(start)


def find_day_index(plan: WeekPlan, d: date) -> Optional[int]:
    """Index of the day with date d, or None if d is outside the plan."""
    for i, day in enumerate(plan.days):
        if day.plan_date == d:
            return i
    return None


def default_day_index(plan: WeekPlan, today: date) -> int:
    """Today's index when today is in the plan, otherwise the first day."""
    index = find_day_index(plan, today)
    return 0 if index is None else index


def _replace_day(plan: WeekPlan, index: int, day: DayPlan) -> WeekPlan:
    days = list(plan.days)
    days[index] = day
    return plan.model_copy(update={"days": days})


def _replace_meal(plan: WeekPlan, day_index: int, meal_index: int, meal: MealEntry) -> WeekPlan:
    day = plan.days[day_index]
    meals = list(day.meals)
    meals[meal_index] = meal
    return _replace_day(plan, day_index, day.model_copy(update={"meals": meals}))


# ==================== Merge ====================


def merge_nutrition_entries(plan: WeekPlan, entries: list[NutritionEntry]) -> WeekPlan:
    """Mark planned meals eaten when the remote store has a matching entry.

    An entry matches a meal on the same local date by remote ID first, then by
    name. Each entry is claimed by at most one meal. Entries with no matching
    meal are dropped; meals are never created from remote data.
    """
    if not entries:
        return plan

    days = []
    for day in plan.days:
        unclaimed = {e.id: e for e in entries if e.entry_date == day.plan_date}
        matches: dict[int, NutritionEntry] = {}

        for i, meal in enumerate(day.meals):
            if meal.remote_id in unclaimed:
                matches[i] = unclaimed.pop(meal.remote_id)
        for i, meal in enumerate(day.meals):
            if i in matches:
                continue
            match = next((e for e in unclaimed.values() if e.food_name == meal.name), None)
            if match is not None:
                matches[i] = unclaimed.pop(match.id)

        meals = [
            meal.model_copy(update={"completed": True, "remote_id": matches[i].id}) if i in matches else meal
            for i, meal in enumerate(day.meals)
        ]
        days.append(day.model_copy(update={"meals": meals}))

    return plan.model_copy(update={"days": days})


def workout_from_record(record: WorkoutRecord) -> WorkoutEntry:
    """Plan entry for a persisted workout, using its first exercise for details."""
    first = record.exercises[0] if record.exercises else None
    return WorkoutEntry(
        name=record.name,
        category=first.category if first else None,
        sets=first.sets if first else 0,
        reps=first.reps if first else 0,
        weight=first.weight if first else None,
        duration=first.duration if first else None,
        distance=first.distance if first else None,
        rest_time=first.rest_time if first else None,
        notes=record.notes,
        completed=record.completed,
        remote_id=record.id,
    )


def merge_workouts(plan: WeekPlan, records: list[WorkoutRecord]) -> WeekPlan:
    """Replace each day's persisted workouts with the remote ones for that date.

    Suggested workouts without a remote ID are kept ahead of the persisted
    ones. A workout already known locally keeps its local completion flag.
    """
    days = []
    for day in plan.days:
        known = {w.remote_id: w for w in day.workouts if w.remote_id}
        local_only = [w for w in day.workouts if not w.remote_id]
        persisted = []
        for record in records:
            if record.workout_date != day.plan_date:
                continue
            entry = workout_from_record(record)
            if record.id in known:
                entry = entry.model_copy(update={"completed": known[record.id].completed})
            persisted.append(entry)
        days.append(day.model_copy(update={"workouts": local_only + persisted}))

    return plan.model_copy(update={"days": days})


# ==================== Meals ====================


def meal_from_draft(draft: MealDraft) -> MealEntry:
    """Turn a custom meal draft into a plan entry.

    Raises:
        PlanValidationError: If any of name, calories, protein, carbs, fat is missing
    """
    missing = [
        field for field in ("name", "calories", "protein", "carbs", "fat")
        if getattr(draft, field) in (None, "")
    ]
    if missing:
        raise PlanValidationError(f"Please fill in all fields (missing: {', '.join(missing)})")

    return MealEntry(
        name=draft.name.strip(),
        calories=draft.calories,
        protein=draft.protein,
        carbs=draft.carbs,
        fat=draft.fat,
        completed=False,
    )


def append_meal(plan: WeekPlan, day_index: int, meal: MealEntry, whole_week: bool = False) -> WeekPlan:
    """Add a meal to the selected day, or to it and every later day of the week."""
    last = len(plan.days) - 1 if whole_week else day_index
    days = [
        day.model_copy(update={"meals": [*day.meals, meal]}) if day_index <= i <= last else day
        for i, day in enumerate(plan.days)
    ]
    return plan.model_copy(update={"days": days})


def set_meal_completed(
    plan: WeekPlan, day_index: int, meal_index: int, completed: bool, remote_id: Optional[str] = None
) -> WeekPlan:
    """Set a meal's completion flag and remote link."""
    meal = plan.days[day_index].meals[meal_index]
    return _replace_meal(
        plan, day_index, meal_index,
        meal.model_copy(update={"completed": completed, "remote_id": remote_id}),
    )


def remove_meal(plan: WeekPlan, day_index: int, meal_index: int) -> WeekPlan:
    """Drop one meal from a day."""
    day = plan.days[day_index]
    meals = [m for i, m in enumerate(day.meals) if i != meal_index]
    return _replace_day(plan, day_index, day.model_copy(update={"meals": meals}))


# ==================== Workouts ====================


def validate_workout_draft(draft: WorkoutDraft) -> WorkoutDraft:
    """Check a workout draft before it is sent to the remote store.

    Raises:
        PlanValidationError: On a missing name, unknown muscle group or missing sets/reps
    """
    if not draft.name or not draft.name.strip():
        raise PlanValidationError("Please enter a workout name")
    if not draft.category:
        raise PlanValidationError("Please select a muscle group")
    if draft.category not in MUSCLE_GROUPS:
        raise PlanValidationError(f"Unknown muscle group: {draft.category}")
    if draft.sets is None or draft.reps is None:
        raise PlanValidationError("Please fill in both sets and reps")
    return draft


def append_workout(plan: WeekPlan, day_index: int, workout: WorkoutEntry) -> WeekPlan:
    """Add a workout to a day."""
    day = plan.days[day_index]
    return _replace_day(plan, day_index, day.model_copy(update={"workouts": [*day.workouts, workout]}))


def remove_workout(plan: WeekPlan, day_index: int, workout_index: int) -> WeekPlan:
    """Drop one workout from a day."""
    day = plan.days[day_index]
    workouts = [w for i, w in enumerate(day.workouts) if i != workout_index]
    return _replace_day(plan, day_index, day.model_copy(update={"workouts": workouts}))


def toggle_workout(plan: WeekPlan, day_index: int, workout_index: int) -> WeekPlan:
    """Flip a workout's completion flag."""
    day = plan.days[day_index]
    workouts = list(day.workouts)
    current = workouts[workout_index]
    workouts[workout_index] = current.model_copy(update={"completed": not current.completed})
    return _replace_day(plan, day_index, day.model_copy(update={"workouts": workouts}))
