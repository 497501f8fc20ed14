"""Week Session - Keeps one user's weekly plan in sync with the remote store.

The session owns the current WeekPlan. Loading a week reads the cached plan
(or generates a fresh one), fetches the week's remote entries and merges them.
Mutations that need the remote store await it first and only change the plan
once the call succeeds; every change is written back to the plan cache.

Each load bumps a generation counter. A fetch that resolves after a newer
load has started is discarded, and a mutation that resolves after the week
changed is applied to that week's cached plan instead of the current one.
"""

import asyncio
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Callable

from ..core.dates import format_local_date, is_future, shift_week, week_start
from ..core.models import (
    DayPlan,
    Exercise,
    MealDraft,
    NutritionEntry,
    WeekPlan,
    WorkoutDraft,
    WorkoutEntry,
    WorkoutRecord,
)
from ..core.planner import (
    append_meal,
    append_workout,
    default_day_index,
    generate_week_plan,
    meal_from_draft,
    merge_nutrition_entries,
    merge_workouts,
    remove_meal,
    remove_workout,
    set_meal_completed,
    toggle_workout,
    validate_workout_draft,
    workout_from_record,
)
from .plan_cache import PlanStore
from .remote_store import EntryStore, RemoteStoreError


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class WeekSession:
    """Weekly plan reconciler for a single user."""

    def __init__(
        self,
        store: EntryStore,
        plans: PlanStore,
        goal: str = "maintenance",
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the session.

        Args:
            store: Remote meal/workout entries for the user
            plans: Week-keyed local plan storage for the user
            goal: Primary goal, used for suggested exercises in new plans
            today: Clock returning the local calendar date
        """
        self._store = store
        self._plans = plans
        self.goal = goal
        self._today = today
        self.state = SessionState.UNINITIALIZED
        self.plan: WeekPlan | None = None
        self.anchor: date | None = None
        self.selected_index = 0
        self._generation = 0
        self._selection_initialized = False

    @property
    def selected_day(self) -> DayPlan | None:
        if self.plan is None:
            return None
        return self.plan.days[self.selected_index]

    def select_day(self, index: int) -> DayPlan:
        """Make a day of the loaded week the selected one."""
        plan = self._require_plan()
        if not 0 <= index < len(plan.days):
            raise IndexError(f"Day index out of range: {index}")
        self.selected_index = index
        return plan.days[index]

    # ==================== Loading ====================

    async def load_week(self, anchor: date) -> WeekPlan | None:
        """Load the week containing anchor and merge remote entries into it.

        Args:
            anchor: Any date in the week to show

        Returns:
            The merged plan, or None if a newer load superseded this one
        """
        self._generation += 1
        generation = self._generation
        self.state = SessionState.LOADING
        start = week_start(anchor)

        plan = self._plans.load(start)
        if plan is None:
            logger.info("Generating new plan for week of %s", format_local_date(start))
            plan = generate_week_plan(start, self.goal)

        end = start + timedelta(days=6)
        try:
            entries, workouts = await asyncio.gather(
                self._store.list_nutrition(start, end),
                self._store.list_workouts(start, end),
            )
        except RemoteStoreError as e:
            # Merging an empty fetch would drop every persisted workout.
            logger.error("Failed to fetch entries for week of %s, showing local plan: %s",
                         format_local_date(start), str(e))
            entries = workouts = None

        if generation != self._generation:
            logger.info("Discarding stale load for week of %s", format_local_date(start))
            return None

        if entries is not None:
            plan = merge_workouts(merge_nutrition_entries(plan, entries), workouts)

        self.anchor = anchor
        self._commit(plan)
        if not self._selection_initialized:
            self.selected_index = default_day_index(plan, self._today())
            self._selection_initialized = True
        self.state = SessionState.READY
        return plan

    async def navigate(self, weeks: int) -> WeekPlan | None:
        """Move by whole weeks, keeping the same weekday selected."""
        anchor = self.anchor or self._today()
        return await self.load_week(shift_week(anchor, weeks))

    # ==================== Meals ====================

    async def toggle_meal_completion(self, day_index: int, meal_index: int) -> bool:
        """Mark a meal eaten (creates a remote entry) or not eaten (deletes it).

        Marking a meal eaten on a date after today is refused.

        Returns:
            True if the plan changed
        """
        plan = self._require_plan()
        day, meal = self._meal_at(plan, day_index, meal_index)
        if meal is None:
            return False

        if not meal.completed and is_future(day.plan_date, self._today()):
            logger.warning("Cannot mark future meal as eaten: %s on %s", meal.name, day.plan_date)
            return False

        generation = self._generation
        if not meal.completed:
            entry = NutritionEntry(
                food_name=meal.name,
                calories=meal.calories,
                protein=meal.protein,
                carbs=meal.carbs,
                fat=meal.fat,
                entry_date=day.plan_date,
                notes="Meal from plan",
            )
            try:
                stored = await self._store.create_nutrition(entry)
            except RemoteStoreError as e:
                logger.error("Failed to mark meal eaten: %s", str(e))
                return False
            logger.info("Meal marked as eaten: %s", meal.name)
            return self._apply_to_meal(
                generation, plan.week_start, day_index, meal_index, meal.name,
                lambda p: set_meal_completed(p, day_index, meal_index, True, stored.id),
            )

        if meal.remote_id:
            try:
                await self._store.delete_nutrition(meal.remote_id)
            except RemoteStoreError as e:
                logger.error("Failed to unmark meal: %s", str(e))
                return False
            logger.info("Meal unmarked and removed from remote store: %s", meal.name)

        return self._apply_to_meal(
            generation, plan.week_start, day_index, meal_index, meal.name,
            lambda p: set_meal_completed(p, day_index, meal_index, False, None),
        )

    def add_custom_meal(self, draft: MealDraft, whole_week: bool = False) -> WeekPlan:
        """Add a custom meal to the selected day, or to it and the rest of the week.

        Raises:
            PlanValidationError: If the draft is missing a field
        """
        plan = self._require_plan()
        meal = meal_from_draft(draft)
        self._commit(append_meal(plan, self.selected_index, meal, whole_week))
        logger.info("Custom meal added: %s (whole week: %s)", meal.name, whole_week)
        return self.plan

    async def delete_meal(self, day_index: int, meal_index: int) -> bool:
        """Remove a meal; an eaten meal's remote entry is deleted first.

        Returns:
            True if the meal was removed
        """
        plan = self._require_plan()
        _, meal = self._meal_at(plan, day_index, meal_index)
        if meal is None:
            return False

        generation = self._generation
        if meal.remote_id:
            try:
                await self._store.delete_nutrition(meal.remote_id)
            except RemoteStoreError as e:
                logger.error("Failed to delete meal from remote store: %s", str(e))
                return False

        return self._apply_to_meal(
            generation, plan.week_start, day_index, meal_index, meal.name,
            lambda p: remove_meal(p, day_index, meal_index),
        )

    # ==================== Workouts ====================

    async def add_workout(self, draft: WorkoutDraft, day_index: int | None = None) -> WorkoutEntry | None:
        """Create a workout in the remote store, then add it to the day.

        Raises:
            PlanValidationError: If the draft is incomplete
            IndexError: If day_index is not a day of the loaded week

        Returns:
            The added entry, or None if the remote create failed
        """
        plan = self._require_plan()
        validate_workout_draft(draft)
        if day_index is None:
            day_index = self.selected_index
        if not 0 <= day_index < len(plan.days):
            raise IndexError(f"Day index out of range: {day_index}")
        day = plan.days[day_index]

        record = WorkoutRecord(
            name=draft.name.strip(),
            workout_date=day.plan_date,
            notes=draft.notes,
            exercises=[
                Exercise(
                    name=draft.name.strip(),
                    category=draft.category,
                    sets=draft.sets,
                    reps=draft.reps,
                    weight=draft.weight,
                )
            ],
        )

        generation = self._generation
        try:
            stored = await self._store.create_workout(record)
        except RemoteStoreError as e:
            logger.error("Failed to create workout: %s", str(e))
            return None

        entry = workout_from_record(stored)
        self._apply(generation, plan.week_start, lambda p: append_workout(p, day_index, entry))
        return entry

    async def delete_workout(self, day_index: int, workout_index: int) -> bool:
        """Remove a workout; a persisted one is deleted remotely first.

        Returns:
            True if the workout was removed
        """
        plan = self._require_plan()
        workout = self._workout_at(plan, day_index, workout_index)
        if workout is None:
            return False

        generation = self._generation
        if workout.remote_id:
            try:
                await self._store.delete_workout(workout.remote_id)
            except RemoteStoreError as e:
                logger.error("Failed to delete workout: %s", str(e))
                return False

        def _remove(p: WeekPlan) -> WeekPlan:
            index = self._locate_workout(p, day_index, workout_index, workout)
            return p if index is None else remove_workout(p, day_index, index)

        return self._apply(generation, plan.week_start, _remove)

    def toggle_workout_completion(self, day_index: int, workout_index: int) -> bool:
        """Flip a workout's completion flag locally."""
        plan = self._require_plan()
        if self._workout_at(plan, day_index, workout_index) is None:
            return False
        self._commit(toggle_workout(plan, day_index, workout_index))
        return True

    # ==================== Internals ====================

    def _require_plan(self) -> WeekPlan:
        if self.plan is None or self.state is SessionState.UNINITIALIZED:
            raise RuntimeError("No week loaded. Call load_week first.")
        return self.plan

    def _commit(self, plan: WeekPlan) -> None:
        self.plan = plan
        self._plans.save(plan)

    def _apply(self, generation: int, start: date, change: Callable[[WeekPlan], WeekPlan]) -> bool:
        """Apply a confirmed change to the current plan, or to its cached week."""
        if generation == self._generation and self.plan is not None:
            self._commit(change(self.plan))
            return True

        cached = self._plans.load(start)
        if cached is None:
            logger.warning("Week of %s no longer cached; change dropped", format_local_date(start))
            return False
        self._plans.save(change(cached))
        return True

    def _apply_to_meal(
        self,
        generation: int,
        start: date,
        day_index: int,
        meal_index: int,
        name: str,
        change: Callable[[WeekPlan], WeekPlan],
    ) -> bool:
        def _guarded(p: WeekPlan) -> WeekPlan:
            meals = p.days[day_index].meals
            if meal_index >= len(meals) or meals[meal_index].name != name:
                logger.warning("Meal %s moved before the remote call finished", name)
                return p
            return change(p)

        return self._apply(generation, start, _guarded)

    @staticmethod
    def _meal_at(plan: WeekPlan, day_index: int, meal_index: int):
        if not 0 <= day_index < len(plan.days):
            logger.warning("Day index out of range: %d", day_index)
            return None, None
        day = plan.days[day_index]
        if not 0 <= meal_index < len(day.meals):
            logger.warning("Meal index out of range: %d", meal_index)
            return day, None
        return day, day.meals[meal_index]

    @staticmethod
    def _workout_at(plan: WeekPlan, day_index: int, workout_index: int) -> WorkoutEntry | None:
        if not 0 <= day_index < len(plan.days):
            logger.warning("Day index out of range: %d", day_index)
            return None
        workouts = plan.days[day_index].workouts
        if not 0 <= workout_index < len(workouts):
            logger.warning("Workout index out of range: %d", workout_index)
            return None
        return workouts[workout_index]

    @staticmethod
    def _locate_workout(plan: WeekPlan, day_index: int, workout_index: int, workout: WorkoutEntry) -> int | None:
        workouts = plan.days[day_index].workouts
        if workout.remote_id:
            for i, w in enumerate(workouts):
                if w.remote_id == workout.remote_id:
                    return i
            return None
        if workout_index < len(workouts) and workouts[workout_index].name == workout.name:
            return workout_index
        return None
