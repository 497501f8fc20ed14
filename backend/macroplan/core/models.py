"""Core Data Models - Pydantic models for type safety.

Models carry validation only; behavior lives in the pure functions of the
core package. Dates are local calendar dates (no time-of-day, no timezone).
"""

from datetime import datetime
from datetime import date as DateType
from typing import Optional
from pydantic import BaseModel, Field, computed_field
import uuid


class UserMetrics(BaseModel):
    """Body metrics and goal entered by the user.

    Activity level and goal are kept as plain strings so that stored profiles
    with unknown values still load; the calculator degrades them to defaults.
    """

    age: int = Field(ge=13, le=100, description="Age in years")
    weight: float = Field(ge=70, le=500, description="Body weight in pounds")
    feet_height: int = Field(ge=3, le=8, description="Height, feet component")
    inches_height: int = Field(ge=0, le=11, description="Height, inches component")
    sex: str = Field(description="male or female")
    activity_level: str = Field(default="moderate")
    primary_goal: str = Field(default="maintenance")
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MacroTargets(BaseModel):
    """Daily calorie and macro targets derived from UserMetrics."""

    calories: int = Field(ge=0, description="kcal per day")
    protein: int = Field(ge=0, description="Protein in grams per day")
    carbs: int = Field(ge=0, description="Carbohydrates in grams per day")
    fat: int = Field(ge=0, description="Fat in grams per day")


class MealEntry(BaseModel):
    """A meal on a day of the weekly plan."""

    name: str = Field(min_length=1)
    calories: int = Field(ge=0)
    protein: int = Field(ge=0)
    carbs: int = Field(ge=0)
    fat: int = Field(ge=0)
    completed: bool = False
    remote_id: Optional[str] = Field(default=None, description="Nutrition entry ID once eaten")


class WorkoutEntry(BaseModel):
    """A workout on a day of the weekly plan."""

    name: str = Field(min_length=1)
    category: Optional[str] = Field(default=None, description="Muscle group tag")
    sets: int = Field(ge=0)
    reps: int = Field(ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    duration: Optional[int] = Field(default=None, ge=0, description="Seconds")
    distance: Optional[float] = Field(default=None, ge=0)
    rest_time: Optional[int] = Field(default=None, ge=0, description="Seconds")
    notes: Optional[str] = None
    completed: bool = False
    remote_id: Optional[str] = Field(default=None, description="Workout ID when persisted")


class DayPlan(BaseModel):
    """One calendar day of the weekly plan."""

    id: str
    day: str = Field(description="Weekday label, e.g. Monday")
    plan_date: DateType
    meals: list[MealEntry] = Field(default_factory=list)
    workouts: list[WorkoutEntry] = Field(default_factory=list)

    @computed_field
    @property
    def completed(self) -> bool:
        """True iff the day has entries and all of them are complete."""
        entries = [*self.meals, *self.workouts]
        return bool(entries) and all(e.completed for e in entries)


class WeekPlan(BaseModel):
    """Seven consecutive DayPlans starting on the week's Monday."""

    week_start: DateType
    days: list[DayPlan] = Field(min_length=7, max_length=7)


class MealDraft(BaseModel):
    """User-entered custom meal before it is placed on the plan."""

    name: Optional[str] = None
    calories: Optional[int] = Field(default=None, ge=0)
    protein: Optional[int] = Field(default=None, ge=0)
    carbs: Optional[int] = Field(default=None, ge=0)
    fat: Optional[int] = Field(default=None, ge=0)


class WorkoutDraft(BaseModel):
    """User-entered workout before it is created in the remote store."""

    name: Optional[str] = None
    category: Optional[str] = None
    sets: Optional[int] = Field(default=None, ge=0)
    reps: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class NutritionEntry(BaseModel):
    """A consumed meal persisted in the remote store."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    food_name: str = Field(min_length=1)
    calories: int = Field(ge=0)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    entry_date: DateType
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Exercise(BaseModel):
    """An exercise inside a persisted workout."""

    name: str = Field(min_length=1)
    category: str
    sets: int = Field(ge=0)
    reps: int = Field(ge=0)
    weight: Optional[float] = None
    duration: Optional[int] = None
    distance: Optional[float] = None
    rest_time: Optional[int] = None
    notes: Optional[str] = None


class WorkoutRecord(BaseModel):
    """A workout persisted in the remote store."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(min_length=1)
    type: str = "strength"
    duration: int = Field(default=0, ge=0, description="Minutes")
    calories_burned: Optional[int] = None
    notes: Optional[str] = None
    workout_date: DateType
    completed: bool = False
    exercises: list[Exercise] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class DayIntake(BaseModel):
    """Consumed totals for a day and what remains against the targets."""

    plan_date: DateType
    total_calories: int
    total_protein: int
    total_carbs: int
    total_fat: int
    calories_remaining: Optional[int] = Field(default=None, description="Negative if over target")
    protein_remaining: Optional[int] = None
    carbs_remaining: Optional[int] = None
    fat_remaining: Optional[int] = None


class User(BaseModel):
    """User record stored in Firestore."""

    email: str
    api_key_hash: str = Field(description="SHA256 hash of API key - never store plaintext")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
