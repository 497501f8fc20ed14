"""Nutrition Targets - Pure functions for calorie and macro estimation.

All functions are pure: same input always produces same output, no side effects.
Unknown activity levels and goals degrade to defaults instead of raising.
"""

import math
import re
from typing import Any, Optional

from .models import MacroTargets, UserMetrics


INCH_TO_CM = 2.54
LB_TO_KG = 0.453592

DEFAULT_ACTIVITY_MULTIPLIER = 1.55

ACTIVITY_MULTIPLIERS = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "active": 1.65,
    "very_active": 1.7,
}

GOAL_ADJUSTMENTS = {
    "weight_loss": 0.8,
    "fat_loss": 0.8,
    "muscle_gain": 1.1,
    "endurance": 1.05,
    "maintenance": 1.0,
}

# (protein g/lb, fat g/lb)
MACRO_RATIOS = {
    "muscle_gain": (1.2, 0.5),
    "weight_loss": (1.0, 0.3),
    "fat_loss": (1.0, 0.3),
    "endurance": (0.8, 0.4),
}
DEFAULT_MACRO_RATIO = (0.9, 0.4)

SEXES = ("male", "female")
ACTIVITY_LEVELS = tuple(ACTIVITY_MULTIPLIERS)
GOALS = tuple(GOAL_ADJUSTMENTS)

_MACRO_PATTERNS = {
    "calories": re.compile(r"Calories?:\s*(\d+)", re.IGNORECASE),
    "protein": re.compile(r"Protein:\s*(\d+)", re.IGNORECASE),
    "carbs": re.compile(r"Carbs?:\s*(\d+)", re.IGNORECASE),
    "fat": re.compile(r"Fat:\s*(\d+)", re.IGNORECASE),
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def height_to_cm(feet: int, inches: int) -> float:
    """Convert a feet + inches height to centimeters."""
    total_inches = feet * 12 + inches
    return total_inches * INCH_TO_CM


def pounds_to_kg(pounds: float) -> float:
    """Convert pounds to kilograms."""
    return pounds * LB_TO_KG


def calculate_bmr(weight_kg: float, height_cm: float, age: int, sex: str) -> float:
    """Basal metabolic rate via the Mifflin-St Jeor equation.

    Args:
        weight_kg: Body weight in kilograms
        height_cm: Height in centimeters
        age: Age in years
        sex: "male" selects the male constant, anything else the female one

    Returns:
        BMR in kcal/day (unrounded)
    """
    base = 10 * weight_kg + 6.25 * height_cm - 5 * age
    if (sex or "").lower() == "male":
        return base + 5
    return base - 161


def activity_multiplier(activity_level: str) -> float:
    """Look up the TDEE multiplier, falling back to moderate."""
    return ACTIVITY_MULTIPLIERS.get(activity_level, DEFAULT_ACTIVITY_MULTIPLIER)


def goal_adjustment(goal: str) -> float:
    """Calorie scale factor for a goal; unknown goals are treated as maintenance."""
    return GOAL_ADJUSTMENTS.get(goal, 1.0)


def macro_ratios(goal: str) -> tuple[float, float]:
    """Protein and fat grams per pound of body weight for a goal."""
    return MACRO_RATIOS.get(goal, DEFAULT_MACRO_RATIO)


def calculate_tdee(metrics: UserMetrics) -> float:
    """Total daily energy expenditure before any goal adjustment."""
    bmr = calculate_bmr(
        pounds_to_kg(metrics.weight),
        height_to_cm(metrics.feet_height, metrics.inches_height),
        metrics.age,
        metrics.sex,
    )
    return bmr * activity_multiplier(metrics.activity_level)


def compute_targets(metrics: UserMetrics) -> MacroTargets:
    """Compute daily calorie and macro targets.

    Calories are rounded before macro calories are derived, and protein/fat
    grams are rounded before carbs absorb the remainder. Changing that order
    moves results by one in edge cases.

    Args:
        metrics: Validated user metrics

    Returns:
        MacroTargets with carbs never negative
    """
    calories = round_half_up(calculate_tdee(metrics) * goal_adjustment(metrics.primary_goal))

    protein_per_lb, fat_per_lb = macro_ratios(metrics.primary_goal)
    protein = round_half_up(metrics.weight * protein_per_lb)
    fat = round_half_up(metrics.weight * fat_per_lb)

    remaining = calories - protein * 4 - fat * 9
    carbs = max(0, round_half_up(remaining / 4))

    return MacroTargets(calories=calories, protein=protein, carbs=carbs, fat=fat)


def format_macro_response(targets: MacroTargets) -> str:
    """Render targets in the structured text form that parse_macro_response reads."""
    return (
        f"Personalized macros: Calories: {targets.calories}, "
        f"Protein: {targets.protein}g, Carbs: {targets.carbs}g, Fat: {targets.fat}g"
    )


def parse_macro_response(text: str | None) -> Optional[MacroTargets]:
    """Extract targets from a structured text response.

    Returns:
        MacroTargets if all four values are present, None otherwise
    """
    if not text:
        return None

    values: dict[str, int] = {}
    for key, pattern in _MACRO_PATTERNS.items():
        match = pattern.search(text)
        if match is None:
            return None
        values[key] = int(match.group(1))

    return MacroTargets(**values)


def resolve_targets(
    metrics: UserMetrics, payload: dict[str, Any] | None = None
) -> tuple[MacroTargets, bool]:
    """Pick targets from a text-service payload, falling back to compute_targets.

    Order: payload["macros"] when payload["type"] == "macros", then the parsed
    payload["response"] text, then the direct calculation.

    Returns:
        (targets, True if they came from the payload)
    """
    if payload and not payload.get("error"):
        if payload.get("type") == "macros" and isinstance(payload.get("macros"), dict):
            try:
                return MacroTargets(**payload["macros"]), True
            except (TypeError, ValueError):
                pass
        parsed = parse_macro_response(payload.get("response"))
        if parsed is not None:
            return parsed, True

    return compute_targets(metrics), False
