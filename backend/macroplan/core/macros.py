"""Macro Calculations - Pure functions for intake math over a plan.

All functions are pure: same input always produces same output, no side effects.
"""

from .models import DayIntake, DayPlan, MacroTargets, MealEntry, WeekPlan
from .nutrition import round_half_up


def calculate_meal_totals(meals: list[MealEntry]) -> tuple[int, int, int, int]:
    """Calculate total macros from a list of meals.

    Args:
        meals: Meals to sum

    Returns:
        Tuple of (calories, protein, carbs, fat)
    """
    total_calories = sum(m.calories for m in meals)
    total_protein = sum(m.protein for m in meals)
    total_carbs = sum(m.carbs for m in meals)
    total_fat = sum(m.fat for m in meals)

    return total_calories, total_protein, total_carbs, total_fat


def calculate_day_intake(day: DayPlan, targets: MacroTargets | None = None) -> DayIntake:
    """Sum the meals eaten on a day and compare them to the targets.

    Only completed meals count as consumed.

    Args:
        day: The day to summarize
        targets: Daily targets, if known

    Returns:
        DayIntake with totals and, when targets are given, remaining amounts
    """
    eaten = [m for m in day.meals if m.completed]
    total_cal, total_pro, total_carb, total_fat = calculate_meal_totals(eaten)

    intake = DayIntake(
        plan_date=day.plan_date,
        total_calories=total_cal,
        total_protein=total_pro,
        total_carbs=total_carb,
        total_fat=total_fat,
    )
    if targets is None:
        return intake

    return intake.model_copy(update={
        "calories_remaining": targets.calories - total_cal,
        "protein_remaining": targets.protein - total_pro,
        "carbs_remaining": targets.carbs - total_carb,
        "fat_remaining": targets.fat - total_fat,
    })


def calculate_completion_percentage(plan: WeekPlan) -> int:
    """Percentage of the week's meals marked eaten, 0 when there are none."""
    total = sum(len(day.meals) for day in plan.days)
    if total == 0:
        return 0
    done = sum(1 for day in plan.days for meal in day.meals if meal.completed)
    return round_half_up(done / total * 100)


def calculate_calories_from_macros(protein: float, carbs: float, fat: float) -> int:
    """Calculate calories from macronutrients.

    Uses standard conversion: 4 cal/g protein, 4 cal/g carbs, 9 cal/g fat.

    Args:
        protein: Grams of protein
        carbs: Grams of carbohydrates
        fat: Grams of fat

    Returns:
        Estimated calories (rounded to nearest integer)
    """
    return round_half_up(protein * 4 + carbs * 4 + fat * 9)
