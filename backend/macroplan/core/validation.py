"""Metric Form Validation - Pure checks run before anything is saved.

Returns user-facing messages keyed by field so a form can show them inline.
"""

from typing import Any

from .nutrition import ACTIVITY_LEVELS, GOALS, SEXES


# field -> (min, max, label, range message)
METRIC_RANGES = {
    "age": (13, 100, "Age", "Age must be between 13 and 100"),
    "weight": (70, 500, "Weight", "Weight must be between 70 and 500 lbs"),
    "feet_height": (3, 8, "Height (feet)", "Feet must be between 3 and 8"),
    "inches_height": (0, 11, "Height (inches)", "Inches must be between 0 and 11"),
}

METRIC_CHOICES = {
    "sex": SEXES,
    "activity_level": ACTIVITY_LEVELS,
    "primary_goal": GOALS,
}


def _as_number(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def validate_metrics(data: dict[str, Any]) -> dict[str, str]:
    """Check raw metric input.

    Args:
        data: Field values as submitted (numbers or numeric strings)

    Returns:
        Mapping of field name to error message; empty when valid
    """
    errors: dict[str, str] = {}

    for field, (low, high, label, message) in METRIC_RANGES.items():
        number = _as_number(data.get(field))
        if number is None:
            errors[field] = f"{label} is required"
        elif number < low or number > high:
            errors[field] = message

    for field, choices in METRIC_CHOICES.items():
        value = data.get(field)
        if not value:
            errors[field] = f"{field.replace('_', ' ').capitalize()} is required"
        elif value not in choices:
            errors[field] = f"Must be one of: {', '.join(choices)}"

    return errors


def clamp_metrics(data: dict[str, Any]) -> dict[str, Any]:
    """Clamp numeric metrics into their allowed ranges.

    Missing or non-numeric values are left untouched.
    """
    clamped = dict(data)
    for field, (low, high, _, _) in METRIC_RANGES.items():
        number = _as_number(clamped.get(field))
        if number is None:
            continue
        value = min(high, max(low, number))
        clamped[field] = value if field == "weight" else int(value)
    return clamped
