"""HTTP API - Route handlers for profiles, nutrition entries, workouts and targets.

Handlers expect AuthMiddleware to have set current_user_id for /api paths.
"""

import logging
from datetime import date
from typing import Any

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..core.dates import parse_local_date
from ..core.models import Exercise, NutritionEntry, UserMetrics, WorkoutRecord
from ..core.nutrition import compute_targets, format_macro_response, resolve_targets
from ..core.validation import clamp_metrics, validate_metrics
from .mcp_server import current_user_id, get_firestore_client


logger = logging.getLogger(__name__)

MACRO_KEYWORDS = ("macro", "calorie")


def _parse_range(request: Request) -> tuple[date | None, date | None]:
    """Read start_date / end_date query params; both or neither.

    Raises:
        ValueError: On a malformed date
    """
    start = request.query_params.get("start_date")
    end = request.query_params.get("end_date")
    if start and end:
        return parse_local_date(start), parse_local_date(end)
    return None, None


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


# ==================== Profile ====================


async def get_user_profile(request: Request) -> JSONResponse:
    """Fetch the user's metrics."""
    user_id = current_user_id.get()
    try:
        profile = get_firestore_client().get_profile(user_id)
        if profile is None:
            return _error("Profile not found", 404)
        return JSONResponse({
            "success": True,
            "profile": profile.model_dump(mode="json"),
        })
    except Exception as e:
        logger.error("Error fetching user profile: %s", str(e))
        return _error("Failed to fetch profile", 500)


async def save_user_profile(request: Request) -> JSONResponse:
    """Create or update the user's metrics; values are clamped into range."""
    user_id = current_user_id.get()
    try:
        body = await request.json()
        data = clamp_metrics(body.get("profile") or body)

        errors = validate_metrics(data)
        if errors:
            return _error("Invalid metrics", 400, fields=errors)

        db = get_firestore_client()
        existing = db.get_profile(user_id)
        metrics = UserMetrics(**{k: data[k] for k in (
            "age", "weight", "feet_height", "inches_height", "sex", "activity_level", "primary_goal",
        )})
        if not db.save_profile(user_id, metrics):
            return _error("Failed to save profile", 500)

        return JSONResponse({
            "success": True,
            "profile": metrics.model_dump(mode="json"),
            "targets": compute_targets(metrics).model_dump(),
            "message": "Profile updated successfully!" if existing else "Profile created successfully!",
        })
    except Exception as e:
        logger.error("Error saving user profile: %s", str(e))
        return _error("Failed to save profile", 500)


# ==================== Nutrition ====================


async def list_nutrition(request: Request) -> JSONResponse:
    """List nutrition entries, optionally within start_date..end_date."""
    user_id = current_user_id.get()
    try:
        start, end = _parse_range(request)
    except ValueError:
        return _error("Invalid date format. Use YYYY-MM-DD.", 400)

    entries = get_firestore_client().list_nutrition_entries(user_id, start, end)
    if entries is None:
        return _error("Failed to fetch nutrition entries", 500)
    return JSONResponse({"entries": [e.model_dump(mode="json") for e in entries]})


async def save_nutrition(request: Request) -> JSONResponse:
    """Create a nutrition entry, or update one when entry_id is given."""
    user_id = current_user_id.get()
    try:
        body = await request.json()
        if not body.get("food_name") or body.get("calories") is None:
            return _error("food_name and calories are required", 400)

        fields = {
            "food_name": body["food_name"],
            "calories": body["calories"],
            "protein": body.get("protein"),
            "carbs": body.get("carbs"),
            "fat": body.get("fat"),
            "notes": body.get("notes"),
        }
        db = get_firestore_client()

        if body.get("entry_id"):
            if body.get("date"):
                fields["entry_date"] = parse_local_date(body["date"]).isoformat()
            entry = db.update_nutrition_entry(user_id, body["entry_id"], fields)
            if entry is None:
                return _error("Entry not found or update failed", 404)
            return JSONResponse({"entry": entry.model_dump(mode="json")})

        entry_date = parse_local_date(body["date"]) if body.get("date") else date.today()
        entry = db.create_nutrition_entry(user_id, NutritionEntry(entry_date=entry_date, **fields))
        if entry is None:
            return _error("Failed to create nutrition entry", 500)
        return JSONResponse({"entry": entry.model_dump(mode="json")})
    except (ValidationError, ValueError) as e:
        return _error(f"Invalid nutrition entry: {e}", 400)
    except Exception as e:
        logger.error("Error creating nutrition entry: %s", str(e))
        return _error("Failed to create nutrition entry", 500)


async def delete_nutrition(request: Request) -> JSONResponse:
    """Delete a nutrition entry by entry_id."""
    user_id = current_user_id.get()
    entry_id = request.query_params.get("entry_id")
    if not entry_id:
        return _error("entry_id is required", 400)

    if not get_firestore_client().delete_nutrition_entry(user_id, entry_id):
        return _error("Failed to delete nutrition entry", 500)
    return JSONResponse({"success": True})


# ==================== Workouts ====================


def _exercises(raw: list[dict] | None) -> list[Exercise]:
    return [Exercise(**ex) for ex in raw or []]


async def list_workouts(request: Request) -> JSONResponse:
    """List workouts with exercises, optionally within start_date..end_date."""
    user_id = current_user_id.get()
    try:
        start, end = _parse_range(request)
    except ValueError:
        return _error("Invalid date format. Use YYYY-MM-DD.", 400)

    workouts = get_firestore_client().list_workouts(user_id, start, end)
    if workouts is None:
        return _error("Failed to fetch workouts", 500)
    return JSONResponse({"workouts": [w.model_dump(mode="json") for w in workouts]})


async def create_workout(request: Request) -> JSONResponse:
    """Create a workout with its exercises."""
    user_id = current_user_id.get()
    try:
        body = await request.json()
        if not body.get("name") or not body.get("date"):
            logger.warning("Missing required workout fields: name=%s date=%s",
                           bool(body.get("name")), bool(body.get("date")))
            return _error("Missing required fields", 400)

        workout = WorkoutRecord(
            name=body["name"],
            type=body.get("type") or "strength",
            duration=body.get("duration") or 0,
            calories_burned=body.get("calories_burned"),
            notes=body.get("notes"),
            workout_date=parse_local_date(body["date"]),
            completed=bool(body.get("completed", False)),
            exercises=_exercises(body.get("exercises")),
        )
        stored = get_firestore_client().create_workout(user_id, workout)
        if stored is None:
            return _error("Failed to create workout", 500)
        return JSONResponse({"workout": stored.model_dump(mode="json")}, status_code=201)
    except (ValidationError, ValueError) as e:
        return _error(f"Invalid workout: {e}", 400)
    except Exception as e:
        logger.error("Error creating workout: %s", str(e))
        return _error("Failed to create workout", 500)


async def update_workout(request: Request) -> JSONResponse:
    """Update a workout; a given exercise list replaces the stored one."""
    user_id = current_user_id.get()
    try:
        body = await request.json()
        workout_id = body.get("workout_id")
        if not workout_id:
            return _error("workout_id is required", 400)

        updates = {
            key: body.get(key)
            for key in ("name", "type", "duration", "calories_burned", "notes", "completed")
        }
        if body.get("exercises") is not None:
            updates["exercises"] = [ex.model_dump() for ex in _exercises(body["exercises"])]

        workout = get_firestore_client().update_workout(user_id, workout_id, updates)
        if workout is None:
            return _error("Workout not found or update failed", 404)
        return JSONResponse({"workout": workout.model_dump(mode="json")})
    except (ValidationError, ValueError) as e:
        return _error(f"Invalid workout: {e}", 400)
    except Exception as e:
        logger.error("Error updating workout: %s", str(e))
        return _error("Failed to update workout", 500)


async def delete_workout(request: Request) -> JSONResponse:
    """Delete a workout by workout_id."""
    user_id = current_user_id.get()
    workout_id = request.query_params.get("workout_id")
    if not workout_id:
        return _error("workout_id is required", 400)

    if not get_firestore_client().delete_workout(user_id, workout_id):
        return _error("Failed to delete workout", 500)
    return JSONResponse({"message": "Workout deleted successfully"})


# ==================== Targets ====================


async def calculate_macros(request: Request) -> JSONResponse:
    """Answer a macro request for the given metrics.

    A text-service reply passed as "reply" is used when it carries all four
    values; otherwise the targets are computed directly and "fallback" is set.
    """
    try:
        body = await request.json()
        message = (body.get("message") or "").lower()
        metrics_data = body.get("user_metrics")
        response_format = body.get("response_format", "text")

        wants_macros = metrics_data and (
            any(word in message for word in MACRO_KEYWORDS) or response_format == "macros"
        )
        if not wants_macros:
            return JSONResponse({
                "response": "I'm focused on macro calculations. Send your metrics to get personalized targets.",
                "type": "text",
            })

        reply = body.get("reply")
        targets, from_reply = resolve_targets(UserMetrics(**metrics_data), reply)
        if reply is not None and not from_reply:
            logger.warning("Unusable macro reply, using direct calculation")
        return JSONResponse({
            "response": format_macro_response(targets),
            "macros": targets.model_dump(),
            "type": "macros",
            "fallback": reply is not None and not from_reply,
        })
    except ValidationError as e:
        return _error("Invalid metrics", 400, fields={
            ".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()
        })
    except Exception as e:
        logger.error("Macro calculation failed: %s", str(e))
        return _error("Internal server error", 500)


api_routes = [
    Route("/api/user-profile", get_user_profile, methods=["GET"]),
    Route("/api/user-profile", save_user_profile, methods=["POST"]),
    Route("/api/nutrition", list_nutrition, methods=["GET"]),
    Route("/api/nutrition", save_nutrition, methods=["POST"]),
    Route("/api/nutrition", delete_nutrition, methods=["DELETE"]),
    Route("/api/workouts", list_workouts, methods=["GET"]),
    Route("/api/workouts", create_workout, methods=["POST"]),
    Route("/api/workouts", update_workout, methods=["PUT"]),
    Route("/api/workouts", delete_workout, methods=["DELETE"]),
    Route("/api/macros", calculate_macros, methods=["POST"]),
]
