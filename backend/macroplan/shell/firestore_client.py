"""Firestore Client - Persistence for users, profiles, nutrition entries and workouts.

This module handles all database I/O for the remote store.
All I/O is contained here; business logic is in the core module.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from google.cloud import firestore

from ..core.models import Exercise, NutritionEntry, User, UserMetrics, WorkoutRecord


logger = logging.getLogger(__name__)


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


def _to_document(model: NutritionEntry | WorkoutRecord) -> dict[str, Any]:
    """Dump a dated model with its date stored as a YYYY-MM-DD string."""
    data = model.model_dump()
    for key in ("entry_date", "workout_date"):
        if isinstance(data.get(key), date):
            data[key] = data[key].isoformat()
    return data


class FitnessFirestoreClient:
    """Client for persisting fitness data to Firestore.

    Document structure per user:
        users/{user_id}/
            profile/metrics: { age, weight, feet_height, ... }
            nutrition/{entry_id}: { food_name, calories, entry_date, ... }
            workouts/{workout_id}: { name, workout_date, exercises: [...] }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _profile_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user metrics document."""
        return self._user_ref(user_id).collection("profile").document("metrics")

    def _nutrition_ref(self, user_id: str, entry_id: str) -> firestore.DocumentReference:
        """Get reference to a nutrition entry document."""
        return self._user_ref(user_id).collection("nutrition").document(entry_id)

    def _workout_ref(self, user_id: str, workout_id: str) -> firestore.DocumentReference:
        """Get reference to a workout document."""
        return self._user_ref(user_id).collection("workouts").document(workout_id)

    # ==================== User Operations ====================

    def create_user(self, user_id: str, user: User) -> bool:
        """Store the record of a newly registered user.

        Args:
            user_id: The user's ID (API key hash)
            user: Registration details

        Returns:
            True if successful
        """
        try:
            self._user_ref(user_id).set(user.model_dump())
            return True
        except Exception as e:
            logger.error("Failed to create user: %s", str(e))
            return False

    def user_exists(self, user_id: str) -> bool:
        """True if a user record exists; lookup errors count as missing."""
        try:
            return bool(self._user_ref(user_id).get().exists)
        except Exception as e:
            logger.error("Failed to look up user %s: %s", user_id[:8], str(e))
            return False

    # ==================== Profile Operations ====================

    def get_profile(self, user_id: str) -> UserMetrics | None:
        """Fetch user metrics.

        Args:
            user_id: The user's ID

        Returns:
            UserMetrics if found, None otherwise
        """
        logger.debug("Fetching profile for user: %s", user_id[:8])
        try:
            doc = self._profile_ref(user_id).get()
            if not doc.exists:
                return None
            return UserMetrics(**doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch profile: %s", str(e))
            return None

    def save_profile(self, user_id: str, metrics: UserMetrics) -> bool:
        """Create or update user metrics.

        Args:
            user_id: The user's ID
            metrics: Metrics to save

        Returns:
            True if successful
        """
        logger.info("Saving profile for user: %s", user_id[:8])
        try:
            data = metrics.model_dump()
            data["updated_at"] = datetime.utcnow()
            self._profile_ref(user_id).set(data)
            return True
        except Exception as e:
            logger.error("Failed to save profile: %s", str(e))
            return False

    # ==================== Nutrition Operations ====================

    def list_nutrition_entries(
        self, user_id: str, start_date: date | None = None, end_date: date | None = None
    ) -> list[NutritionEntry] | None:
        """Fetch nutrition entries, optionally limited to a date range.

        Args:
            user_id: The user's ID
            start_date: Start of range (inclusive)
            end_date: End of range (inclusive)

        Returns:
            Entries ordered by date (may be empty), None if the query failed
        """
        logger.debug(
            "Fetching nutrition for %s from %s to %s", user_id[:8], start_date, end_date
        )
        entries: list[NutritionEntry] = []

        try:
            query = self._user_ref(user_id).collection("nutrition")
            if start_date and end_date:
                query = (
                    query.where("entry_date", ">=", start_date.isoformat())
                    .where("entry_date", "<=", end_date.isoformat())
                )
            for doc in query.order_by("entry_date").stream():
                data = doc.to_dict()
                data.setdefault("id", doc.id)
                entries.append(NutritionEntry(**data))

            logger.debug("Found %d nutrition entries in range", len(entries))
            return entries
        except Exception as e:
            logger.error("Failed to fetch nutrition entries: %s", str(e))
            return None

    def create_nutrition_entry(self, user_id: str, entry: NutritionEntry) -> NutritionEntry | None:
        """Store a new nutrition entry.

        Args:
            user_id: The user's ID
            entry: The entry to store

        Returns:
            The stored entry if successful, None otherwise
        """
        logger.info("Saving nutrition entry for %s on %s", user_id[:8], entry.entry_date)
        try:
            self._nutrition_ref(user_id, entry.id).set(_to_document(entry))
            return entry
        except Exception as e:
            logger.error("Failed to save nutrition entry: %s", str(e))
            return None

    def update_nutrition_entry(
        self, user_id: str, entry_id: str, updates: dict[str, Any]
    ) -> NutritionEntry | None:
        """Update fields of an existing nutrition entry.

        Args:
            user_id: The user's ID
            entry_id: ID of the entry to update
            updates: Fields to update

        Returns:
            Updated entry if successful, None otherwise
        """
        try:
            ref = self._nutrition_ref(user_id, entry_id)
            doc = ref.get()
            if not doc.exists:
                logger.warning("Nutrition entry not found: %s", entry_id)
                return None
            data = doc.to_dict()
            data.update({k: v for k, v in updates.items() if v is not None})
            data["id"] = entry_id
            entry = NutritionEntry(**data)
            ref.set(_to_document(entry))
            return entry
        except Exception as e:
            logger.error("Failed to update nutrition entry: %s", str(e))
            return None

    def delete_nutrition_entry(self, user_id: str, entry_id: str) -> bool:
        """Delete a nutrition entry.

        Args:
            user_id: The user's ID
            entry_id: ID of the entry to delete

        Returns:
            True if successful
        """
        logger.info("Deleting nutrition entry %s for %s", entry_id, user_id[:8])
        try:
            self._nutrition_ref(user_id, entry_id).delete()
            return True
        except Exception as e:
            logger.error("Failed to delete nutrition entry: %s", str(e))
            return False

    # ==================== Workout Operations ====================

    def list_workouts(
        self, user_id: str, start_date: date | None = None, end_date: date | None = None
    ) -> list[WorkoutRecord] | None:
        """Fetch workouts with their exercises, optionally limited to a date range.

        Args:
            user_id: The user's ID
            start_date: Start of range (inclusive)
            end_date: End of range (inclusive)

        Returns:
            Workouts ordered by date (may be empty), None if the query failed
        """
        logger.debug(
            "Fetching workouts for %s from %s to %s", user_id[:8], start_date, end_date
        )
        workouts: list[WorkoutRecord] = []

        try:
            query = self._user_ref(user_id).collection("workouts")
            if start_date and end_date:
                query = (
                    query.where("workout_date", ">=", start_date.isoformat())
                    .where("workout_date", "<=", end_date.isoformat())
                )
            for doc in query.order_by("workout_date").stream():
                data = doc.to_dict()
                data.setdefault("id", doc.id)
                data["exercises"] = [Exercise(**e) for e in data.get("exercises", [])]
                workouts.append(WorkoutRecord(**data))

            return workouts
        except Exception as e:
            logger.error("Failed to fetch workouts: %s", str(e))
            return None

    def create_workout(self, user_id: str, workout: WorkoutRecord) -> WorkoutRecord | None:
        """Store a new workout.

        Args:
            user_id: The user's ID
            workout: The workout to store

        Returns:
            The stored workout if successful, None otherwise
        """
        logger.info("Creating workout for %s on %s: %s", user_id[:8], workout.workout_date, workout.name)
        try:
            self._workout_ref(user_id, workout.id).set(_to_document(workout))
            return workout
        except Exception as e:
            logger.error("Failed to create workout: %s", str(e))
            return None

    def update_workout(
        self, user_id: str, workout_id: str, updates: dict[str, Any]
    ) -> WorkoutRecord | None:
        """Update a workout; a given exercise list replaces the stored one.

        Args:
            user_id: The user's ID
            workout_id: ID of the workout to update
            updates: Fields to update

        Returns:
            Updated workout if successful, None otherwise
        """
        try:
            ref = self._workout_ref(user_id, workout_id)
            doc = ref.get()
            if not doc.exists:
                logger.warning("Workout not found: %s", workout_id)
                return None
            data = doc.to_dict()
            data.update({k: v for k, v in updates.items() if v is not None})
            data["id"] = workout_id
            workout = WorkoutRecord(**data)
            ref.set(_to_document(workout))
            return workout
        except Exception as e:
            logger.error("Failed to update workout: %s", str(e))
            return None

    def delete_workout(self, user_id: str, workout_id: str) -> bool:
        """Delete a workout and its exercises.

        Args:
            user_id: The user's ID
            workout_id: ID of the workout to delete

        Returns:
            True if successful
        """
        logger.info("Deleting workout %s for %s", workout_id, user_id[:8])
        try:
            self._workout_ref(user_id, workout_id).delete()
            return True
        except Exception as e:
            logger.error("Failed to delete workout: %s", str(e))
            return False
