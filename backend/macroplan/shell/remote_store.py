"""Remote Entry Store - Async interface the week session talks to.

The Firestore client is synchronous; the adapter runs each call in a worker
thread so a pending request only suspends the caller that awaits it.
"""

import asyncio
import logging
from datetime import date
from typing import Protocol

from ..core.models import NutritionEntry, UserMetrics, WorkoutRecord
from .firestore_client import FitnessFirestoreClient


logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
    """Raised when a remote create/delete/list does not succeed."""


class EntryStore(Protocol):
    """Dated meal and workout entries for one user."""

    async def list_nutrition(self, start: date, end: date) -> list[NutritionEntry]: ...

    async def create_nutrition(self, entry: NutritionEntry) -> NutritionEntry: ...

    async def delete_nutrition(self, entry_id: str) -> None: ...

    async def list_workouts(self, start: date, end: date) -> list[WorkoutRecord]: ...

    async def create_workout(self, workout: WorkoutRecord) -> WorkoutRecord: ...

    async def delete_workout(self, workout_id: str) -> None: ...


class ProfileStore(Protocol):
    """User metrics for one user."""

    async def get_profile(self) -> UserMetrics | None: ...

    async def save_profile(self, metrics: UserMetrics) -> None: ...


class FirestoreEntryStore:
    """EntryStore and ProfileStore backed by FitnessFirestoreClient for one user."""

    def __init__(self, db: FitnessFirestoreClient, user_id: str) -> None:
        self._db = db
        self._user_id = user_id

    async def list_nutrition(self, start: date, end: date) -> list[NutritionEntry]:
        entries = await asyncio.to_thread(self._db.list_nutrition_entries, self._user_id, start, end)
        if entries is None:
            raise RemoteStoreError(f"Failed to list nutrition entries from {start} to {end}")
        return entries

    async def create_nutrition(self, entry: NutritionEntry) -> NutritionEntry:
        stored = await asyncio.to_thread(self._db.create_nutrition_entry, self._user_id, entry)
        if stored is None:
            raise RemoteStoreError(f"Failed to save nutrition entry '{entry.food_name}'")
        return stored

    async def delete_nutrition(self, entry_id: str) -> None:
        if not await asyncio.to_thread(self._db.delete_nutrition_entry, self._user_id, entry_id):
            raise RemoteStoreError(f"Failed to delete nutrition entry {entry_id}")

    async def list_workouts(self, start: date, end: date) -> list[WorkoutRecord]:
        workouts = await asyncio.to_thread(self._db.list_workouts, self._user_id, start, end)
        if workouts is None:
            raise RemoteStoreError(f"Failed to list workouts from {start} to {end}")
        return workouts

    async def create_workout(self, workout: WorkoutRecord) -> WorkoutRecord:
        stored = await asyncio.to_thread(self._db.create_workout, self._user_id, workout)
        if stored is None:
            raise RemoteStoreError(f"Failed to create workout '{workout.name}'")
        return stored

    async def delete_workout(self, workout_id: str) -> None:
        if not await asyncio.to_thread(self._db.delete_workout, self._user_id, workout_id):
            raise RemoteStoreError(f"Failed to delete workout {workout_id}")

    async def get_profile(self) -> UserMetrics | None:
        return await asyncio.to_thread(self._db.get_profile, self._user_id)

    async def save_profile(self, metrics: UserMetrics) -> None:
        if not await asyncio.to_thread(self._db.save_profile, self._user_id, metrics):
            raise RemoteStoreError("Failed to save profile")
