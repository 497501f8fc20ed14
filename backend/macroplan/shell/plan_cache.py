"""Plan Cache - Week-keyed local storage for weekly plans.

A cache holds serialized plans under string keys. PlanStore owns the key
scheme and the (de)serialization; a corrupt payload reads as a miss.
"""

import logging
import os
import re
from datetime import date
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from ..core.dates import week_key
from ..core.models import WeekPlan
from ..core.planner import is_plan_for_week


logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class PlanCache(Protocol):
    """String key-value storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, payload: str) -> None: ...


class MemoryPlanCache:
    """In-process cache, used when no cache directory is configured."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, payload: str) -> None:
        self._items[key] = payload


class FilePlanCache:
    """One JSON file per key inside a directory."""

    def __init__(self, directory: str | os.PathLike) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, payload: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)


class PlanStore:
    """Loads and saves one user's weekly plans through a PlanCache."""

    def __init__(self, cache: PlanCache, user_id: str) -> None:
        self._cache = cache
        self._user_id = user_id

    def key_for(self, start: date) -> str:
        """Cache key for the week starting at start, scoped to the user."""
        return f"{self._user_id}:{week_key(start)}"

    def load(self, start: date) -> WeekPlan | None:
        """Read the cached plan for a week.

        Returns:
            The plan, or None on a miss or an unreadable payload
        """
        key = self.key_for(start)
        try:
            payload = self._cache.get(key)
            if payload is None:
                logger.info("No cached plan for %s", week_key(start))
                return None
            plan = WeekPlan.model_validate_json(payload)
        except (ValidationError, ValueError, OSError) as e:
            logger.warning("Discarding corrupt cached plan %s: %s", week_key(start), str(e))
            return None

        if not is_plan_for_week(plan, start):
            logger.warning("Cached plan %s does not match its week", week_key(start))
            return None
        return plan

    def save(self, plan: WeekPlan) -> None:
        """Write a plan under its week's key."""
        self._cache.set(self.key_for(plan.week_start), plan.model_dump_json())

