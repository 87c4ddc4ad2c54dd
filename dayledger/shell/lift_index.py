"""Last-Lift Index - Per-exercise hint of the weight and reps used last time.

Stored in the local cache as one JSON map per user, independent of any day's
ledger. Only completed workout sessions update it.
"""

import json
import logging

from pydantic import TypeAdapter, ValidationError

from ..core.lifts import merge_last_lifts
from ..core.models import LastLift, SessionItem, utcnow
from .local_cache import LocalCache, lifts_key


logger = logging.getLogger(__name__)

_LIFT_MAP = TypeAdapter(dict[str, LastLift])


class LastLiftIndex:
    """Reads and updates the last-lift map for users in the local cache."""

    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    def _load(self, user_id: str) -> dict[str, LastLift]:
        raw = self.cache.get(lifts_key(user_id))
        if not raw:
            return {}
        return _LIFT_MAP.validate_json(raw)

    def record_session(self, user_id: str, items: list[SessionItem]) -> bool:
        """Update the map from a completed session.

        Args:
            user_id: The user's ID
            items: Exercises and sets from the session

        Returns:
            True if the map was written
        """
        try:
            try:
                current = self._load(user_id)
            except ValidationError:
                logger.warning("Resetting unreadable last-lift map for %s", user_id[:8])
                current = {}
            updated = merge_last_lifts(current, items, utcnow())
            payload = {
                name: lift.model_dump(mode="json", by_alias=True)
                for name, lift in updated.items()
            }
            self.cache.set(lifts_key(user_id), json.dumps(payload).encode("utf-8"))
            return True
        except Exception as e:
            logger.error("Failed to update last lifts: %s", str(e))
            return False

    def get_last_lift(self, user_id: str, exercise: str) -> LastLift | None:
        """Last recorded lift for an exercise (trimmed, case-sensitive name).

        Returns:
            LastLift if known, None otherwise or on any read failure
        """
        try:
            return self._load(user_id).get(exercise.strip())
        except Exception as e:
            logger.error("Failed to read last lifts: %s", str(e))
            return None
