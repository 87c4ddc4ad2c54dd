"""Preferences - User settings the ledger core reads from the local cache.

Integration switches, nutrition targets and daily goals are each stored as a
small JSON blob per user. Reads fall back to defaults when nothing is stored
or the stored value cannot be parsed.
"""

import logging
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.models import DailyGoals, Integrations, NutritionTargets
from .local_cache import LocalCache, settings_key


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class PreferenceSource(Protocol):
    """Read-only preference lookup owned by the settings subsystem."""

    def fitness_sync_enabled(self, user_id: str) -> bool: ...


class LocalPreferences:
    """Preference source and settings store backed by the local cache."""

    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    def _read(self, kind: str, user_id: str, model: type[T]) -> T:
        try:
            raw = self.cache.get(settings_key(kind, user_id))
            if raw:
                return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unreadable %s settings", kind)
        except Exception as e:
            logger.error("Failed to read %s settings: %s", kind, str(e))
        return model()

    def _write(self, kind: str, user_id: str, value: BaseModel) -> bool:
        try:
            self.cache.set(
                settings_key(kind, user_id),
                value.model_dump_json(by_alias=True).encode("utf-8"),
            )
            return True
        except Exception as e:
            logger.error("Failed to save %s settings: %s", kind, str(e))
            return False

    def fitness_sync_enabled(self, user_id: str) -> bool:
        return self.get_integrations(user_id).fitness_sync

    def get_integrations(self, user_id: str) -> Integrations:
        return self._read("integrations", user_id, Integrations)

    def set_integrations(self, user_id: str, integrations: Integrations) -> bool:
        return self._write("integrations", user_id, integrations)

    def get_targets(self, user_id: str) -> NutritionTargets:
        return self._read("targets", user_id, NutritionTargets)

    def set_targets(self, user_id: str, targets: NutritionTargets) -> bool:
        return self._write("targets", user_id, targets)

    def get_goals(self, user_id: str) -> DailyGoals:
        return self._read("goals", user_id, DailyGoals)

    def set_goals(self, user_id: str, goals: DailyGoals) -> bool:
        return self._write("goals", user_id, goals)
