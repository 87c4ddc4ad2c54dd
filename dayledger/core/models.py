"""Core Data Models - Pydantic models for the daily activity ledger.

All models are immutable value objects with no behavior beyond validation.
Attributes are snake_case in Python and serialize to the camelCase field
names used by the stored ledger documents.
"""

import threading
import time
from datetime import datetime, timezone
from datetime import date as DateType
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


_id_lock = threading.Lock()
_last_id = 0


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are returned as-is."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def next_entry_id() -> str:
    """Return a millisecond-derived id, strictly increasing within the process."""
    global _last_id
    with _id_lock:
        _last_id = max(time.time_ns() // 1_000_000, _last_id + 1)
        return str(_last_id)


class Document(BaseModel):
    """Base for stored shapes: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class WorkoutType(str, Enum):
    CARDIO = "cardio"
    STRENGTH = "strength"
    FLEXIBILITY = "flexibility"
    SPORTS = "sports"
    OTHER = "other"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class SetType(str, Enum):
    NORMAL = "normal"
    SUPERSET = "superset"
    DROPSET = "dropset"
    PYRAMID = "pyramid"
    AMRAP = "amrap"
    TIMED = "timed"


class Macros(Document):
    """Macronutrient amounts in grams."""

    protein: float = Field(default=0, ge=0)
    carbs: float = Field(default=0, ge=0)
    fat: float = Field(default=0, ge=0)


class WorkoutSet(Document):
    """One set inside a session item. Reps is free text ("8", "8-10")."""

    reps: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0)
    rest_sec: Optional[int] = Field(default=None, ge=0)
    type: SetType = SetType.NORMAL
    completed_at: Optional[datetime] = None


class SessionItem(Document):
    """An exercise performed during a session with its sets."""

    exercise: str
    group_id: Optional[str] = None
    sets: list[WorkoutSet] = Field(default_factory=list)


class WorkoutDetails(Document):
    """Structured record of a completed workout session."""

    started_at: datetime
    ended_at: datetime
    total_sets: int = Field(default=0, ge=0)
    total_reps: Optional[int] = Field(default=None, ge=0)
    items: list[SessionItem] = Field(default_factory=list)


class Workout(Document):
    """A workout logged for the day."""

    id: str = Field(default_factory=next_entry_id)
    name: str = Field(min_length=1)
    duration: int = Field(default=0, ge=0, description="Minutes")
    calories_burned: float = Field(default=0, ge=0)
    type: WorkoutType = WorkoutType.OTHER
    timestamp: datetime = Field(default_factory=utcnow)
    details: Optional[WorkoutDetails] = None


class Meal(Document):
    """A meal logged for the day."""

    id: str = Field(default_factory=next_entry_id)
    name: str = ""
    calories: float = Field(ge=0)
    macros: Macros = Field(default_factory=Macros)
    micros: dict[str, float] = Field(default_factory=dict, description="Sparse, open-ended keys")
    type: MealType = MealType.SNACK
    timestamp: datetime = Field(default_factory=utcnow)
    image_url: Optional[str] = None


class Ledger(Document):
    """One user's aggregated activity for one calendar date.

    total_calories, macros and micros are derived from meals and must only
    change together with the meal list.
    """

    id: str
    user_id: str = Field(min_length=1)
    date: DateType
    steps: int = Field(default=0, ge=0)
    water_intake: int = Field(default=0, ge=0, description="Milliliters")
    sleep_hours: float = Field(default=0, ge=0, le=24)
    workouts: list[Workout] = Field(default_factory=list)
    meals: list[Meal] = Field(default_factory=list)
    total_calories: float = Field(default=0, ge=0)
    macros: Macros = Field(default_factory=Macros)
    micros: dict[str, float] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class NutritionTargets(Document):
    """Per-user daily nutrition targets used for progress display."""

    daily_calories: int = Field(default=2000, ge=0)
    macros: Macros = Field(default_factory=Macros)
    micros: dict[str, float] = Field(default_factory=dict)


class DailyGoals(Document):
    """Activity goals for steps and water."""

    steps_goal: int = Field(default=8000, ge=0)
    water_goal_ml: int = Field(default=2000, ge=0)


class Integrations(Document):
    """Device integration switches owned by the settings screen."""

    fitness_sync: bool = True


class TodayProgress(Document):
    """Consumed/remaining calories and percent-of-target figures."""

    calories_consumed: float
    calories_remaining: int
    macros_progress: Macros
    micros_progress: dict[str, float] = Field(default_factory=dict)
    steps: int = 0
    steps_progress: float = 0
    water_intake: int = 0
    water_progress: float = 0


class LastLift(Document):
    """Most recent weight/reps recorded for an exercise."""

    weight: Optional[float] = None
    reps: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class TopSet(Document):
    weight: float
    reps: int


class LiftSample(Document):
    """One day's work on a lift."""

    date: DateType
    volume: int
    est_1rm: Optional[int] = Field(default=None, alias="est1RM")
    top_set: Optional[TopSet] = None


class LiftStats(Document):
    """Personal bests and recent history for an exercise."""

    name: str
    pb_weight: Optional[float] = None
    pb_1rm: Optional[int] = Field(default=None, alias="pb1RM")
    best_volume: Optional[int] = None
    samples: list[LiftSample] = Field(default_factory=list)
