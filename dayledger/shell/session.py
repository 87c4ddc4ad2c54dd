"""Ledger Session - Entry points for one signed-in user's activity ledger.

The session owns the mutation pipeline and wires together loading, step
ingestion, day rollover and the last-lift index. UI code and tools call its
methods; nothing else touches the active ledger.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Optional

from ..core import updaters
from ..core.lifts import calculate_lift_stats
from ..core.models import (
    DailyGoals,
    LastLift,
    Ledger,
    LiftStats,
    Meal,
    NutritionTargets,
    SessionItem,
    TodayProgress,
    Workout,
    WorkoutType,
)
from ..core.totals import calculate_today_progress
from .firestore_client import RemoteMirror
from .lift_index import LastLiftIndex
from .local_cache import LocalCache
from .pipeline import MutationPipeline
from .preferences import PreferenceSource
from .rollover import DayRolloverScheduler
from .sensors import NullStepSensor, SensorIngestion, StepSensor
from .sync import SyncEngine


logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """Runtime settings for a ledger session.

    Attributes:
        user_id: Signed-in user (None when nobody is signed in)
        cache_dir: Directory for the local file cache
        firestore_database: Firestore database name
        project_id: GCP project ID (None for default)
        rollover_interval: Seconds between date-change checks
    """

    user_id: str | None = None
    cache_dir: Path = field(default_factory=lambda: Path("~/.dayledger/cache").expanduser())
    firestore_database: str | None = "dayledger"
    project_id: str | None = None
    rollover_interval: float = 60.0

    @classmethod
    def from_env(cls) -> "SessionConfig":
        return cls(
            user_id=os.environ.get("DAYLEDGER_USER_ID") or None,
            cache_dir=Path(
                os.environ.get("DAYLEDGER_CACHE_DIR", "~/.dayledger/cache")
            ).expanduser(),
            firestore_database=os.environ.get("FIRESTORE_DATABASE", "dayledger"),
            project_id=os.environ.get("GOOGLE_CLOUD_PROJECT") or None,
            rollover_interval=float(os.environ.get("DAYLEDGER_ROLLOVER_INTERVAL", "60")),
        )


class LedgerSession:
    """Activity ledger for one signed-in user on this device."""

    def __init__(
        self,
        user_id: str,
        cache: LocalCache,
        mirror: RemoteMirror,
        sensor: Optional[StepSensor] = None,
        preferences: Optional[PreferenceSource] = None,
        clock: Callable[[], datetime] = datetime.now,
        rollover_interval: float = 60.0,
    ) -> None:
        """Initialize the session. Nothing is loaded until start().

        Args:
            user_id: The signed-in user's ID
            cache: Local cache adapter
            mirror: Remote mirror adapter
            sensor: Device step sensor (None for no sensor)
            preferences: Source of the fitness-sync switch (None means enabled)
            clock: Local wall clock
            rollover_interval: Seconds between date-change checks
        """
        self.user_id = user_id
        self.clock = clock
        self.engine = SyncEngine(cache, mirror)
        self.pipeline = MutationPipeline(self.engine)
        self.lifts = LastLiftIndex(cache)
        self.ingestion = SensorIngestion(
            sensor or NullStepSensor(),
            merge_steps=self.update_steps,
            enabled=lambda: preferences is None or preferences.fitness_sync_enabled(user_id),
            clock=clock,
        )
        self.rollover = DayRolloverScheduler(
            user_id,
            self.pipeline,
            self.engine,
            ingestion=self.ingestion,
            clock=self.today,
            interval=rollover_interval,
        )

    def today(self) -> date:
        return self.clock().date()

    @property
    def ledger(self) -> Optional[Ledger]:
        """The active ledger (read-only snapshot)."""
        return self.pipeline.current

    # ==================== Lifecycle ====================

    def start(self, background: bool = True) -> Ledger:
        """Load today's ledger and start ingestion and rollover checks.

        Args:
            background: Run the rollover thread (tests drive tick() directly)

        Returns:
            The active ledger
        """
        ledger = self.engine.load(self.user_id, self.today())
        self.pipeline.set(ledger)
        self.ingestion.start()
        if background:
            self.rollover.start()
        return ledger

    def sign_out(self) -> None:
        """Stop background work and drop the in-memory ledger."""
        logger.info("Signing out %s", self.user_id[:8])
        self.rollover.stop()
        self.ingestion.stop()
        self.pipeline.clear()

    # ==================== Mutations ====================

    def update_steps(self, steps: int) -> Optional[Ledger]:
        """Record a step count; the stored value only ever increases."""
        return self.pipeline.apply(updaters.update_steps(steps))

    def add_water(self, amount_ml: int) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.add_water(amount_ml))

    def set_sleep_hours(self, hours: float) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.set_sleep_hours(hours))

    def add_meal(self, meal: Meal) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.add_meal(meal))

    def update_meal(self, meal_id: str, updates: dict[str, Any]) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.update_meal(meal_id, updates))

    def remove_meal(self, meal_id: str) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.remove_meal(meal_id))

    def add_workout(self, workout: Workout) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.add_workout(workout))

    def add_workout_session(
        self,
        name: str,
        duration: int,
        calories_burned: float,
        workout_type: WorkoutType,
        started_at: datetime,
        ended_at: datetime,
        items: list[SessionItem],
    ) -> Optional[Ledger]:
        """Log a completed session and refresh the last-lift hints.

        The index is updated only after the workout has been committed.
        """
        workout = updaters.build_session_workout(
            name, duration, calories_burned, workout_type, started_at, ended_at, items
        )
        ledger = self.pipeline.apply(updaters.add_workout(workout))
        if ledger is not None:
            self.lifts.record_session(self.user_id, items)
        return ledger

    def remove_workout(self, workout_id: str) -> Optional[Ledger]:
        return self.pipeline.apply(updaters.remove_workout(workout_id))

    def repeat_meals_from(self, day: date) -> Optional[Ledger]:
        """Copy another day's meals into today's ledger.

        The source day is only read, never created or written.
        """
        source = self.engine.peek(self.user_id, day)
        if source is None or not source.meals:
            logger.info("No meals to repeat from %s", day)
            return self.ledger
        return self.pipeline.apply(updaters.copy_meals(source.meals))

    # ==================== Reads ====================

    def get_today_progress(
        self,
        targets: Optional[NutritionTargets] = None,
        goals: Optional[DailyGoals] = None,
    ) -> TodayProgress:
        return calculate_today_progress(self.ledger, targets or NutritionTargets(), goals)

    def get_last_lift(self, exercise: str) -> Optional[LastLift]:
        return self.lifts.get_last_lift(self.user_id, exercise)

    def peek_day(self, day: date) -> Optional[Ledger]:
        """Read-only view of another day's ledger."""
        return self.engine.peek(self.user_id, day)

    def lift_stats(self) -> dict[str, LiftStats]:
        """Personal bests per exercise from ledgers in the local cache."""
        ledgers = self.engine.cached_ledgers(self.user_id)
        active = self.ledger
        if active is not None:
            ledgers = [x for x in ledgers if x.date != active.date] + [active]
        return calculate_lift_stats(ledgers)
