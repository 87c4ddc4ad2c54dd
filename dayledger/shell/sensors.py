"""Sensor Ingestion - Merges device step counts into the active ledger.

Two sources feed the same monotonic-max merge: a live subscription and a
catch-up query for steps since local midnight. Neither writes the ledger
directly; both hand counts to a merge callback that goes through the
mutation pipeline.
"""

import logging
import threading
from datetime import datetime, time
from typing import Callable, Optional, Protocol


logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class StepSensor(Protocol):
    """Device pedometer interface."""

    def is_available(self) -> bool: ...

    def query_steps_since(self, start: datetime) -> int: ...

    def subscribe(self, callback: Callable[[int], None]) -> Unsubscribe: ...


class NullStepSensor:
    """Sensor for platforms without a pedometer."""

    def is_available(self) -> bool:
        return False

    def query_steps_since(self, start: datetime) -> int:
        return 0

    def subscribe(self, callback: Callable[[int], None]) -> Unsubscribe:
        return lambda: None


def local_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)


class SensorIngestion:
    """Starts and stops step ingestion for the active ledger."""

    def __init__(
        self,
        sensor: StepSensor,
        merge_steps: Callable[[int], object],
        enabled: Callable[[], bool] = lambda: True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize ingestion.

        Args:
            sensor: Device step sensor
            merge_steps: Receives step counts; must apply the max-merge
            enabled: Returns whether the user allows fitness-sensor sync
            clock: Local wall clock
        """
        self.sensor = sensor
        self.merge_steps = merge_steps
        self.enabled = enabled
        self.clock = clock
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> bool:
        """Subscribe to live counts and catch up on steps since midnight.

        Returns:
            True if ingestion is running
        """
        with self._lock:
            if self._unsubscribe is not None:
                return True
            try:
                if not self.enabled():
                    logger.info("Step ingestion disabled by user preference")
                    return False
                if not self.sensor.is_available():
                    logger.info("No step sensor available")
                    return False
                self._unsubscribe = self.sensor.subscribe(self._on_steps)
            except Exception as e:
                logger.warning("Failed to start step sensor: %s", str(e))
                return False

        self.catch_up()
        return True

    def catch_up(self) -> None:
        """Merge the total step count since local midnight."""
        try:
            steps = self.sensor.query_steps_since(local_midnight(self.clock()))
        except Exception as e:
            logger.warning("Step catch-up query failed: %s", str(e))
            return
        self._on_steps(steps)

    def stop(self) -> None:
        """Cancel the live subscription. Safe to call repeatedly."""
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception as e:
            logger.warning("Failed to unsubscribe step sensor: %s", str(e))

    def _on_steps(self, steps: int) -> None:
        if steps is None or steps < 0:
            return
        try:
            self.merge_steps(int(steps))
        except Exception as e:
            logger.error("Failed to merge step count: %s", str(e))
