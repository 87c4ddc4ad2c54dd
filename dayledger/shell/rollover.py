"""Day Rollover - Swaps the active ledger when the local date changes.

A background thread compares the wall-clock date to the active ledger's date
once per interval. On a mismatch it stops step ingestion, loads the new day,
swaps it in under the pipeline lock and restarts ingestion.
"""

import logging
import threading
from datetime import date
from typing import Callable, Optional

from ..core.models import Ledger
from .pipeline import MutationPipeline
from .sensors import SensorIngestion
from .sync import SyncEngine


logger = logging.getLogger(__name__)


class DayRolloverScheduler:
    """Periodic midnight check for one signed-in user."""

    def __init__(
        self,
        user_id: str,
        pipeline: MutationPipeline,
        engine: SyncEngine,
        ingestion: Optional[SensorIngestion] = None,
        clock: Callable[[], date] = date.today,
        interval: float = 60.0,
    ) -> None:
        self.user_id = user_id
        self.pipeline = pipeline
        self.engine = engine
        self.ingestion = ingestion
        self.clock = clock
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        """Roll the active ledger over if the date has changed.

        Returns:
            True if a new day was swapped in
        """
        today = self.clock()
        current = self.pipeline.current
        if current is None or current.date == today:
            return False

        logger.info("Rolling over %s -> %s for %s", current.date, today, self.user_id[:8])
        if self.ingestion is not None:
            self.ingestion.stop()

        swapped: list[Ledger] = []

        def replace(active: Optional[Ledger]) -> Optional[Ledger]:
            # re-check under the lock: sign-out or another tick may have won
            if active is None or active.date == today:
                return None
            ledger = self.engine.load(self.user_id, today)
            swapped.append(ledger)
            return ledger

        self.pipeline.swap(replace)

        if self.ingestion is not None and self.pipeline.current is not None:
            self.ingestion.start()
        return bool(swapped)

    def start(self) -> None:
        """Start the background check. No-op if already running."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"rollover-{self.user_id[:8]}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the background check and wait for it to exit."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Rollover check failed")
