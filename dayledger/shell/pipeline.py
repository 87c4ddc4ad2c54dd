"""Mutation Pipeline - The single path through which ledger state changes.

An updater derives the next snapshot from the current one under a lock, the
snapshot is swapped in, and only then is it written to the local cache and the
remote mirror. The in-memory snapshot is authoritative for the running
session, so persistence failures are logged and otherwise ignored.
"""

import logging
import threading
from typing import Callable, Optional

from ..core.models import Ledger
from ..core.updaters import Updater
from .sync import SyncEngine


logger = logging.getLogger(__name__)


class MutationPipeline:
    """Owns the active ledger snapshot and serializes every change to it."""

    def __init__(self, store: SyncEngine) -> None:
        """Initialize the pipeline.

        Args:
            store: Engine used to write committed snapshots to both stores
        """
        self.store = store
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._snapshot: Optional[Ledger] = None
        self._version = 0
        self._written: dict[str, int] = {}

    @property
    def current(self) -> Optional[Ledger]:
        """The active ledger, or None before the first load and after sign-out."""
        return self._snapshot

    def apply(self, updater: Updater) -> Optional[Ledger]:
        """Commit updater(current) as the new snapshot and persist it.

        Args:
            updater: Pure function from the current ledger to the next

        Returns:
            The committed ledger, or None when there is no active ledger
        """
        with self._lock:
            prev = self._snapshot
            if prev is None:
                logger.warning("Ignoring mutation: no active ledger")
                return None
            nxt = updater(prev)
            if nxt is prev:
                return prev
            self._snapshot = nxt
            self._version += 1
            version = self._version

        self._persist(nxt, version)
        return nxt

    def swap(self, replace: Callable[[Optional[Ledger]], Optional[Ledger]]) -> Optional[Ledger]:
        """Replace the whole active ledger, serialized against apply().

        Args:
            replace: Receives the current snapshot and returns its replacement,
                or None to keep the current one

        Returns:
            The active ledger after the call
        """
        with self._lock:
            prev = self._snapshot
            replacement = replace(prev)
            if replacement is not None:
                self._snapshot = replacement
                self._version += 1
                self._prune_written(prev, replacement)
            return self._snapshot

    def set(self, ledger: Ledger) -> None:
        """Install a freshly loaded ledger as the active one."""
        self.swap(lambda _: ledger)

    def clear(self) -> None:
        """Drop the active ledger."""
        with self._lock:
            prev, self._snapshot = self._snapshot, None
            self._version += 1
            self._prune_written(prev)

    def _prune_written(self, *ledgers: Optional[Ledger]) -> None:
        # Only the outgoing and incoming ledgers can still have writes in flight
        keep = {x.id for x in ledgers if x is not None}
        with self._write_lock:
            self._written = {k: v for k, v in self._written.items() if k in keep}

    def _persist(self, ledger: Ledger, version: int) -> None:
        with self._write_lock:
            # A newer commit for the same ledger may already be on disk
            if version < self._written.get(ledger.id, 0):
                logger.debug("Skipping stale write of %s (v%d)", ledger.id, version)
                return
            self._written[ledger.id] = version
            # one silent retry for the local write
            if not (self.store.save_local(ledger) or self.store.save_local(ledger)):
                logger.warning("Ledger %s kept in memory only; local write failed", ledger.id)
            self.store.save_remote(ledger)
