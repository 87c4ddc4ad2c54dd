"""Synchronization Engine - Loads and persists ledgers across cache and mirror.

Resolution order for a day's ledger is remote, then local cache, then a new
zero-valued ledger. Remote trouble never fails a load; it only means the
local cache answers instead.
"""

import logging
import threading
from concurrent.futures import Future
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from ..core.models import Ledger, Meal, Workout, naive_utc, utcnow
from ..core.updaters import ledger_id, new_ledger, recompute_totals
from .firestore_client import ACTIVITIES, RemoteMirror
from .local_cache import LocalCache, activity_key


logger = logging.getLogger(__name__)

# Derived from meals on every load; never read back from the server
DERIVED_FIELDS = ("totalCalories", "macros", "micros")


# ==================== Codec ====================


def encode_local(ledger: Ledger) -> bytes:
    """Serialize a ledger for the local cache."""
    return ledger.model_dump_json(by_alias=True).encode("utf-8")


def decode_local(raw: bytes) -> Ledger:
    """Parse a cached ledger.

    Raises:
        ValidationError: If the payload is not a valid ledger
    """
    return Ledger.model_validate_json(raw)


def to_document(ledger: Ledger) -> dict[str, Any]:
    """Convert a ledger to a Firestore document (timestamps stay native)."""
    data = ledger.model_dump(by_alias=True)
    # Firestore stores datetimes, not dates
    data["date"] = ledger.date.isoformat()
    return data


def _normalize_time(value: Any) -> Any:
    if isinstance(value, datetime):
        # rebuild as a plain datetime; Firestore hands back a subclass
        return datetime.fromisoformat(naive_utc(value).isoformat())
    if isinstance(value, dict):
        return {k: _normalize_time(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize_time(v) for v in value]
    return value


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _valid_entries(entries: Any, model: type[BaseModel], now: datetime) -> list[dict]:
    if not isinstance(entries, list):
        return []
    kept = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry = {**entry, "timestamp": entry.get("timestamp") or now}
        try:
            model.model_validate(entry)
        except ValidationError as e:
            logger.warning("Dropping unreadable %s entry: %s", model.__name__, str(e))
            continue
        kept.append(entry)
    return kept


def normalize_document(raw: dict[str, Any], user_id: str, day: date) -> dict[str, Any]:
    """Bring a server document to the local representation.

    Server timestamps become naive UTC datetimes and missing timestamps
    default to now. Out-of-range counters are clamped, sleepHours to
    [0, 24] (non-numeric becomes 0), and meal or workout entries that do not
    validate are dropped. Derived totals are removed so they can be
    recomputed from the meals.
    """
    data = _normalize_time(raw)
    now = utcnow()

    data.setdefault("id", ledger_id(user_id, day))
    data.setdefault("userId", user_id)
    data.setdefault("date", day.isoformat())
    if data.get("createdAt") is None:
        data["createdAt"] = now

    sleep = _number(data.get("sleepHours"))
    data["sleepHours"] = 0 if sleep is None else max(0, min(24, sleep))
    for field in ("steps", "waterIntake"):
        if field in data:
            count = _number(data[field])
            data[field] = 0 if count is None else max(0, int(count))

    data["workouts"] = _valid_entries(data.get("workouts"), Workout, now)
    data["meals"] = _valid_entries(data.get("meals"), Meal, now)
    for field in DERIVED_FIELDS:
        data.pop(field, None)
    return data


# ==================== Engine ====================


class SyncEngine:
    """Loads ledgers on demand and writes them through to both stores.

    Loads are serialized per (user, date): a second caller for a key that is
    already loading waits for the first and receives the same ledger.

    A ledger whose remote document exists but cannot be read is kept
    local-only until a later load reads the document successfully, so the
    server copy is never overwritten by a ledger built without it.
    """

    def __init__(
        self,
        cache: LocalCache,
        mirror: RemoteMirror,
        collection: str = ACTIVITIES,
    ) -> None:
        """Initialize the engine.

        Args:
            cache: Local cache adapter
            mirror: Remote mirror adapter
            collection: Remote collection holding ledgers
        """
        self.cache = cache
        self.mirror = mirror
        self.collection = collection
        self._guard = threading.Lock()
        self._in_flight: dict[str, Future] = {}
        self._local_only: set[str] = set()

    def load(self, user_id: str, day: date) -> Ledger:
        """Resolve the ledger for a user's day: remote, then local, then new.

        Args:
            user_id: The user's ID
            day: Calendar date

        Returns:
            The ledger; never raises for store failures
        """
        key = activity_key(user_id, day.isoformat())
        with self._guard:
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            logger.debug("Waiting on in-flight load for %s", key)
            return future.result()

        try:
            ledger = self._resolve(user_id, day)
            future.set_result(ledger)
            return ledger
        except BaseException as e:
            future.set_exception(e)
            raise
        finally:
            with self._guard:
                self._in_flight.pop(key, None)

    def peek(self, user_id: str, day: date) -> Ledger | None:
        """Read a day's ledger without creating or writing anything.

        Returns:
            Ledger from remote or local cache, None if neither has it
        """
        raw = self._get_remote(user_id, day)
        remote = self._parse_remote(raw, user_id, day) if raw else None
        if remote is not None:
            return remote
        return self._read_local(user_id, day)

    def _resolve(self, user_id: str, day: date) -> Ledger:
        raw = self._get_remote(user_id, day)
        remote = self._parse_remote(raw, user_id, day) if raw else None
        doc_id = ledger_id(user_id, day)
        with self._guard:
            if raw and remote is None:
                self._local_only.add(doc_id)
            elif remote is not None:
                self._local_only.discard(doc_id)

        if remote is not None:
            logger.info("Loaded %s for %s from remote", day, user_id[:8])
            self.save_local(remote)
            return remote

        local = self._read_local(user_id, day)
        if local is not None:
            logger.info("Loaded %s for %s from local cache", day, user_id[:8])
            return local

        logger.info("Creating new ledger %s for %s", day, user_id[:8])
        ledger = new_ledger(user_id, day)
        self.save_remote(ledger)
        self.save_local(ledger)
        return ledger

    def _get_remote(self, user_id: str, day: date) -> dict[str, Any] | None:
        try:
            return self.mirror.get(self.collection, ledger_id(user_id, day))
        except Exception as e:
            logger.warning("Remote fetch failed for %s: %s", day, str(e))
            return None

    def _parse_remote(self, raw: dict[str, Any], user_id: str, day: date) -> Ledger | None:
        try:
            ledger = Ledger.model_validate(normalize_document(raw, user_id, day))
        except ValidationError as e:
            logger.warning("Unreadable remote ledger for %s: %s", day, str(e))
            return None
        return recompute_totals(ledger)

    def _read_local(self, user_id: str, day: date) -> Ledger | None:
        key = activity_key(user_id, day.isoformat())
        try:
            raw = self.cache.get(key)
        except Exception as e:
            logger.warning("Local read failed for %s: %s", key, str(e))
            return None
        if not raw:
            return None
        try:
            return decode_local(raw)
        except ValueError as e:
            # ValidationError subclasses ValueError
            logger.warning("Treating corrupt cache entry %s as missing: %s", key, str(e))
            return None

    def save_local(self, ledger: Ledger) -> bool:
        """Write a ledger to the local cache. Failures are logged, not raised."""
        key = activity_key(ledger.user_id, ledger.date.isoformat())
        try:
            self.cache.set(key, encode_local(ledger))
            return True
        except Exception as e:
            logger.warning("Local write failed for %s: %s", key, str(e))
            return False

    def save_remote(self, ledger: Ledger) -> bool:
        """Upsert a ledger to the remote mirror. Failures are logged, not raised.

        Every top-level field is replaced whole, so keys removed from nested
        maps such as micros do not linger on the server. Fields written by
        other clients are left alone.
        """
        with self._guard:
            if ledger.id in self._local_only:
                logger.warning("Not mirroring %s: remote copy is unreadable", ledger.id)
                return False
        doc = to_document(ledger)
        try:
            return bool(self.mirror.upsert(
                self.collection, ledger.id, doc, merge=list(doc)
            ))
        except Exception as e:
            logger.warning("Remote upsert failed for %s: %s", ledger.id, str(e))
            return False

    def cached_ledgers(self, user_id: str) -> list[Ledger]:
        """All ledgers for a user found in the local cache, oldest first."""
        prefix = activity_key(user_id, "")
        try:
            keys = self.cache.keys(prefix)
        except Exception as e:
            logger.warning("Listing cache keys failed: %s", str(e))
            return []
        ledgers = []
        for key in keys:
            raw = self.cache.get(key)
            if not raw:
                continue
            try:
                ledgers.append(decode_local(raw))
            except ValueError:
                logger.debug("Skipping corrupt cache entry %s", key)
        return sorted(ledgers, key=lambda x: x.date)
