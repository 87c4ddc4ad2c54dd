"""Shared fixtures: in-memory stand-ins for the cache, mirror, sensor and clock."""

import copy
from datetime import date, datetime

import pytest

from dayledger.shell.pipeline import MutationPipeline
from dayledger.shell.session import LedgerSession
from dayledger.shell.sync import SyncEngine


USER = "user-1234567890"


def _deep_merge(target, updates):
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            target[key] = _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class FakeCache:
    """Dict-backed local cache."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.fail_writes = False
        self.writes = 0

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.data[key] = value

    def keys(self, prefix=""):
        return sorted(k for k in self.data if k.startswith(prefix))


class FakeMirror:
    """Dict-backed remote mirror with Firestore merge semantics."""

    def __init__(self):
        self.docs: dict[tuple[str, str], dict] = {}
        self.offline = False
        self.upserts: list[tuple[str, str, dict, object]] = []
        self.gets = 0

    def get(self, collection, doc_id):
        self.gets += 1
        if self.offline:
            raise ConnectionError("offline")
        doc = self.docs.get((collection, doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    def upsert(self, collection, doc_id, doc, merge=True):
        """Write like Firestore's set(): merge=True deep-merges nested maps,
        a list of field names replaces just those fields, False replaces all."""
        if self.offline:
            raise ConnectionError("offline")
        self.upserts.append((collection, doc_id, doc, merge))
        existing = copy.deepcopy(self.docs.get((collection, doc_id), {}))
        if merge is True:
            self.docs[(collection, doc_id)] = _deep_merge(existing, doc)
        elif merge:
            self.docs[(collection, doc_id)] = {
                **existing, **{name: copy.deepcopy(doc[name]) for name in merge}
            }
        else:
            self.docs[(collection, doc_id)] = copy.deepcopy(doc)
        return True


class FakeSensor:
    """Pedometer that emits counts on demand."""

    def __init__(self, available=True, since_midnight=0):
        self.available = available
        self.since_midnight = since_midnight
        self.callback = None
        self.unsubscribes = 0
        self.queries: list[datetime] = []

    def is_available(self):
        return self.available

    def query_steps_since(self, start):
        self.queries.append(start)
        return self.since_midnight

    def subscribe(self, callback):
        self.callback = callback

        def unsubscribe():
            self.unsubscribes += 1
            self.callback = None
        return unsubscribe

    def emit(self, steps):
        if self.callback is not None:
            self.callback(steps)


class FakeClock:
    """Settable local wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def today(self) -> date:
        return self.now.date()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def mirror():
    return FakeMirror()


@pytest.fixture
def sensor():
    return FakeSensor()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 9, 30))


@pytest.fixture
def engine(cache, mirror):
    return SyncEngine(cache, mirror)


@pytest.fixture
def pipeline(engine):
    """Pipeline with the 2024-01-01 ledger active."""
    pipe = MutationPipeline(engine)
    pipe.set(engine.load(USER, date(2024, 1, 1)))
    return pipe


@pytest.fixture
def session(cache, mirror, sensor, clock):
    """Started session without the background rollover thread."""
    s = LedgerSession(USER, cache, mirror, sensor=sensor, clock=clock)
    s.start(background=False)
    yield s
    s.sign_out()
