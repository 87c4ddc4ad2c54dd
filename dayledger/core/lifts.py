"""Lift Calculations - Pure functions over workout sessions.

Covers the last-lift hint map and per-exercise personal-best history.
"""

from datetime import datetime
from typing import Optional

from .models import LastLift, Ledger, LiftSample, LiftStats, SessionItem, TopSet
from .updaters import parse_reps


MAX_SAMPLES = 50


def merge_last_lifts(
    current: dict[str, LastLift],
    items: list[SessionItem],
    now: datetime,
) -> dict[str, LastLift]:
    """Return a new last-lift map updated with a completed session.

    For each exercise, the last set carrying a weight or a rep count
    overwrites the stored entry. Exercise names are trimmed and matched
    exactly; sets with neither value are skipped.

    Args:
        current: Existing map of exercise name to last lift
        items: Exercises performed in the session
        now: Timestamp recorded on updated entries

    Returns:
        Updated copy of the map
    """
    updated = dict(current)
    for item in items:
        name = item.exercise.strip()
        if not name:
            continue
        last_set = next(
            (s for s in reversed(item.sets) if s.weight is not None or s.reps is not None),
            None,
        )
        if last_set is not None:
            updated[name] = LastLift(weight=last_set.weight, reps=last_set.reps, updated_at=now)
    return updated


def estimate_one_rep_max(weight: Optional[float], reps: Optional[int]) -> Optional[int]:
    """Epley estimate: weight * (1 + reps / 30). Singles return the weight."""
    if not weight:
        return None
    if not reps or reps <= 1:
        return round(weight)
    return round(weight * (1 + reps / 30))


def calculate_lift_stats(ledgers: list[Ledger]) -> dict[str, LiftStats]:
    """Aggregate personal bests and daily volume per exercise.

    Only sets with both a weight and a parseable rep count contribute.

    Args:
        ledgers: Ledgers in any order

    Returns:
        Map of exercise name to LiftStats, samples sorted by date
    """
    pb_weight: dict[str, float] = {}
    pb_1rm: dict[str, int] = {}
    best_volume: dict[str, int] = {}
    samples: dict[str, list[LiftSample]] = {}

    for ledger in sorted(ledgers, key=lambda x: x.date):
        for workout in ledger.workouts:
            if workout.details is None:
                continue
            for item in workout.details.items:
                name = item.exercise.strip()
                if not name:
                    continue
                samples.setdefault(name, [])

                volume = 0.0
                top_1rm: Optional[int] = None
                top_set: Optional[TopSet] = None
                for s in item.sets:
                    reps = parse_reps(s.reps)
                    if s.weight is None or reps is None:
                        continue
                    volume += s.weight * reps
                    est = estimate_one_rep_max(s.weight, reps)
                    if est is not None and (top_1rm is None or est > top_1rm):
                        top_1rm = est
                        top_set = TopSet(weight=s.weight, reps=reps)
                    if s.weight > pb_weight.get(name, -1):
                        pb_weight[name] = s.weight
                    if est is not None and est > pb_1rm.get(name, -1):
                        pb_1rm[name] = est

                if volume > 0:
                    samples[name].append(LiftSample(
                        date=ledger.date,
                        volume=round(volume),
                        est_1rm=top_1rm,
                        top_set=top_set,
                    ))
                    best_volume[name] = max(best_volume.get(name, 0), round(volume))

    return {
        name: LiftStats(
            name=name,
            pb_weight=pb_weight.get(name),
            pb_1rm=pb_1rm.get(name),
            best_volume=best_volume.get(name),
            samples=entries[-MAX_SAMPLES:],
        )
        for name, entries in samples.items()
    }
