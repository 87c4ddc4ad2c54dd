"""Ledger Updaters - Pure functions that derive the next ledger snapshot.

Each builder returns an ``Updater``: a function from the current ledger to
the next one. Updaters never mutate their input and never perform I/O; the
mutation pipeline applies them and persists the result.
"""

import re
from datetime import date, datetime
from typing import Any, Callable, Optional

from .models import (
    Ledger,
    Macros,
    Meal,
    SessionItem,
    Workout,
    WorkoutDetails,
    WorkoutType,
    naive_utc,
    next_entry_id,
    utcnow,
)
from .totals import calculate_meal_totals


Updater = Callable[[Ledger], Ledger]

_REPS_RE = re.compile(r"(\d+)")


def ledger_id(user_id: str, day: date) -> str:
    """Remote document id for a user's day."""
    return f"{user_id}_{day.isoformat()}"


def new_ledger(user_id: str, day: date) -> Ledger:
    """A zero-valued ledger for a user's day."""
    return Ledger(id=ledger_id(user_id, day), user_id=user_id, date=day)


def parse_reps(reps: Optional[str]) -> Optional[int]:
    """First integer in a free-text rep count ("8-10" -> 8), or None."""
    if not reps:
        return None
    match = _REPS_RE.search(str(reps))
    return int(match.group(1)) if match else None


def _with_meals(ledger: Ledger, meals: list[Meal]) -> Ledger:
    total_calories, macros, micros = calculate_meal_totals(meals)
    return ledger.model_copy(update={
        "meals": meals,
        "total_calories": total_calories,
        "macros": macros,
        "micros": micros,
    })


def recompute_totals(ledger: Ledger) -> Ledger:
    """Rederive total calories, macros and micros from the ledger's meals."""
    return _with_meals(ledger, list(ledger.meals))


# ==================== Activity ====================


def update_steps(steps: int) -> Updater:
    """Monotonic-max merge of a step count."""
    def apply(ledger: Ledger) -> Ledger:
        merged = max(ledger.steps, int(steps))
        if merged == ledger.steps:
            return ledger
        return ledger.model_copy(update={"steps": merged})
    return apply


def add_water(amount_ml: int) -> Updater:
    """Accumulate water intake. Non-positive amounts are ignored."""
    def apply(ledger: Ledger) -> Ledger:
        if amount_ml <= 0:
            return ledger
        return ledger.model_copy(update={"water_intake": ledger.water_intake + int(amount_ml)})
    return apply


def set_sleep_hours(hours: float) -> Updater:
    """Last-write-wins sleep entry, clamped to [0, 24] at one decimal."""
    clamped = round(max(0.0, min(24.0, float(hours))), 1)

    def apply(ledger: Ledger) -> Ledger:
        return ledger.model_copy(update={"sleep_hours": clamped})
    return apply


# ==================== Meals ====================


def add_meal(meal: Meal) -> Updater:
    def apply(ledger: Ledger) -> Ledger:
        return _with_meals(ledger, [*ledger.meals, meal])
    return apply


def update_meal(meal_id: str, updates: dict[str, Any]) -> Updater:
    """Patch a meal by id. Macros merge field by field; id and timestamp are fixed.

    Unknown ids leave the ledger unchanged.
    """
    patch = {k: v for k, v in updates.items() if k not in ("id", "timestamp")}

    def apply(ledger: Ledger) -> Ledger:
        meals = []
        found = False
        for meal in ledger.meals:
            if meal.id != meal_id:
                meals.append(meal)
                continue
            found = True
            data = meal.model_dump()
            macros_patch = patch.get("macros")
            data.update(patch)
            if macros_patch is not None:
                if isinstance(macros_patch, Macros):
                    macros_patch = macros_patch.model_dump(exclude_unset=True)
                data["macros"] = {**meal.macros.model_dump(), **macros_patch}
            meals.append(Meal.model_validate(data))
        if not found:
            return ledger
        return _with_meals(ledger, meals)
    return apply


def remove_meal(meal_id: str) -> Updater:
    def apply(ledger: Ledger) -> Ledger:
        meals = [m for m in ledger.meals if m.id != meal_id]
        if len(meals) == len(ledger.meals):
            return ledger
        return _with_meals(ledger, meals)
    return apply


def copy_meals(meals: list[Meal]) -> Updater:
    """Append copies of meals from another day under fresh ids and timestamps."""
    now = utcnow()
    copies = [m.model_copy(update={"id": next_entry_id(), "timestamp": now}) for m in meals]

    def apply(ledger: Ledger) -> Ledger:
        if not copies:
            return ledger
        return _with_meals(ledger, [*ledger.meals, *copies])
    return apply


# ==================== Workouts ====================


def add_workout(workout: Workout) -> Updater:
    def apply(ledger: Ledger) -> Ledger:
        return ledger.model_copy(update={"workouts": [*ledger.workouts, workout]})
    return apply


def build_session_workout(
    name: str,
    duration: int,
    calories_burned: float,
    workout_type: WorkoutType,
    started_at: datetime,
    ended_at: datetime,
    items: list[SessionItem],
) -> Workout:
    """Build a workout record from a completed session, counting sets and reps."""
    total_sets = sum(len(item.sets) for item in items)
    reps = [parse_reps(s.reps) for item in items for s in item.sets]
    counted = [r for r in reps if r is not None]

    return Workout(
        name=name,
        duration=duration,
        calories_burned=calories_burned,
        type=workout_type,
        details=WorkoutDetails(
            started_at=naive_utc(started_at),
            ended_at=naive_utc(ended_at),
            total_sets=total_sets,
            total_reps=sum(counted) if counted else None,
            items=items,
        ),
    )


def remove_workout(workout_id: str) -> Updater:
    def apply(ledger: Ledger) -> Ledger:
        workouts = [w for w in ledger.workouts if w.id != workout_id]
        if len(workouts) == len(ledger.workouts):
            return ledger
        return ledger.model_copy(update={"workouts": workouts})
    return apply
