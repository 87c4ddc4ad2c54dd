"""MCP Server - Tool definitions for the activity ledger.

Exposes the signed-in user's ledger operations as MCP tools. The session is
created lazily from environment configuration on first use.
"""

import logging
from datetime import date, datetime
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from ..core.models import (
    DailyGoals,
    Ledger,
    Macros,
    Meal,
    MealType,
    NutritionTargets,
    SessionItem,
    Workout,
    WorkoutType,
    naive_utc,
)
from ..core.totals import calculate_calories_from_macros
from .firestore_client import ActivityFirestoreClient, FirestoreConfig
from .local_cache import FileCache
from .preferences import LocalPreferences
from .session import LedgerSession, SessionConfig


logger = logging.getLogger(__name__)

mcp = FastMCP(
    "dayledger",
    instructions="""DayLedger - Daily activity and nutrition ledger.

Use these tools to log meals, water, sleep, steps and workouts for today,
and to show the user how today compares to their targets.

After logging, show the updated progress from get_today.
Before a strength session, call get_last_lift for each exercise to suggest
the weight and reps used last time.""",
    stateless_http=True,
)

# Lazy-initialized session state
_config: SessionConfig | None = None
_session: LedgerSession | None = None
_preferences: LocalPreferences | None = None


def get_config() -> SessionConfig:
    global _config
    if _config is None:
        _config = SessionConfig.from_env()
    return _config


def get_preferences() -> LocalPreferences:
    """Get or create the settings store."""
    global _preferences
    if _preferences is None:
        _preferences = LocalPreferences(FileCache(get_config().cache_dir))
    return _preferences


def get_session() -> LedgerSession:
    """Get or start the signed-in user's session.

    Raises:
        RuntimeError: If no user is signed in
    """
    global _session
    if _session is None:
        config = get_config()
        if not config.user_id:
            raise RuntimeError("No signed-in user. Set DAYLEDGER_USER_ID.")
        mirror = ActivityFirestoreClient(FirestoreConfig(
            project_id=config.project_id,
            database=config.firestore_database,
        ))
        session = LedgerSession(
            config.user_id,
            FileCache(config.cache_dir),
            mirror,
            preferences=get_preferences(),
            rollover_interval=config.rollover_interval,
        )
        session.start()
        _session = session
    return _session


def close_session() -> None:
    """Sign out the active session, if any."""
    global _session
    if _session is not None:
        _session.sign_out()
        _session = None


def _progress(session: LedgerSession) -> dict[str, Any]:
    prefs = get_preferences()
    progress = session.get_today_progress(
        prefs.get_targets(session.user_id), prefs.get_goals(session.user_id)
    )
    return progress.model_dump(mode="json")


def _ledger_view(ledger: Ledger | None) -> dict[str, Any] | None:
    if ledger is None:
        return None
    return ledger.model_dump(mode="json", by_alias=True)


# ==================== Query Tools ====================


@mcp.tool()
def get_today() -> dict:
    """Get today's ledger with progress against targets.

    Returns:
        Dictionary with the ledger and progress figures
    """
    session = get_session()
    return {
        "ledger": _ledger_view(session.ledger),
        "progress": _progress(session),
    }


@mcp.tool()
def get_day(date_str: str) -> dict:
    """Get another day's ledger without changing it.

    Args:
        date_str: Date in YYYY-MM-DD format

    Returns:
        The ledger for that day, or an error if none exists
    """
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return {"error": "Invalid date format. Use YYYY-MM-DD."}

    ledger = get_session().peek_day(day)
    if ledger is None:
        return {"error": f"Nothing logged on {date_str}."}
    return {"ledger": _ledger_view(ledger)}


@mcp.tool()
def get_last_lift(exercise: str) -> dict:
    """Get the weight and reps last used for an exercise.

    Args:
        exercise: Exercise name, exactly as logged (e.g., "Back Squat")
    """
    lift = get_session().get_last_lift(exercise)
    if lift is None:
        return {"exercise": exercise, "last_lift": None}
    return {"exercise": exercise, "last_lift": lift.model_dump(mode="json")}


@mcp.tool()
def get_lift_stats() -> list[dict]:
    """Get personal bests and recent volume for every logged exercise."""
    stats = get_session().lift_stats()
    return [s.model_dump(mode="json") for s in stats.values()]


# ==================== Meal Tools ====================


@mcp.tool()
def log_meal(
    name: str,
    meal_type: str = "snack",
    calories: float | None = None,
    protein: float = 0,
    carbs: float = 0,
    fat: float = 0,
    micros: dict[str, float] | None = None,
) -> dict:
    """Add a meal to today's ledger.

    Args:
        name: Name of the meal (e.g., "Chicken salad")
        meal_type: breakfast, lunch, dinner or snack
        calories: Total calories; estimated from macros when omitted
        protein: Protein in grams
        carbs: Carbohydrates in grams
        fat: Fat in grams
        micros: Optional micronutrients (e.g., {"fiber": 6, "sodium": 420})

    Returns:
        The created meal and updated progress
    """
    if calories is None:
        calories = calculate_calories_from_macros(protein, carbs, fat)
    try:
        meal = Meal(
            name=name,
            calories=calories,
            macros=Macros(protein=protein, carbs=carbs, fat=fat),
            micros=micros or {},
            type=MealType(meal_type),
        )
    except (ValueError, ValidationError) as e:
        return {"error": f"Invalid meal: {e}"}

    session = get_session()
    if session.add_meal(meal) is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"meal": meal.model_dump(mode="json"), "progress": _progress(session)}


@mcp.tool()
def update_meal(
    meal_id: str,
    name: str | None = None,
    calories: float | None = None,
    protein: float | None = None,
    carbs: float | None = None,
    fat: float | None = None,
    meal_type: str | None = None,
) -> dict:
    """Update a meal in today's ledger. Only provided fields are updated.

    Args:
        meal_id: The ID of the meal to update
        name: New name (optional)
        calories: New calorie count (optional)
        protein: New protein value (optional)
        carbs: New carbs value (optional)
        fat: New fat value (optional)
        meal_type: New meal type (optional)
    """
    updates: dict[str, Any] = {}
    if name is not None:
        updates["name"] = name
    if calories is not None:
        updates["calories"] = calories
    if meal_type is not None:
        updates["type"] = meal_type
    macros = {k: v for k, v in (("protein", protein), ("carbs", carbs), ("fat", fat)) if v is not None}
    if macros:
        updates["macros"] = macros

    if not updates:
        return {"error": "No updates provided."}

    session = get_session()
    try:
        ledger = session.update_meal(meal_id, updates)
    except ValidationError as e:
        return {"error": f"Invalid update: {e}"}
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}

    meal = next((m for m in ledger.meals if m.id == meal_id), None)
    if meal is None:
        return {"error": "Meal not found."}
    return {"meal": meal.model_dump(mode="json"), "progress": _progress(session)}


@mcp.tool()
def delete_meal(meal_id: str) -> dict:
    """Remove a meal from today's ledger.

    Args:
        meal_id: The ID of the meal to remove
    """
    session = get_session()
    ledger = session.remove_meal(meal_id)
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {
        "success": True,
        "meals_remaining": len(ledger.meals),
        "progress": _progress(session),
    }


@mcp.tool()
def repeat_meals(date_str: str) -> dict:
    """Copy all meals from another day into today's ledger.

    Args:
        date_str: Source date in YYYY-MM-DD format (e.g., yesterday)
    """
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return {"error": "Invalid date format. Use YYYY-MM-DD."}

    session = get_session()
    before = len(session.ledger.meals) if session.ledger else 0
    ledger = session.repeat_meals_from(day)
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"meals_added": len(ledger.meals) - before, "progress": _progress(session)}


# ==================== Activity Tools ====================


@mcp.tool()
def log_water(amount_ml: int) -> dict:
    """Add water to today's intake.

    Args:
        amount_ml: Milliliters to add (e.g., 250)
    """
    session = get_session()
    ledger = session.add_water(amount_ml)
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"water_intake": ledger.water_intake, "progress": _progress(session)}


@mcp.tool()
def set_sleep(hours: float) -> dict:
    """Record last night's sleep, replacing any earlier entry.

    Args:
        hours: Hours slept (clamped to 0-24)
    """
    ledger = get_session().set_sleep_hours(hours)
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"sleep_hours": ledger.sleep_hours}


@mcp.tool()
def sync_steps(steps: int) -> dict:
    """Report a step count from another device; the stored count never decreases.

    Args:
        steps: Total steps today
    """
    ledger = get_session().update_steps(steps)
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"steps": ledger.steps}


# ==================== Workout Tools ====================


@mcp.tool()
def log_workout(
    name: str,
    duration: int,
    calories_burned: float = 0,
    workout_type: str = "other",
) -> dict:
    """Add a simple workout to today's ledger.

    Args:
        name: Workout name (e.g., "Morning run")
        duration: Minutes
        calories_burned: Estimated calories burned
        workout_type: cardio, strength, flexibility, sports or other
    """
    try:
        workout = Workout(
            name=name,
            duration=duration,
            calories_burned=calories_burned,
            type=WorkoutType(workout_type),
        )
    except (ValueError, ValidationError) as e:
        return {"error": f"Invalid workout: {e}"}

    if get_session().add_workout(workout) is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"workout": workout.model_dump(mode="json")}


@mcp.tool()
def log_workout_session(
    name: str,
    started_at: str,
    ended_at: str,
    items: list[dict],
    calories_burned: float = 0,
    workout_type: str = "strength",
) -> dict:
    """Log a completed strength session with per-exercise sets.

    Args:
        name: Session name (e.g., "Leg day")
        started_at: ISO timestamp the session started
        ended_at: ISO timestamp the session ended
        items: Exercises, e.g. [{"exercise": "Back Squat",
            "sets": [{"weight": 100, "reps": "5"}]}]
        calories_burned: Estimated calories burned
        workout_type: Usually strength
    """
    try:
        start = naive_utc(datetime.fromisoformat(started_at))
        end = naive_utc(datetime.fromisoformat(ended_at))
        parsed = [SessionItem.model_validate(item) for item in items]
        kind = WorkoutType(workout_type)
    except (ValueError, ValidationError) as e:
        return {"error": f"Invalid session: {e}"}

    duration = max(0, round((end - start).total_seconds() / 60))
    ledger = get_session().add_workout_session(
        name, duration, calories_burned, kind, start, end, parsed
    )
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"workout": ledger.workouts[-1].model_dump(mode="json")}


@mcp.tool()
def delete_workout(workout_id: str) -> dict:
    """Remove a workout from today's ledger.

    Args:
        workout_id: The ID of the workout to remove
    """
    ledger = get_session().remove_workout(workout_id)
    if ledger is None:
        return {"error": "No active ledger yet. Please try again."}
    return {"success": True, "workouts_remaining": len(ledger.workouts)}


# ==================== Settings Tools ====================


@mcp.tool()
def setup_targets(
    daily_calories: int,
    protein: float,
    carbs: float,
    fat: float,
    steps_goal: int = 8000,
    water_goal_ml: int = 2000,
) -> str:
    """Configure daily nutrition targets and activity goals.

    Args:
        daily_calories: Daily calorie target (e.g., 2000)
        protein: Protein target in grams
        carbs: Carbohydrate target in grams
        fat: Fat target in grams
        steps_goal: Daily step goal
        water_goal_ml: Daily water goal in milliliters
    """
    user_id = get_session().user_id
    prefs = get_preferences()
    try:
        targets = NutritionTargets(
            daily_calories=daily_calories,
            macros=Macros(protein=protein, carbs=carbs, fat=fat),
        )
        goals = DailyGoals(steps_goal=steps_goal, water_goal_ml=water_goal_ml)
    except ValidationError as e:
        return f"Invalid targets: {e}"

    if prefs.set_targets(user_id, targets) and prefs.set_goals(user_id, goals):
        return f"""Targets saved!
Nutrition: {daily_calories} cal, {protein}g protein, {carbs}g carbs, {fat}g fat
Activity: {steps_goal} steps, {water_goal_ml} ml water"""
    return "Failed to save targets. Please try again."


@mcp.tool()
def set_integrations(fitness_sync: bool) -> str:
    """Turn step-sensor sync on or off.

    Args:
        fitness_sync: Whether device step counts are merged into the ledger
    """
    session = get_session()
    prefs = get_preferences()
    integrations = prefs.get_integrations(session.user_id).model_copy(
        update={"fitness_sync": fitness_sync}
    )
    if not prefs.set_integrations(session.user_id, integrations):
        return "Failed to save integrations. Please try again."
    session.ingestion.stop()
    if fitness_sync:
        session.ingestion.start()
    return f"Step sync {'enabled' if fitness_sync else 'disabled'}."


@mcp.tool()
def sign_out() -> str:
    """End the current session and stop background syncing."""
    close_session()
    return "Signed out."
