"""Tests for the ledger session entry points."""

from datetime import date, datetime

from dayledger.core.models import (
    DailyGoals,
    Integrations,
    Macros,
    Meal,
    NutritionTargets,
    SessionItem,
    Workout,
    WorkoutSet,
    WorkoutType,
)
from dayledger.core.updaters import add_meal, new_ledger
from dayledger.shell.local_cache import activity_key
from dayledger.shell.preferences import LocalPreferences
from dayledger.shell.session import LedgerSession, SessionConfig
from dayledger.shell.sync import encode_local

from conftest import USER, FakeClock, FakeSensor


class TestLifecycle:
    """Tests for start and sign_out."""

    def test_start_loads_today(self, session):
        assert session.ledger.date == date(2024, 1, 1)
        assert session.ledger.user_id == USER

    def test_start_catches_up_steps(self, cache, mirror, clock):
        """Steps already walked today are merged at start."""
        sensor = FakeSensor(since_midnight=3200)
        s = LedgerSession(USER, cache, mirror, sensor=sensor, clock=clock)
        s.start(background=False)
        try:
            assert s.ledger.steps == 3200
            sensor.emit(3500)
            assert s.ledger.steps == 3500
        finally:
            s.sign_out()

    def test_fitness_sync_off_skips_sensor(self, cache, mirror, clock):
        prefs = LocalPreferences(cache)
        prefs.set_integrations(USER, Integrations(fitness_sync=False))
        sensor = FakeSensor(since_midnight=3200)
        s = LedgerSession(USER, cache, mirror, sensor=sensor, preferences=prefs, clock=clock)
        s.start(background=False)
        try:
            assert s.ledger.steps == 0
            assert sensor.callback is None
        finally:
            s.sign_out()

    def test_sign_out_clears_state(self, session, sensor):
        """After sign-out, mutations are ignored and the sensor is released."""
        session.sign_out()
        assert session.ledger is None
        assert session.add_water(250) is None
        assert sensor.callback is None

    def test_background_rollover(self, cache, mirror, clock):
        """start() runs the rollover thread; sign_out stops it."""
        s = LedgerSession(USER, cache, mirror, clock=clock, rollover_interval=0.01)
        s.start()
        assert s.rollover.running
        s.sign_out()
        assert not s.rollover.running


class TestMutations:
    """Tests for the mutation entry points."""

    def test_steps_monotonic(self, session):
        session.update_steps(4000)
        session.update_steps(2500)
        assert session.ledger.steps == 4000

    def test_water_and_sleep(self, session):
        session.add_water(250)
        session.add_water(500)
        session.set_sleep_hours(7.46)
        assert session.ledger.water_intake == 750
        assert session.ledger.sleep_hours == 7.5

    def test_meal_lifecycle(self, session, mirror):
        """Adding, editing and removing a meal keeps totals in step."""
        meal = Meal(name="Oats", calories=300, macros=Macros(protein=10, carbs=50))
        session.add_meal(meal)
        assert session.ledger.total_calories == 300

        session.update_meal(meal.id, {"calories": 350, "macros": {"protein": 12}})
        assert session.ledger.total_calories == 350
        assert session.ledger.macros.protein == 12
        assert session.ledger.macros.carbs == 50

        session.remove_meal(meal.id)
        assert session.ledger.meals == []
        assert session.ledger.total_calories == 0
        assert mirror.docs[("activities", f"{USER}_2024-01-01")]["totalCalories"] == 0

    def test_workouts(self, session):
        workout = Workout(name="Run", duration=30, calories_burned=280, type=WorkoutType.CARDIO)
        session.add_workout(workout)
        assert [w.name for w in session.ledger.workouts] == ["Run"]
        session.remove_workout(workout.id)
        assert session.ledger.workouts == []

    def test_workout_session_updates_lift_index(self, session):
        """A logged session records totals and refreshes last lifts."""
        items = [
            SessionItem(exercise="Bench", sets=[
                WorkoutSet(weight=60, reps="10"),
                WorkoutSet(weight=70, reps="8"),
            ]),
        ]
        ledger = session.add_workout_session(
            "Push day", 45, 250, WorkoutType.STRENGTH,
            datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 1, 8, 45), items,
        )
        details = ledger.workouts[-1].details
        assert details.total_sets == 2
        assert details.total_reps == 18

        lift = session.get_last_lift("Bench")
        assert (lift.weight, lift.reps) == (70, "8")

    def test_workout_session_after_sign_out(self, session):
        """No ledger means no commit and no index update."""
        session.sign_out()
        items = [SessionItem(exercise="Bench", sets=[WorkoutSet(weight=70, reps="8")])]
        result = session.add_workout_session(
            "Push day", 45, 250, WorkoutType.STRENGTH,
            datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 1, 8, 45), items,
        )
        assert result is None
        assert session.get_last_lift("Bench") is None


class TestRepeatMeals:
    """Tests for repeat_meals_from."""

    def test_copies_with_new_ids(self, session, cache):
        yesterday = add_meal(Meal(name="Eggs", calories=200))(new_ledger(USER, date(2023, 12, 31)))
        cache.data[activity_key(USER, "2023-12-31")] = encode_local(yesterday)

        ledger = session.repeat_meals_from(date(2023, 12, 31))

        assert [m.name for m in ledger.meals] == ["Eggs"]
        assert ledger.meals[0].id != yesterday.meals[0].id
        assert ledger.total_calories == 200

    def test_missing_day_not_created(self, session, cache, mirror):
        """Repeating from an unknown day neither fails nor creates it."""
        before = session.ledger
        assert session.repeat_meals_from(date(2023, 12, 30)) is before
        assert activity_key(USER, "2023-12-30") not in cache.data
        assert ("activities", f"{USER}_2023-12-30") not in mirror.docs


class TestReads:
    """Tests for progress, peeking and lift stats."""

    def test_today_progress(self, session):
        session.add_meal(Meal(name="Lunch", calories=1500, macros=Macros(protein=60)))
        session.add_water(1000)
        session.update_steps(4000)

        progress = session.get_today_progress(
            NutritionTargets(daily_calories=2000, macros=Macros(protein=120)),
            DailyGoals(steps_goal=8000, water_goal_ml=2000),
        )
        assert progress.calories_remaining == 500
        assert progress.macros_progress.protein == 50
        assert progress.steps_progress == 50
        assert progress.water_progress == 50

    def test_peek_day(self, session):
        assert session.peek_day(date(2023, 6, 1)) is None
        assert session.peek_day(date(2024, 1, 1)) == session.ledger

    def test_lift_stats_include_active_day(self, session):
        items = [SessionItem(exercise="Squat", sets=[WorkoutSet(weight=100, reps="5")])]
        session.add_workout_session(
            "Legs", 40, 300, WorkoutType.STRENGTH,
            datetime(2024, 1, 1, 7, 0), datetime(2024, 1, 1, 7, 40), items,
        )
        stats = session.lift_stats()
        assert stats["Squat"].pb_weight == 100
        assert stats["Squat"].best_volume == 500
        assert len(stats["Squat"].samples) == 1


class TestRollover:
    """Rollover through the session's scheduler."""

    def test_midnight_starts_fresh_day(self, cache, mirror):
        clock = FakeClock(datetime(2024, 1, 1, 23, 59))
        sensor = FakeSensor(since_midnight=0)
        s = LedgerSession(USER, cache, mirror, sensor=sensor, clock=clock)
        s.start(background=False)
        try:
            s.add_water(900)
            clock.now = datetime(2024, 1, 2, 0, 0, 5)
            assert s.rollover.tick() is True
            assert s.ledger.date == date(2024, 1, 2)
            assert s.ledger.water_intake == 0
            assert s.peek_day(date(2024, 1, 1)).water_intake == 900
            assert sensor.callback is not None
        finally:
            s.sign_out()


class TestSessionConfig:
    """Tests for SessionConfig.from_env."""

    def test_defaults(self, monkeypatch):
        for name in ("DAYLEDGER_USER_ID", "DAYLEDGER_CACHE_DIR", "FIRESTORE_DATABASE",
                     "GOOGLE_CLOUD_PROJECT", "DAYLEDGER_ROLLOVER_INTERVAL"):
            monkeypatch.delenv(name, raising=False)
        config = SessionConfig.from_env()
        assert config.user_id is None
        assert config.firestore_database == "dayledger"
        assert config.rollover_interval == 60.0
        assert config.cache_dir.name == "cache"

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DAYLEDGER_USER_ID", USER)
        monkeypatch.setenv("DAYLEDGER_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("DAYLEDGER_ROLLOVER_INTERVAL", "5")
        config = SessionConfig.from_env()
        assert config.user_id == USER
        assert config.cache_dir == tmp_path
        assert config.rollover_interval == 5.0
