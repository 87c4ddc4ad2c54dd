"""Unit tests for derived totals and progress - pure functions, no mocks needed."""

from datetime import date

from dayledger.core.models import DailyGoals, Ledger, Macros, Meal, NutritionTargets
from dayledger.core.totals import (
    calculate_calories_from_macros,
    calculate_meal_totals,
    calculate_today_progress,
    percent_of,
)


def _ledger(**kwargs) -> Ledger:
    return Ledger(id="u_2024-01-01", user_id="u", date=date(2024, 1, 1), **kwargs)


class TestCalculateMealTotals:
    """Tests for calculate_meal_totals."""

    def test_empty_meals(self):
        """No meals sums to zero."""
        assert calculate_meal_totals([]) == (0, Macros(), {})

    def test_sums_calories_and_macros(self):
        """Calories and each macro are summed."""
        meals = [
            Meal(name="Eggs", calories=140, macros=Macros(protein=12, carbs=0, fat=10)),
            Meal(name="Toast", calories=120, macros=Macros(protein=3, carbs=20, fat=3)),
        ]
        calories, macros, _ = calculate_meal_totals(meals)
        assert calories == 260
        assert macros == Macros(protein=15, carbs=20, fat=13)

    def test_sparse_micros_merge(self):
        """Micro keys missing from some meals still sum correctly."""
        meals = [
            Meal(name="Beans", calories=200, micros={"fiber": 8, "iron": 2}),
            Meal(name="Chips", calories=150, micros={"sodium": 300, "fiber": 1}),
        ]
        _, _, micros = calculate_meal_totals(meals)
        assert micros == {"fiber": 9, "iron": 2, "sodium": 300}


class TestPercentOf:
    """Tests for percent_of."""

    def test_caps_at_100(self):
        """Over target reports 100."""
        assert percent_of(300, 150) == 100

    def test_zero_target_treated_as_one(self):
        """An unset target does not divide by zero."""
        assert percent_of(0, 0) == 0
        assert percent_of(5, 0) == 100


class TestCalculateTodayProgress:
    """Tests for calculate_today_progress."""

    def test_no_ledger_shows_full_remaining(self):
        """Before the first load everything is still remaining."""
        progress = calculate_today_progress(None, NutritionTargets(daily_calories=2200))
        assert progress.calories_consumed == 0
        assert progress.calories_remaining == 2200
        assert progress.steps == 0

    def test_partial_day(self):
        """Consumed, remaining and macro percentages follow the ledger."""
        ledger = _ledger(total_calories=500, macros=Macros(protein=30, carbs=50, fat=15))
        targets = NutritionTargets(
            daily_calories=2000, macros=Macros(protein=150, carbs=200, fat=60)
        )
        progress = calculate_today_progress(ledger, targets)

        assert progress.calories_consumed == 500
        assert progress.calories_remaining == 1500
        assert progress.macros_progress.protein == 20
        assert progress.macros_progress.carbs == 25
        assert progress.macros_progress.fat == 25

    def test_over_goal_remaining_is_zero(self):
        """Remaining calories never go negative."""
        ledger = _ledger(total_calories=2600)
        progress = calculate_today_progress(ledger, NutritionTargets(daily_calories=2000))
        assert progress.calories_remaining == 0

    def test_micros_only_for_targeted_keys(self):
        """Micro progress is reported for each target key."""
        ledger = _ledger(micros={"fiber": 15, "sodium": 900})
        targets = NutritionTargets(micros={"fiber": 30})
        progress = calculate_today_progress(ledger, targets)
        assert progress.micros_progress == {"fiber": 50}

    def test_steps_and_water_progress(self):
        """Steps and water are measured against daily goals."""
        ledger = _ledger(steps=4000, water_intake=500)
        progress = calculate_today_progress(
            ledger, NutritionTargets(), DailyGoals(steps_goal=8000, water_goal_ml=2000)
        )
        assert progress.steps_progress == 50
        assert progress.water_progress == 25


class TestCalculateCaloriesFromMacros:
    """Tests for calculate_calories_from_macros."""

    def test_mixed_macros(self):
        """10g protein (40) + 20g carbs (80) + 5g fat (45) = 165."""
        assert calculate_calories_from_macros(protein=10, carbs=20, fat=5) == 165
