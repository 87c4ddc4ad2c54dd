"""Derived Totals - Pure functions for nutrition and progress math.

All functions are pure: same input always produces same output, no side effects.
"""

from typing import Optional

from .models import DailyGoals, Ledger, Macros, Meal, NutritionTargets, TodayProgress


def calculate_meal_totals(meals: list[Meal]) -> tuple[float, Macros, dict[str, float]]:
    """Sum calories, macros and micros over a list of meals.

    Args:
        meals: Meals logged for a day

    Returns:
        Tuple of (total_calories, macros, micros)
    """
    total_calories = sum(m.calories for m in meals)
    macros = Macros(
        protein=sum(m.macros.protein for m in meals),
        carbs=sum(m.macros.carbs for m in meals),
        fat=sum(m.macros.fat for m in meals),
    )

    micros: dict[str, float] = {}
    for meal in meals:
        for name, amount in meal.micros.items():
            micros[name] = micros.get(name, 0) + amount

    return total_calories, macros, micros


def percent_of(consumed: float, target: float) -> float:
    """Percentage of target reached, capped at 100.

    A target below 1 is treated as 1 so unset targets do not divide by zero.
    """
    return min(100.0, consumed / max(1.0, target) * 100)


def calculate_today_progress(
    ledger: Optional[Ledger],
    targets: NutritionTargets,
    goals: Optional[DailyGoals] = None,
) -> TodayProgress:
    """Calculate consumed/remaining calories and percent-of-target figures.

    Args:
        ledger: The active ledger, or None before the first load
        targets: The user's nutrition targets
        goals: Step and water goals (defaults apply when omitted)

    Returns:
        TodayProgress for display
    """
    goals = goals or DailyGoals()
    consumed = ledger.total_calories if ledger else 0
    macros = ledger.macros if ledger else Macros()
    micros = ledger.micros if ledger else {}
    steps = ledger.steps if ledger else 0
    water = ledger.water_intake if ledger else 0

    micros_progress = {
        name: percent_of(micros.get(name, 0), target or 1)
        for name, target in targets.micros.items()
    }

    return TodayProgress(
        calories_consumed=consumed,
        calories_remaining=round(max(0, targets.daily_calories - consumed)),
        macros_progress=Macros(
            protein=percent_of(macros.protein, targets.macros.protein),
            carbs=percent_of(macros.carbs, targets.macros.carbs),
            fat=percent_of(macros.fat, targets.macros.fat),
        ),
        micros_progress=micros_progress,
        steps=steps,
        steps_progress=percent_of(steps, goals.steps_goal),
        water_intake=water,
        water_progress=percent_of(water, goals.water_goal_ml),
    )


def calculate_calories_from_macros(protein: float, carbs: float, fat: float) -> int:
    """Estimate calories from macronutrients.

    Uses standard conversion: 4 cal/g protein, 4 cal/g carbs, 9 cal/g fat.
    """
    return round(protein * 4 + carbs * 4 + fat * 9)
