# caltrack/nutrition.py
import math

# Share of energy per macro, and kcal per gram
PROTEIN_SHARE, CARBS_SHARE, FAT_SHARE = 0.30, 0.40, 0.30
KCAL_PER_G_PROTEIN = 4
KCAL_PER_G_CARBS = 4
KCAL_PER_G_FAT = 9


def estimate_macros(calories: int) -> dict:
    """
    Rough protein/carbs/fat split (grams) for a calorie total.

    This is a fixed 30/40/30 energy split, not a nutrition lookup: two meals
    with the same calories always get the same macros.
    """
    return {
        "protein": _round_half_up(calories * PROTEIN_SHARE / KCAL_PER_G_PROTEIN),
        "carbs": _round_half_up(calories * CARBS_SHARE / KCAL_PER_G_CARBS),
        "fat": _round_half_up(calories * FAT_SHARE / KCAL_PER_G_FAT),
    }


def _round_half_up(value: float) -> int:
    # round() would send 4.5 to 4
    return int(math.floor(value + 0.5))
