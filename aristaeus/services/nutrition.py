"""
Nutrition and Pricing Calculator

Pure arithmetic shared by order admission and the committed order totals.
No I/O and no validation: callers resolve ingredients before calling.

Usage:
    summary = calculate_nutrition(items, {i.id: i for i in ingredients}, 450)
    if summary.total_weight_g > 450:
        ...
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence


# Bowl capacity in grams -> packaging fee (COP)
BOWL_PACKAGING_FEES: dict[int, int] = {
    250: 1200,
    450: 1300,
    600: 1400,
}
BOWL_SIZES = tuple(sorted(BOWL_PACKAGING_FEES))

MIN_QUANTITY_GRAMS = 10
PRICE_ROUNDING_STEP = 100


class ItemLike(Protocol):
    ingredient_id: int
    quantity_grams: float


@dataclass(frozen=True)
class NutritionalSummary:
    """
    Aggregate nutrition and price of a bowl.

    Attributes:
        total_calories: kcal, 2 decimals
        total_protein_g: grams, 2 decimals
        total_carbs_g: grams, 2 decimals
        total_fat_g: grams, 2 decimals
        total_fiber_g: grams, 2 decimals
        total_weight_g: exact sum of counted quantities
        total_price: ingredient cost plus packaging, nearest 100
    """
    total_calories: float
    total_protein_g: float
    total_carbs_g: float
    total_fat_g: float
    total_fiber_g: float
    total_weight_g: float
    total_price: int


def round_half_up(value: float, ndigits: int = 2) -> float:
    """Round like a cashier: halves go away from zero for positive values."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_to_step(value: float, step: int = PRICE_ROUNDING_STEP) -> int:
    """Round half-up to the nearest multiple of ``step``."""
    return int(math.floor(value / step + 0.5)) * step


def packaging_fee(bowl_size: int) -> int:
    """Packaging fee for a bowl size; raises ValueError for unknown sizes."""
    try:
        return BOWL_PACKAGING_FEES[bowl_size]
    except KeyError:
        raise ValueError(f"Unknown bowl size: {bowl_size}") from None


def calculate_nutrition(
    items: Sequence[ItemLike],
    ingredients: Mapping[int, Any],
    bowl_size: int,
) -> NutritionalSummary:
    """
    Calculate nutrition and price for a list of order items.

    Items whose ingredient is missing from ``ingredients`` are skipped
    and contribute neither nutrition, weight nor cost.

    Args:
        items: Objects exposing ``ingredient_id`` and ``quantity_grams``
        ingredients: Ingredient id -> object with the per-100g coefficients
            and ``price_per_g``
        bowl_size: Bowl capacity in grams, selects the packaging fee

    Returns:
        NutritionalSummary with rounded totals
    """
    calories = protein = carbs = fat = fiber = 0.0
    weight = 0
    ingredient_cost = 0.0

    for item in items:
        ingredient = ingredients.get(item.ingredient_id)
        if ingredient is None:
            continue

        multiplier = item.quantity_grams / 100

        calories += ingredient.calories_per_100g * multiplier
        protein += ingredient.protein_g_per_100g * multiplier
        carbs += ingredient.carbs_g_per_100g * multiplier
        fat += ingredient.fat_g_per_100g * multiplier
        fiber += (ingredient.fiber_g_per_100g or 0) * multiplier
        weight += item.quantity_grams
        ingredient_cost += ingredient.price_per_g * item.quantity_grams

    return NutritionalSummary(
        total_calories=round_half_up(calories),
        total_protein_g=round_half_up(protein),
        total_carbs_g=round_half_up(carbs),
        total_fat_g=round_half_up(fat),
        total_fiber_g=round_half_up(fiber),
        total_weight_g=weight,
        total_price=round_to_step(ingredient_cost + packaging_fee(bowl_size)),
    )
