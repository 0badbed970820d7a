from types import SimpleNamespace

import pytest

from aristaeus.services.nutrition import (
    BOWL_PACKAGING_FEES,
    calculate_nutrition,
    packaging_fee,
    round_half_up,
    round_to_step,
)


def ingredient(calories, protein, carbs, fat, fiber, price_per_g):
    return SimpleNamespace(
        calories_per_100g=calories,
        protein_g_per_100g=protein,
        carbs_g_per_100g=carbs,
        fat_g_per_100g=fat,
        fiber_g_per_100g=fiber,
        price_per_g=price_per_g,
    )


def item(ingredient_id, grams):
    return SimpleNamespace(ingredient_id=ingredient_id, quantity_grams=grams)


INGREDIENTS = {
    1: ingredient(130, 2.7, 28, 0.3, 0.4, 5),   # rice
    2: ingredient(165, 31, 0, 3.6, 0, 15),      # chicken
    3: ingredient(160, 2.0, 0.9, 15, None, 18),  # avocado, fiber unknown
}


def test_single_ingredient():
    result = calculate_nutrition([item(1, 100)], INGREDIENTS, 250)

    assert result.total_calories == 130
    assert result.total_protein_g == pytest.approx(2.7)
    assert result.total_carbs_g == 28
    assert result.total_fat_g == pytest.approx(0.3)
    assert result.total_fiber_g == pytest.approx(0.4)
    assert result.total_weight_g == 100
    assert result.total_price == 1700


def test_multiple_ingredients():
    result = calculate_nutrition([item(1, 100), item(2, 50)], INGREDIENTS, 450)

    assert result.total_calories == pytest.approx(212.5)
    assert result.total_protein_g == pytest.approx(18.2)
    assert result.total_weight_g == 150
    # 500 + 750 + 1300 = 2550, rounded half-up to 2600
    assert result.total_price == 2600


def test_empty_items_cost_only_packaging():
    for bowl_size, fee in BOWL_PACKAGING_FEES.items():
        result = calculate_nutrition([], INGREDIENTS, bowl_size)

        assert result.total_calories == 0
        assert result.total_protein_g == 0
        assert result.total_weight_g == 0
        assert result.total_price == fee


def test_unknown_ingredients_are_skipped():
    result = calculate_nutrition([item(1, 100), item(99, 200)], INGREDIENTS, 450)

    assert result.total_weight_g == 100
    assert result.total_calories == 130
    assert result.total_price == 1800


def test_missing_fiber_counts_as_zero():
    result = calculate_nutrition([item(3, 100)], INGREDIENTS, 250)

    assert result.total_fiber_g == 0
    assert result.total_fat_g == 15


def test_contribution_is_linear_in_quantity():
    single = calculate_nutrition([item(2, 40)], INGREDIENTS, 600)
    double = calculate_nutrition([item(2, 80)], INGREDIENTS, 600)
    split = calculate_nutrition([item(2, 40), item(2, 40)], INGREDIENTS, 600)

    assert double.total_calories == pytest.approx(2 * single.total_calories)
    assert double.total_protein_g == pytest.approx(2 * single.total_protein_g)
    assert split.total_calories == pytest.approx(double.total_calories)
    assert split.total_weight_g == double.total_weight_g


def test_weight_is_exact_sum():
    quantities = [12.5, 33.3, 10, 47.2]
    result = calculate_nutrition(
        [item(1, q) for q in quantities], INGREDIENTS, 600
    )

    assert result.total_weight_g == pytest.approx(sum(quantities))


@pytest.mark.parametrize("bowl_size", [250, 450, 600])
def test_price_never_below_packaging_fee(bowl_size):
    result = calculate_nutrition([item(1, 10)], INGREDIENTS, bowl_size)

    assert result.total_price >= packaging_fee(bowl_size)
    assert result.total_price % 100 == 0


def test_packaging_fees_grow_with_bowl_size():
    fees = [packaging_fee(size) for size in sorted(BOWL_PACKAGING_FEES)]

    assert fees == sorted(fees)


def test_unknown_bowl_size_has_no_fee():
    with pytest.raises(ValueError):
        packaging_fee(300)


def test_rounding_goes_half_up():
    assert round_to_step(2550) == 2600
    assert round_to_step(2549) == 2500
    assert round_to_step(1250) == 1300
    assert round_half_up(0.125) == 0.13
    assert round_half_up(2.5, 0) == 3
