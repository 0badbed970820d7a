import pytest

from aristaeus.core.exceptions import CapacityExceededError, IngredientsUnavailableError
from aristaeus.schemas import OrderCreate
from aristaeus.services.admission import admit_order

from conftest import order_payload


async def admit(db, items, bowl_size=450):
    order = OrderCreate.model_validate(order_payload(items, bowl_size=bowl_size))
    async with db.session() as session:
        return await admit_order(session, order)


async def test_accepted_order_gets_sequence_and_totals(db, catalog_ids):
    admitted = await admit(db, [(catalog_ids["rice"], 100), (catalog_ids["chicken"], 50)])

    assert [i.sequence_order for i in admitted.items] == [1, 2]
    assert [i.ingredient_id for i in admitted.items] == [catalog_ids["rice"], catalog_ids["chicken"]]
    assert admitted.nutrition.total_weight_g == 150
    assert admitted.nutrition.total_price == 2600
    assert admitted.customer.phone == "3001234567"


async def test_missing_ingredients_are_listed_once_in_request_order(db, catalog_ids):
    with pytest.raises(IngredientsUnavailableError) as exc_info:
        await admit(db, [(404, 20), (catalog_ids["rice"], 50), (77, 20), (404, 20)])

    assert exc_info.value.missing_ids == [404, 77]
    assert exc_info.value.status_code == 400
    assert "404, 77" in exc_info.value.message


async def test_unavailable_ingredient_is_rejected(db, add_ingredient):
    sold_out = await add_ingredient("Salmon", available=False)

    with pytest.raises(IngredientsUnavailableError) as exc_info:
        await admit(db, [(sold_out, 100)])

    assert exc_info.value.missing_ids == [sold_out]


@pytest.mark.parametrize("bowl_size", [250, 450, 600])
async def test_capacity_is_enforced(db, catalog_ids, bowl_size):
    rice = catalog_ids["rice"]

    admitted = await admit(db, [(rice, bowl_size)], bowl_size=bowl_size)
    assert admitted.nutrition.total_weight_g == bowl_size

    with pytest.raises(CapacityExceededError) as exc_info:
        await admit(db, [(rice, bowl_size - 10), (rice, 11)], bowl_size=bowl_size)

    assert exc_info.value.bowl_size == bowl_size
    assert exc_info.value.total_weight_g == bowl_size + 1
    assert f"exceeds bowl capacity ({bowl_size}g)" in exc_info.value.message
