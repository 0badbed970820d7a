"""
Order Admission

Structural validation is the OrderCreate schema; this module adds the
semantic checks that need the ingredient catalog and turns an accepted
request into the records order creation writes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from aristaeus.core.exceptions import (
    CapacityExceededError,
    IngredientsUnavailableError,
    ValidationFailedError,
)
from aristaeus.schemas import CustomerCreate, OrderCreate
from aristaeus.services import catalog
from aristaeus.services.nutrition import NutritionalSummary, calculate_nutrition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmittedItem:
    ingredient_id: int
    quantity_grams: float
    sequence_order: int


@dataclass(frozen=True)
class AdmittedOrder:
    """
    Everything order creation needs once a request is accepted.

    Attributes:
        bowl_size: Bowl capacity in grams
        customer: Data for the customer upsert
        items: Line items with their 1-based prep sequence
        nutrition: Totals committed on the order
    """
    bowl_size: int
    customer: CustomerCreate
    items: tuple[AdmittedItem, ...]
    nutrition: NutritionalSummary


def parse_order_request(payload: Mapping[str, Any]) -> OrderCreate:
    """
    Structural validation of a raw order request.

    Raises:
        ValidationFailedError: with the field errors as details
    """
    try:
        return OrderCreate.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailedError(
            "Validation failed",
            {"errors": e.errors(include_url=False, include_context=False)},
        ) from e


async def admit_order(session: AsyncSession, order: OrderCreate) -> AdmittedOrder:
    """
    Semantic validation against the live catalog.

    Raises:
        IngredientsUnavailableError: some ids are unknown or unavailable
        CapacityExceededError: the items outweigh the bowl
    """
    requested_ids = [item.ingredient_id for item in order.items]
    ingredients = await catalog.find_by_ids(session, requested_ids, available_only=True)
    ingredient_map = {ingredient.id: ingredient for ingredient in ingredients}

    missing_ids = list(dict.fromkeys(i for i in requested_ids if i not in ingredient_map))
    if missing_ids:
        logger.info(f"Order rejected, unavailable ingredients: {missing_ids}")
        raise IngredientsUnavailableError(missing_ids)

    nutrition = calculate_nutrition(order.items, ingredient_map, order.bowl_size)

    if nutrition.total_weight_g > order.bowl_size:
        logger.info(
            f"Order rejected, {nutrition.total_weight_g}g exceeds {order.bowl_size}g bowl"
        )
        raise CapacityExceededError(nutrition.total_weight_g, order.bowl_size)

    items = tuple(
        AdmittedItem(
            ingredient_id=item.ingredient_id,
            quantity_grams=item.quantity_grams,
            sequence_order=position,
        )
        for position, item in enumerate(order.items, start=1)
    )

    return AdmittedOrder(
        bowl_size=order.bowl_size,
        customer=order.customer,
        items=items,
        nutrition=nutrition,
    )
