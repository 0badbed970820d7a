"""
Order Store

Creation runs admission, the customer upsert and the order with its
items in a single transaction, then offers the new order to a robot.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from aristaeus.core.exceptions import NotFoundError
from aristaeus.database import Database
from aristaeus.models import Order, OrderItem, OrderStatus
from aristaeus.schemas import OrderCreate
from aristaeus.services import catalog
from aristaeus.services.admission import admit_order
from aristaeus.services.assignment import try_assign

logger = logging.getLogger(__name__)


def _order_load_options() -> list[Any]:
    return [
        selectinload(Order.customer),
        selectinload(Order.items).selectinload(OrderItem.ingredient),
    ]


async def create_order(db: Database, order: OrderCreate) -> Order:
    """
    Admit, price and persist a new order.

    Returns:
        The committed Order. Its status reflects the assignment attempt
        made right after the commit (pending or queued).

    Raises:
        IngredientsUnavailableError, CapacityExceededError
    """
    async with db.transaction() as session:
        admitted = await admit_order(session, order)
        customer_id = await catalog.upsert_customer_by_phone(session, admitted.customer)

        nutrition = admitted.nutrition
        db_order = Order(
            customer_id=customer_id,
            bowl_size=admitted.bowl_size,
            status=OrderStatus.PENDING,
            total_calories=nutrition.total_calories,
            total_protein_g=nutrition.total_protein_g,
            total_carbs_g=nutrition.total_carbs_g,
            total_fat_g=nutrition.total_fat_g,
            total_fiber_g=nutrition.total_fiber_g,
            total_weight_g=nutrition.total_weight_g,
            total_price=nutrition.total_price,
            items=[
                OrderItem(
                    ingredient_id=item.ingredient_id,
                    quantity_grams=item.quantity_grams,
                    sequence_order=item.sequence_order,
                )
                for item in admitted.items
            ],
        )
        session.add(db_order)
        await session.flush()

    logger.info(
        f"Order #{db_order.id} created: {db_order.bowl_size}g bowl, "
        f"{len(admitted.items)} items, ${nutrition.total_price:,}"
    )

    assignment = await try_assign(db, order_id=db_order.id)
    if assignment is not None:
        db_order.status = OrderStatus.QUEUED
        db_order.assigned_robot_id = assignment.robot_id

    return db_order


async def get_order(db: Database, order_id: int) -> Order:
    """
    Raises:
        NotFoundError: no such order
    """
    async with db.session() as session:
        order = await session.get(Order, order_id, options=_order_load_options())
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


async def list_orders(db: Database, status: Optional[OrderStatus] = None) -> list[Order]:
    """All orders, newest first, optionally filtered by status."""
    query = select(Order).options(*_order_load_options())
    if status is not None:
        query = query.where(Order.status == status)
    query = query.order_by(Order.created_at.desc(), Order.id.desc())

    async with db.session() as session:
        result = await session.execute(query)
        return list(result.scalars().all())
