"""
Ingredient Catalog and Customer Directory

Thin data-access helpers the ordering core consumes. All functions take
the caller's session so they join whatever transaction is open.
"""

import logging
import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from aristaeus.models import Customer, Ingredient
from aristaeus.schemas import CustomerCreate

logger = logging.getLogger(__name__)


async def list_available(session: AsyncSession) -> list[Ingredient]:
    """Available ingredients ordered by category, display order and name."""
    result = await session.execute(
        select(Ingredient)
        .where(Ingredient.available.is_(True))
        .order_by(Ingredient.category, Ingredient.display_order, Ingredient.name)
    )
    return list(result.scalars().all())


async def find_by_ids(
    session: AsyncSession,
    ids: Iterable[int],
    available_only: bool = True,
) -> list[Ingredient]:
    """Ingredients whose id is in ``ids``; unknown ids are simply absent."""
    ids = set(ids)
    if not ids:
        return []

    query = select(Ingredient).where(Ingredient.id.in_(ids))
    if available_only:
        query = query.where(Ingredient.available.is_(True))

    result = await session.execute(query)
    return list(result.scalars().all())


async def find_customer_by_phone(session: AsyncSession, phone: str) -> Optional[Customer]:
    result = await session.execute(select(Customer).where(Customer.phone == phone))
    return result.scalar_one_or_none()


def _dialect_insert(session: AsyncSession):
    """The INSERT construct with ON CONFLICT support for the bound dialect."""
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


async def upsert_customer_by_phone(session: AsyncSession, customer: CustomerCreate) -> str:
    """
    Create the customer or refresh their details, keyed by phone.

    Returns:
        The customer id
    """
    address = customer.address
    fields = {
        "name": customer.name,
        "email": customer.email,
        "street_address": address.street_address,
        "neighborhood": address.neighborhood,
        "city": address.city,
        "department": address.department,
        "postal_code": address.postal_code,
    }

    # single statement so concurrent first orders from one phone converge
    statement = _dialect_insert(session)(Customer).values(
        id=str(uuid.uuid4()), phone=customer.phone, **fields
    )
    statement = statement.on_conflict_do_update(
        index_elements=[Customer.phone],
        set_={**fields, "updated_at": func.now()},
    ).returning(Customer.id)

    customer_id = (await session.execute(statement)).scalar_one()
    logger.debug(f"Customer {customer_id} upserted")
    return customer_id
