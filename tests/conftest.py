"""
Shared fixtures: an isolated SQLite database per test, catalog and robot
helpers, and a stub for the production log export task.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from aristaeus.database import Database
from aristaeus.models import Ingredient, IngredientCategory, Order, Robot, RobotStatus
from aristaeus.schemas import OrderCreate
from aristaeus.services import orders, transitions


class RecordingTask:
    """Stands in for a Celery task; records what would have been queued."""

    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    def delay(self, row: dict[str, Any]) -> None:
        self.calls.append(row)


@pytest.fixture(autouse=True)
def export_task(monkeypatch) -> RecordingTask:
    task = RecordingTask()
    monkeypatch.setattr(transitions, "export_order_to_production_log", task)
    return task


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'kitchen.db'}")
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
def add_ingredient(db):
    async def _add(
        name: str,
        category: IngredientCategory = IngredientCategory.BASE,
        calories: float = 100,
        protein: float = 0,
        carbs: float = 0,
        fat: float = 0,
        fiber: Optional[float] = 0,
        price_per_g: float = 5,
        available: bool = True,
    ) -> int:
        async with db.transaction() as session:
            ingredient = Ingredient(
                name=name,
                category=category,
                calories_per_100g=calories,
                protein_g_per_100g=protein,
                carbs_g_per_100g=carbs,
                fat_g_per_100g=fat,
                fiber_g_per_100g=fiber,
                price_per_g=price_per_g,
                available=available,
            )
            session.add(ingredient)
            await session.flush()
            return ingredient.id

    return _add


@pytest.fixture
async def catalog_ids(add_ingredient) -> dict[str, int]:
    rice = await add_ingredient(
        "Rice", IngredientCategory.BASE,
        calories=130, protein=2.7, carbs=28, fat=0.3, fiber=0.4, price_per_g=5,
    )
    chicken = await add_ingredient(
        "Chicken", IngredientCategory.PROTEIN,
        calories=165, protein=31, carbs=0, fat=3.6, fiber=0, price_per_g=15,
    )
    return {"rice": rice, "chicken": chicken}


@pytest.fixture
def add_robot(db):
    async def _add(
        identifier: str,
        status: RobotStatus = RobotStatus.ONLINE,
        heartbeat_age: Optional[timedelta] = timedelta(0),
    ) -> int:
        last_heartbeat = None
        if heartbeat_age is not None:
            last_heartbeat = datetime.now(timezone.utc) - heartbeat_age
        async with db.transaction() as session:
            robot = Robot(
                name=f"Robot {identifier}",
                identifier=identifier,
                status=status,
                last_heartbeat=last_heartbeat,
            )
            session.add(robot)
            await session.flush()
            return robot.id

    return _add


def order_payload(
    items: list[tuple[int, float]],
    bowl_size: int = 450,
    phone: str = "3001234567",
) -> dict[str, Any]:
    return {
        "bowl_size": bowl_size,
        "customer": {
            "name": "Juan Perez",
            "phone": phone,
            "email": "juan@example.com",
            "address": {
                "street_address": "Calle 100 # 15-20",
                "neighborhood": "Chico",
                "city": "Bogota",
                "department": "Cundinamarca",
                "postal_code": "110131",
            },
        },
        "items": [
            {"ingredient_id": ingredient_id, "quantity_grams": grams}
            for ingredient_id, grams in items
        ],
    }


@pytest.fixture
def place_order(db, catalog_ids):
    async def _place(grams: float = 100, bowl_size: int = 450) -> Order:
        payload = order_payload([(catalog_ids["rice"], grams)], bowl_size=bowl_size)
        return await orders.create_order(db, OrderCreate.model_validate(payload))

    return _place


async def fetch_robot(db: Database, robot_id: int) -> Robot:
    async with db.session() as session:
        return await session.get(Robot, robot_id)


async def fetch_order(db: Database, order_id: int) -> Order:
    async with db.session() as session:
        return await session.get(Order, order_id)
