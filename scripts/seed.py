"""
Database Seed Script

Resets every table and seeds the ingredient catalog plus one mock robot.
Run from project root: python scripts/seed.py

Version: 1.0.0
"""

import asyncio
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from aristaeus.core.config import get_settings, setup_logging
from aristaeus.database import Database
from aristaeus.models import Ingredient, IngredientCategory, Robot, RobotStatus

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

logger = logging.getLogger("aristaeus.seed")

# name, category, kcal, protein, carbs, fat, fiber (per 100g), price per gram (COP)
INGREDIENTS = [
    ("Chicken", IngredientCategory.PROTEIN, 165, 31, 0, 3.7, 0, 15),
    ("Salmon", IngredientCategory.PROTEIN, 208, 20, 0, 13, 0, 40),
    ("Rice", IngredientCategory.BASE, 130, 2.6, 28, 0.2, 0.3, 5),
    ("Quinoa", IngredientCategory.BASE, 120, 4.3, 21, 1.8, 1.3, 9),
    ("Cherry Tomatoes", IngredientCategory.VEGETABLE, 18, 0.9, 3.9, 0.2, 1.2, 8),
    ("Mango", IngredientCategory.VEGETABLE, 60, 0.5, 15, 0.2, 1.7, 10),
    ("Carrot", IngredientCategory.VEGETABLE, 41, 0.9, 9.5, 0.2, 2.8, 4),
    ("Onion", IngredientCategory.VEGETABLE, 40, 1.1, 9.3, 0.1, 1.0, 4),
    ("Avocado", IngredientCategory.VEGETABLE, 160, 2.0, 0.9, 15, 6.7, 18),
    ("Corn", IngredientCategory.VEGETABLE, 96, 3.2, 21, 1.5, 2.6, 6),
    ("Cucumber", IngredientCategory.VEGETABLE, 16, 0.7, 3.6, 0.1, 0.5, 5),
    ("Mozzarella", IngredientCategory.TOPPING, 300, 20, 1.0, 18, 0, 25),
    ("Green Onion", IngredientCategory.TOPPING, 32, 0.9, 7.4, 0.05, 0.8, 6),
    ("Peanuts", IngredientCategory.TOPPING, 600, 25, 16, 52, 10, 20),
    ("Teriyaki", IngredientCategory.DRESSING, 89, 6, 16, 0, 0, 12),
    ("Olive Oil Balsamic", IngredientCategory.DRESSING, 415, 0, 8.5, 45.5, 0, 22),
]


def build_ingredients() -> list[Ingredient]:
    display_orders: dict[IngredientCategory, int] = {}
    ingredients = []
    for name, category, kcal, protein, carbs, fat, fiber, price in INGREDIENTS:
        display_orders[category] = display_orders.get(category, 0) + 1
        ingredients.append(
            Ingredient(
                name=name,
                category=category,
                calories_per_100g=kcal,
                protein_g_per_100g=protein,
                carbs_g_per_100g=carbs,
                fat_g_per_100g=fat,
                fiber_g_per_100g=fiber,
                price_per_g=price,
                available=True,
                display_order=display_orders[category],
            )
        )
    return ingredients


async def seed(db: Database) -> None:
    logger.info("Resetting tables...")
    await db.drop_all()
    await db.create_all()

    async with db.transaction() as session:
        ingredients = build_ingredients()
        session.add_all(ingredients)
        session.add(
            Robot(
                name="Kitchen Robot 01",
                identifier="MOCK_ROBOT_001",
                status=RobotStatus.ONLINE,
            )
        )

    logger.info(f"Created {len(ingredients)} ingredients")
    logger.info("Created test robot: Kitchen Robot 01 (MOCK_ROBOT_001)")


async def main() -> None:
    setup_logging()
    db = Database.from_settings(get_settings())
    try:
        await seed(db)
    finally:
        await db.dispose()
    logger.info("Database seeding completed!")


if __name__ == "__main__":
    asyncio.run(main())
