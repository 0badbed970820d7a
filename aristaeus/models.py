"""
SQLAlchemy Database Models

Tables:
- ingredients: priced catalog with per-100g nutrition
- customers: returning customers keyed by phone
- orders / order_items: bowls and their prep sequence
- robots: kitchen robots and their current binding

Robot and Order point at each other by plain id columns. Neither owns
the other; the binding invariant is maintained by the assignment and
transition services inside a single transaction.

Version: 1.0.0
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Enum,
    Boolean,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from aristaeus.database import Base


def utcnow() -> datetime:
    """Timezone-aware current time used for every stamped column."""
    return datetime.now(timezone.utc)


class IngredientCategory(str, enum.Enum):
    """Ingredient catalog sections."""
    PROTEIN = "protein"
    BASE = "base"
    VEGETABLE = "vegetable"
    TOPPING = "topping"
    DRESSING = "dressing"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    QUEUED = "queued"
    ASSIGNED = "assigned"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.FAILED,
})


class RobotStatus(str, enum.Enum):
    """Robot availability. ONLINE is the state in which a robot accepts work."""
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"
    ERROR = "error"


class Ingredient(Base):
    """
    Catalog entry. Read-only to the ordering core.
    """
    __tablename__ = "ingredients"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    category = Column(Enum(IngredientCategory), nullable=False, index=True)

    # =========================================================================
    # NUTRITION (per 100g)
    # =========================================================================
    calories_per_100g = Column(Float, nullable=False)
    protein_g_per_100g = Column(Float, nullable=False)
    carbs_g_per_100g = Column(Float, nullable=False)
    fat_g_per_100g = Column(Float, nullable=False)
    fiber_g_per_100g = Column(Float, nullable=True)

    # =========================================================================
    # PRICING & DISPLAY
    # =========================================================================
    price_per_g = Column(Float, nullable=False, default=0.0)
    available = Column(Boolean, nullable=False, default=True, index=True)
    display_order = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Ingredient #{self.id} - {self.name} ({self.category.value})>"


class Customer(Base):
    """
    Customer directory entry, upserted by phone on every order.
    """
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)

    # =========================================================================
    # ADDRESS
    # =========================================================================
    street_address = Column(String(200), nullable=False)
    neighborhood = Column(String(100), nullable=False)
    city = Column(String(100), nullable=False)
    department = Column(String(100), nullable=False)
    postal_code = Column(String(6), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    orders = relationship("Order", back_populates="customer")

    def __repr__(self):
        return f"<Customer {self.phone} - {self.name}>"


class Order(Base):
    """
    A bowl order.

    Nutrition and price totals are committed at creation and never
    recomputed; afterwards only status, robot assignment and the
    lifecycle timestamps change.
    """
    __tablename__ = "orders"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    bowl_size = Column(Integer, nullable=False)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # COMMITTED TOTALS
    # =========================================================================
    total_calories = Column(Float, nullable=False, default=0.0)
    total_protein_g = Column(Float, nullable=False, default=0.0)
    total_carbs_g = Column(Float, nullable=False, default=0.0)
    total_fat_g = Column(Float, nullable=False, default=0.0)
    total_fiber_g = Column(Float, nullable=False, default=0.0)
    total_weight_g = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)

    # =========================================================================
    # ROBOT ASSIGNMENT
    # =========================================================================
    assigned_robot_id = Column(Integer, nullable=True, index=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.sequence_order",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self):
        return f"<Order #{self.id} - {self.bowl_size}g - {self.status.value}>"


class OrderItem(Base):
    """
    One ingredient portion of an order. Created with the order, never mutated.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        UniqueConstraint("order_id", "sequence_order", name="uq_order_items_sequence"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    ingredient_id = Column(Integer, ForeignKey("ingredients.id"), nullable=False)
    quantity_grams = Column(Float, nullable=False)
    sequence_order = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
    ingredient = relationship("Ingredient")

    def __repr__(self):
        return f"<OrderItem {self.order_id}#{self.sequence_order} - {self.quantity_grams}g>"


class Robot(Base):
    """
    Kitchen robot.

    current_order_id is set exactly when status is BUSY.
    """
    __tablename__ = "robots"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    identifier = Column(String(100), nullable=False, unique=True, index=True)

    status = Column(
        Enum(RobotStatus),
        default=RobotStatus.ONLINE,
        nullable=False,
        index=True
    )
    current_order_id = Column(Integer, nullable=True)
    last_heartbeat = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_available(self) -> bool:
        return self.status == RobotStatus.ONLINE and self.current_order_id is None

    def __repr__(self):
        return f"<Robot #{self.id} - {self.identifier} - {self.status.value}>"
