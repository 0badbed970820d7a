"""
Pydantic Schemas for Request/Response Validation

Request schemas carry the structural half of order admission: bowl size,
item shape, customer and address fields. Semantic checks that need the
catalog live in services/admission.py.

Version: 1.0.0
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aristaeus.models import Order, OrderStatus, RobotStatus, IngredientCategory
from aristaeus.services.nutrition import BOWL_SIZES, MIN_QUANTITY_GRAMS


PHONE_PATTERN = re.compile(r"^(\+57)?[0-9]{10}$")
POSTAL_CODE_PATTERN = re.compile(r"^[0-9]{6}$")
EMAIL_PATTERN = re.compile(r"^[\w\.+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")


def validate_phone_number(v: str) -> str:
    """Accept 10 national digits, optionally prefixed by +57."""
    if not PHONE_PATTERN.match(v):
        raise ValueError("Invalid phone format. Use +57XXXXXXXXXX or 10 digits")
    return v


# =============================================================================
# ENUMS
# =============================================================================

class RobotReportedStatus(str, Enum):
    """Statuses a robot may report for the order it is working on."""
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single ingredient portion in an order."""
    ingredient_id: int = Field(..., gt=0, examples=[1])
    quantity_grams: float = Field(..., ge=MIN_QUANTITY_GRAMS, examples=[100])


class AddressCreate(BaseModel):
    """Delivery address (street, neighborhood, city, department)."""
    street_address: str = Field(..., min_length=5, max_length=200, examples=["Calle 100 # 15-20"])
    neighborhood: str = Field(..., min_length=2, max_length=100, examples=["Chicó"])
    city: str = Field(..., min_length=2, max_length=100, examples=["Bogotá"])
    department: str = Field(..., min_length=2, max_length=100, examples=["Bogotá D.C."])
    postal_code: Optional[str] = Field(None, examples=["110131"])

    @field_validator("postal_code")
    @classmethod
    def validate_postal_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not POSTAL_CODE_PATTERN.match(v):
            raise ValueError("Postal code must be exactly 6 digits")
        return v


class CustomerCreate(BaseModel):
    """Customer information submitted with an order."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Juan Pérez"])
    phone: str = Field(..., examples=["3001234567", "+573001234567"])
    email: Optional[str] = Field(None, max_length=255, examples=["juan@example.com"])
    address: AddressCreate

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return validate_phone_number(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v


class OrderCreate(BaseModel):
    """Request schema for creating a new bowl order."""
    bowl_size: int = Field(..., examples=[450])
    customer: CustomerCreate
    items: List[OrderItemCreate] = Field(..., min_length=1)

    @field_validator("bowl_size")
    @classmethod
    def validate_bowl_size(cls, v: int) -> int:
        if v not in BOWL_SIZES:
            sizes = ", ".join(str(s) for s in BOWL_SIZES)
            raise ValueError(f"Bowl size must be one of {sizes} grams")
        return v


class RobotStatusUpdate(BaseModel):
    """Robot reports progress on its bound order."""
    robot_id: int = Field(..., gt=0)
    status: RobotReportedStatus


class AdminStatusUpdate(BaseModel):
    """Administrator override of an order's status."""
    status: OrderStatus


class RobotRegister(BaseModel):
    """Robot registration or re-registration by identifier."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Kitchen Robot 01"])
    identifier: str = Field(..., min_length=1, max_length=100, examples=["MOCK_ROBOT_001"])


class HeartbeatRequest(BaseModel):
    """Periodic robot liveness report."""
    status: RobotStatus


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class IngredientResponse(BaseModel):
    """Catalog entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: IngredientCategory
    calories_per_100g: float
    protein_g_per_100g: float
    carbs_g_per_100g: float
    fat_g_per_100g: float
    fiber_g_per_100g: Optional[float]
    price_per_g: float
    available: bool
    display_order: Optional[int]


class IngredientListResponse(BaseModel):
    ingredients: List[IngredientResponse]


class AddressResponse(BaseModel):
    street_address: str
    neighborhood: str
    city: str
    department: str
    postal_code: Optional[str]


class CustomerResponse(BaseModel):
    id: str
    name: str
    phone: str
    email: Optional[str]
    address: AddressResponse

    @classmethod
    def from_customer(cls, customer: Any) -> "CustomerResponse":
        return cls(
            id=customer.id,
            name=customer.name,
            phone=customer.phone,
            email=customer.email,
            address=AddressResponse(
                street_address=customer.street_address,
                neighborhood=customer.neighborhood,
                city=customer.city,
                department=customer.department,
                postal_code=customer.postal_code,
            ),
        )


class CustomerLookupResponse(BaseModel):
    """Returning-customer check by phone."""
    exists: bool
    customer: Optional[CustomerResponse] = None


class OrderItemResponse(BaseModel):
    ingredient_id: int
    ingredient_name: str
    quantity_grams: float
    sequence_order: int


class NutritionalSummaryResponse(BaseModel):
    total_calories: float
    total_protein_g: float
    total_carbs_g: float
    total_fat_g: float
    total_fiber_g: float
    total_weight_g: float
    total_price: float


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: int
    bowl_size: int
    status: OrderStatus
    customer: CustomerResponse
    items: List[OrderItemResponse]
    nutritional_summary: NutritionalSummaryResponse
    assigned_robot_id: Optional[int]
    created_at: datetime
    assigned_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        """Build from an Order loaded with its customer and items."""
        return cls(
            id=order.id,
            bowl_size=order.bowl_size,
            status=order.status,
            customer=CustomerResponse.from_customer(order.customer),
            items=[
                OrderItemResponse(
                    ingredient_id=item.ingredient_id,
                    ingredient_name=item.ingredient.name,
                    quantity_grams=item.quantity_grams,
                    sequence_order=item.sequence_order,
                )
                for item in order.items
            ],
            nutritional_summary=NutritionalSummaryResponse(
                total_calories=order.total_calories,
                total_protein_g=order.total_protein_g,
                total_carbs_g=order.total_carbs_g,
                total_fat_g=order.total_fat_g,
                total_fiber_g=order.total_fiber_g,
                total_weight_g=order.total_weight_g,
                total_price=order.total_price,
            ),
            assigned_robot_id=order.assigned_robot_id,
            created_at=order.created_at,
            assigned_at=order.assigned_at,
            started_at=order.started_at,
            completed_at=order.completed_at,
        )


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool = True
    message: str
    order_id: int
    status: OrderStatus
    total_price: float
    created_at: datetime


class OrderListResponse(BaseModel):
    """Response for listing orders."""
    total: int
    orders: List[OrderResponse]


class StatusUpdateResponse(BaseModel):
    """Acknowledgement of a status change."""
    success: bool = True
    order_id: int
    current_status: OrderStatus


class RobotRegisterResponse(BaseModel):
    robot_id: int
    status: RobotStatus
    message: str


class HeartbeatResponse(BaseModel):
    success: bool = True
    status: RobotStatus
    assigned_order_id: Optional[int] = None


class NextOrderItem(BaseModel):
    ingredient_id: int
    ingredient_name: str
    quantity_grams: float
    sequence_order: int


class NextOrderResponse(BaseModel):
    """Work handed to a polling robot; order_id is null when idle."""
    order_id: Optional[int] = None
    bowl_size: Optional[int] = None
    status: Optional[OrderStatus] = None
    items: List[NextOrderItem] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order: Optional[Order]) -> "NextOrderResponse":
        if order is None:
            return cls()
        return cls(
            order_id=order.id,
            bowl_size=order.bowl_size,
            status=order.status,
            items=[
                NextOrderItem(
                    ingredient_id=item.ingredient_id,
                    ingredient_name=item.ingredient.name,
                    quantity_grams=item.quantity_grams,
                    sequence_order=item.sequence_order,
                )
                for item in order.items
            ],
        )


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
