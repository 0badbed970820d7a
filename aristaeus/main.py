"""
FastAPI Application Entry Point

Aristaeus Bowl Kitchen - robot-assisted bowl ordering.

Endpoints:
    - POST /api/orders: Create an order
    - GET /api/orders: List orders
    - GET /api/orders/{order_id}: Order details
    - PUT /api/orders/{order_id}/status: Administrator status override
    - POST /api/orders/{order_id}/status: Robot status report
    - POST /api/robots/register: Register or reconnect a robot
    - POST /api/robots/{robot_id}/heartbeat: Robot heartbeat
    - GET /api/robots/{robot_id}/next-order: Robot polls for work
    - GET /api/ingredients: Available ingredient catalog
    - GET /api/customers/check-phone: Returning customer lookup
    - GET /health: System health check

Run with:
    uvicorn aristaeus.main:app --port 3000

Version: 1.0.0
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request, Response, status as http_status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from aristaeus.core.config import get_settings, setup_logging
from aristaeus.core.exceptions import KitchenError, ValidationFailedError
from aristaeus.database import Database, get_db
from aristaeus.models import OrderStatus
from aristaeus.schemas import (
    AdminStatusUpdate,
    CustomerLookupResponse,
    CustomerResponse,
    ErrorResponse,
    HealthResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    IngredientListResponse,
    IngredientResponse,
    NextOrderResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
    RobotRegister,
    RobotRegisterResponse,
    RobotStatusUpdate,
    StatusUpdateResponse,
    validate_phone_number,
)
from aristaeus.services import catalog, orders, robots, transitions

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    db = Database.from_settings(settings)
    await db.create_all()
    app.state.db = db
    logger.info("Database initialized")

    problems = settings.validate_production_config()
    if problems:
        logger.warning(f"Unsafe configuration for {settings.env_mode.value}: {problems}")

    logger.info("Application ready")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await db.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Ordering platform for a robot-assisted bowl kitchen: priced bowl "
        "orders, robot assignment and the order status workflow."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "ingredients": "/api/ingredients",
        "orders": "/api/orders",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(db: Database = Depends(get_db)) -> HealthResponse:
    """Verify the database and the Celery broker are reachable."""

    # Check database
    db_status = "healthy"
    try:
        async with db.session() as session:
            await session.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check Redis
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# CATALOG ENDPOINTS
# =============================================================================

@app.get(
    "/api/ingredients",
    response_model=IngredientListResponse,
    tags=["Catalog"],
    summary="Available Ingredients",
)
async def list_ingredients(db: Database = Depends(get_db)) -> IngredientListResponse:
    async with db.session() as session:
        ingredients = await catalog.list_available(session)
    return IngredientListResponse(
        ingredients=[IngredientResponse.model_validate(i) for i in ingredients]
    )


@app.get(
    "/api/customers/check-phone",
    response_model=CustomerLookupResponse,
    responses=ERROR_RESPONSES,
    tags=["Catalog"],
    summary="Returning Customer Lookup",
)
async def check_phone(
    phone: str = Query(..., min_length=1),
    db: Database = Depends(get_db),
) -> CustomerLookupResponse:
    """Prefill data for a customer who has ordered before."""
    try:
        validate_phone_number(phone)
    except ValueError as e:
        raise ValidationFailedError(str(e), {"phone": phone}) from e

    async with db.session() as session:
        customer = await catalog.find_customer_by_phone(session, phone)

    if customer is None:
        return CustomerLookupResponse(exists=False)
    return CustomerLookupResponse(
        exists=True,
        customer=CustomerResponse.from_customer(customer),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    status_code=http_status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    db: Database = Depends(get_db),
) -> OrderCreateResponse:
    """
    Validate, price and store a bowl order, then hand it to a free robot
    if one is available.
    """
    logger.info(f"Creating order for: {order_data.customer.phone}")

    order = await orders.create_order(db, order_data)

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully!",
        order_id=order.id,
        status=order.status,
        total_price=order.total_price,
        created_at=order.created_at,
    )


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    db: Database = Depends(get_db),
) -> OrderListResponse:
    """All orders, newest first."""
    found = await orders.list_orders(db, status=status)
    return OrderListResponse(
        total=len(found),
        orders=[OrderResponse.from_order(order) for order in found],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    db: Database = Depends(get_db),
) -> OrderResponse:
    """Get a specific order by ID."""
    order = await orders.get_order(db, order_id)
    return OrderResponse.from_order(order)


@app.put(
    "/api/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Set Order Status (Administrator)",
)
async def admin_update_status(
    order_id: int,
    update: AdminStatusUpdate,
    db: Database = Depends(get_db),
) -> StatusUpdateResponse:
    result = await transitions.admin_set_order_status(db, order_id, update.status)
    return StatusUpdateResponse(order_id=result.order_id, current_status=result.current_status)


@app.post(
    "/api/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    responses=ERROR_RESPONSES,
    tags=["Robots"],
    summary="Report Order Status (Robot)",
)
async def robot_update_status(
    order_id: int,
    update: RobotStatusUpdate,
    db: Database = Depends(get_db),
) -> StatusUpdateResponse:
    result = await transitions.report_order_status(db, order_id, update.robot_id, update.status)
    return StatusUpdateResponse(order_id=result.order_id, current_status=result.current_status)


# =============================================================================
# ROBOT API ENDPOINTS
# =============================================================================

@app.post(
    "/api/robots/register",
    response_model=RobotRegisterResponse,
    status_code=http_status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Robots"],
    summary="Register Robot",
)
async def register_robot(
    registration: RobotRegister,
    response: Response,
    db: Database = Depends(get_db),
) -> RobotRegisterResponse:
    """New identifiers get 201; a known identifier reconnects with 200."""
    result = await robots.register_robot(db, registration.name, registration.identifier)

    if not result.created:
        response.status_code = http_status.HTTP_200_OK

    return RobotRegisterResponse(
        robot_id=result.robot_id,
        status=result.status,
        message="Robot registered" if result.created else "Robot reconnected",
    )


@app.post(
    "/api/robots/{robot_id}/heartbeat",
    response_model=HeartbeatResponse,
    responses=ERROR_RESPONSES,
    tags=["Robots"],
)
async def robot_heartbeat(
    robot_id: int,
    heartbeat: HeartbeatRequest,
    db: Database = Depends(get_db),
) -> HeartbeatResponse:
    result = await robots.record_heartbeat(db, robot_id, heartbeat.status)
    return HeartbeatResponse(
        status=result.status,
        assigned_order_id=result.assigned_order_id,
    )


@app.get(
    "/api/robots/{robot_id}/next-order",
    response_model=NextOrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Robots"],
)
async def robot_next_order(
    robot_id: int,
    db: Database = Depends(get_db),
) -> NextOrderResponse:
    """The robot's bound order; order_id is null when there is nothing to do."""
    order = await robots.get_next_order(db, robot_id)
    return NextOrderResponse.from_order(order)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(KitchenError)
async def kitchen_error_handler(request: Request, exc: KitchenError) -> JSONResponse:
    """Map the core error hierarchy to status codes."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict()),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Structural validation failures are reported as 400 with field details."""
    errors = [
        {key: value for key, value in error.items() if key not in ("ctx", "url")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({
            "success": False,
            "error": "Bad Request",
            "detail": "Validation failed",
            "details": {"errors": errors},
        }),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
            "details": None,
        },
    )
