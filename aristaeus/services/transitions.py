"""
Order Status Transitions

Two entry points with different authority:

    report_order_status()     robot-initiated; the robot must own the order
                              and the move must be in ROBOT_TRANSITIONS
    admin_set_order_status()  administrator override to any status

Any move into a terminal status releases the bound robot in the same
transaction as the order update. Once committed, the freed robot is
offered the next pending order and the finished order is queued for the
production log.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from aristaeus.core.config import get_settings
from aristaeus.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from aristaeus.database import Database
from aristaeus.models import (
    Order,
    OrderItem,
    OrderStatus,
    Robot,
    RobotStatus,
    utcnow,
)
from aristaeus.services.assignment import Assignment, try_assign
from aristaeus.services.production_log import build_log_row
from aristaeus.tasks import export_order_to_production_log

logger = logging.getLogger(__name__)


ROBOT_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.ASSIGNED: (OrderStatus.PREPARING,),
    OrderStatus.PREPARING: (OrderStatus.READY, OrderStatus.FAILED),
    OrderStatus.READY: (OrderStatus.COMPLETED,),
}

ROBOT_REPORTABLE_STATUSES = frozenset({
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
    OrderStatus.FAILED,
})


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of a committed status change.

    Attributes:
        order_id: The order that moved
        previous_status: Status before the change
        current_status: Status after the change
        released_robot_id: Robot freed by this change, if any
        assignments: Bindings made right after the commit
    """
    order_id: int
    previous_status: OrderStatus
    current_status: OrderStatus
    released_robot_id: Optional[int] = None
    assignments: tuple[Assignment, ...] = field(default_factory=tuple)


def as_order_status(value: Any) -> OrderStatus:
    """Coerce a string or any str-valued enum member to OrderStatus."""
    try:
        return OrderStatus(getattr(value, "value", value))
    except ValueError:
        valid = [s.value for s in OrderStatus]
        raise ValidationFailedError(
            f"Invalid status '{value}'. Options: {valid}",
            {"allowed": valid},
        ) from None


async def load_order_for_update(session: AsyncSession, order_id: int) -> Order:
    """Lock the order row, with customer and items loaded for the log row."""
    order = await session.get(
        Order,
        order_id,
        with_for_update=True,
        options=[
            selectinload(Order.customer),
            selectinload(Order.items).selectinload(OrderItem.ingredient),
        ],
    )
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


async def release_robot(session: AsyncSession, robot_id: int, order_id: int) -> bool:
    """
    Free a robot that is still bound to ``order_id``.

    Returns:
        True if the robot was released, False if it was not bound to
        this order (nothing changes in that case).
    """
    result = await session.execute(
        update(Robot)
        .where(Robot.id == robot_id, Robot.current_order_id == order_id)
        .values(status=RobotStatus.ONLINE, current_order_id=None)
        .execution_options(synchronize_session=False)
    )
    released = result.rowcount == 1
    if released:
        logger.info(f"Robot #{robot_id} released from order #{order_id}")
    return released


def _queue_production_log(row: dict[str, Any]) -> None:
    if not get_settings().export_production_log:
        return
    try:
        export_order_to_production_log.delay(row)
    except Exception as e:
        # The transition is already committed; the log is auxiliary.
        logger.warning(f"Could not queue production log for order #{row['order_id']}: {e}")


async def _after_commit(
    db: Database,
    order_id: int,
    current_status: OrderStatus,
    released_robot_id: Optional[int],
    log_row: Optional[dict[str, Any]],
) -> tuple[Assignment, ...]:
    if log_row is not None:
        _queue_production_log(log_row)

    assignments = []
    if current_status == OrderStatus.PENDING:
        assignment = await try_assign(db, order_id=order_id)
        if assignment is not None:
            assignments.append(assignment)

    if released_robot_id is not None and get_settings().reassign_on_release:
        assignment = await try_assign(db, robot_id=released_robot_id)
        if assignment is not None:
            assignments.append(assignment)

    return tuple(assignments)


async def report_order_status(
    db: Database,
    order_id: int,
    robot_id: int,
    status: Any,
) -> TransitionResult:
    """
    Robot-initiated status update.

    Raises:
        ValidationFailedError: status is not one a robot may report
        NotFoundError: no such order
        ConflictError: the order is not assigned to this robot
        InvalidTransitionError: the move is not in ROBOT_TRANSITIONS
    """
    target = as_order_status(status)
    if target not in ROBOT_REPORTABLE_STATUSES:
        raise ValidationFailedError(
            f"Robots cannot report status '{target.value}'",
            {"allowed": sorted(s.value for s in ROBOT_REPORTABLE_STATUSES)},
        )

    released_robot_id = None
    log_row = None

    async with db.transaction() as session:
        order = await load_order_for_update(session, order_id)

        if order.assigned_robot_id != robot_id:
            raise ConflictError(
                f"Robot {robot_id} is not assigned to order {order_id}",
                current_status=order.status.value,
            )

        previous = order.status
        allowed = ROBOT_TRANSITIONS.get(previous, ())
        if target not in allowed:
            logger.warning(
                f"Robot #{robot_id} attempted {previous.value} -> {target.value} on order #{order_id}"
            )
            raise InvalidTransitionError(previous.value, target.value, [s.value for s in allowed])

        now = utcnow()
        order.status = target

        if target == OrderStatus.PREPARING and order.started_at is None:
            order.started_at = now

        if order.is_terminal:
            order.completed_at = now
            if await release_robot(session, robot_id, order.id):
                released_robot_id = robot_id
            else:
                logger.warning(f"Robot #{robot_id} did not mirror order #{order_id} at release")
            log_row = build_log_row(order)

    logger.info(f"Order #{order_id}: {previous.value} -> {target.value} (robot #{robot_id})")

    assignments = await _after_commit(db, order_id, target, released_robot_id, log_row)
    return TransitionResult(
        order_id=order_id,
        previous_status=previous,
        current_status=target,
        released_robot_id=released_robot_id,
        assignments=assignments,
    )


async def admin_set_order_status(
    db: Database,
    order_id: int,
    status: Any,
) -> TransitionResult:
    """
    Administrator override to any status.

    preparing           stamps started_at if unset
    completed/failed/   stamps completed_at and releases the bound robot
    cancelled
    pending             clears every lifecycle stamp and the robot binding,
                        releasing the robot, then re-offers the order

    Raises:
        ValidationFailedError: unknown status
        NotFoundError: no such order
    """
    target = as_order_status(status)
    released_robot_id = None
    log_row = None

    async with db.transaction() as session:
        order = await load_order_for_update(session, order_id)

        previous = order.status
        bound_robot_id = order.assigned_robot_id
        now = utcnow()

        order.status = target

        if target == OrderStatus.PREPARING:
            if order.started_at is None:
                order.started_at = now

        elif order.is_terminal:
            order.completed_at = now
            if bound_robot_id is not None and await release_robot(session, bound_robot_id, order.id):
                released_robot_id = bound_robot_id
            log_row = build_log_row(order)

        elif target == OrderStatus.PENDING:
            order.started_at = None
            order.completed_at = None
            order.assigned_at = None
            order.assigned_robot_id = None
            if bound_robot_id is not None and await release_robot(session, bound_robot_id, order.id):
                released_robot_id = bound_robot_id

    logger.info(f"Order #{order_id}: {previous.value} -> {target.value} (admin)")

    assignments = await _after_commit(db, order_id, target, released_robot_id, log_row)
    return TransitionResult(
        order_id=order_id,
        previous_status=previous,
        current_status=target,
        released_robot_id=released_robot_id,
        assignments=assignments,
    )
