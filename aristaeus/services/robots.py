"""
Robot Registry

Registration, heartbeats and order polling for kitchen robots.

A robot's availability is its status plus its binding:

    online  + no order   available, may be assigned
    busy    + order      working; only the transition controller frees it
    offline / error      not assignable

Heartbeats are last-write-wins on status and last_heartbeat, except that a
bound robot cannot heartbeat itself out of its order.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from aristaeus.core.exceptions import ConflictError, NotFoundError
from aristaeus.database import Database
from aristaeus.models import Order, OrderItem, OrderStatus, Robot, RobotStatus, utcnow
from aristaeus.services.assignment import Assignment, try_assign

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    robot_id: int
    status: RobotStatus
    created: bool


@dataclass(frozen=True)
class HeartbeatResult:
    robot_id: int
    status: RobotStatus
    assigned_order_id: Optional[int] = None
    assignment: Optional[Assignment] = None


def _as_robot_status(value: Any) -> RobotStatus:
    return RobotStatus(getattr(value, "value", value))


async def register_robot(db: Database, name: str, identifier: str) -> RegistrationResult:
    """
    Register a robot, or reconnect one already known by ``identifier``.

    A reconnecting robot gets its name and heartbeat refreshed. If it is
    still bound to an order it stays busy; otherwise it comes back online.
    """
    async with db.transaction() as session:
        result = await session.execute(
            select(Robot).where(Robot.identifier == identifier).with_for_update()
        )
        robot = result.scalar_one_or_none()
        now = utcnow()

        if robot is not None:
            robot.name = name
            robot.last_heartbeat = now
            if robot.current_order_id is None:
                robot.status = RobotStatus.ONLINE
            created = False
        else:
            robot = Robot(
                name=name,
                identifier=identifier,
                status=RobotStatus.ONLINE,
                last_heartbeat=now,
            )
            session.add(robot)
            created = True

        await session.flush()
        robot_id = robot.id
        status = robot.status

    if created:
        logger.info(f"Robot registered: #{robot_id} ({identifier})")
    else:
        logger.info(f"Robot reconnected: #{robot_id} ({identifier}) - {status.value}")

    return RegistrationResult(robot_id=robot_id, status=status, created=created)


async def record_heartbeat(db: Database, robot_id: int, status: Any) -> HeartbeatResult:
    """
    Record a heartbeat and the robot's self-reported status.

    A robot that ends up online with no order is offered the oldest
    pending order straight away.

    Raises:
        NotFoundError: unknown robot
        ConflictError: a bound robot reported anything but busy, or an
            unbound robot reported busy
    """
    reported = _as_robot_status(status)

    async with db.transaction() as session:
        robot = await session.get(Robot, robot_id, with_for_update=True)
        if robot is None:
            raise NotFoundError(f"Robot {robot_id} not found")

        if robot.current_order_id is not None and reported != RobotStatus.BUSY:
            raise ConflictError(
                f"Robot {robot_id} is working on order {robot.current_order_id}; "
                f"report the order status before going {reported.value}",
                current_status=robot.status.value,
                allowed=[RobotStatus.BUSY.value],
            )

        if robot.current_order_id is None and reported == RobotStatus.BUSY:
            raise ConflictError(
                f"Robot {robot_id} has no order and cannot be busy",
                current_status=robot.status.value,
                allowed=[
                    RobotStatus.ONLINE.value,
                    RobotStatus.OFFLINE.value,
                    RobotStatus.ERROR.value,
                ],
            )

        robot.status = reported
        robot.last_heartbeat = utcnow()
        available = robot.is_available
        current_order_id = robot.current_order_id

    logger.debug(f"Heartbeat from robot #{robot_id}: {reported.value}")

    assignment = None
    if available:
        assignment = await try_assign(db, robot_id=robot_id)
        if assignment is not None:
            reported = RobotStatus.BUSY
            current_order_id = assignment.order_id

    return HeartbeatResult(
        robot_id=robot_id,
        status=reported,
        assigned_order_id=current_order_id,
        assignment=assignment,
    )


async def get_next_order(db: Database, robot_id: int) -> Optional[Order]:
    """
    The order this robot is currently bound to, if it has not started yet.

    The first poll acknowledges the assignment (queued -> assigned).
    Returns None when the robot has nothing to do.

    Raises:
        NotFoundError: unknown robot
    """
    async with db.transaction() as session:
        robot = await session.get(Robot, robot_id)
        if robot is None:
            raise NotFoundError(f"Robot {robot_id} not found")
        if robot.current_order_id is None:
            return None

        # finished orders keep assigned_robot_id, so match the binding itself
        result = await session.execute(
            select(Order)
            .where(
                Order.id == robot.current_order_id,
                Order.assigned_robot_id == robot_id,
                Order.status.in_([OrderStatus.QUEUED, OrderStatus.ASSIGNED]),
            )
            .options(selectinload(Order.items).selectinload(OrderItem.ingredient))
            .with_for_update()
        )
        order = result.scalar_one_or_none()
        if order is None:
            return None

        if order.status == OrderStatus.QUEUED:
            order.status = OrderStatus.ASSIGNED
            logger.info(f"Robot #{robot_id} picked up order #{order.id}")

    return order
