"""
Assignment Engine

Binds one pending order to one available robot. Both directions (a new
order looking for a robot, a freed robot looking for an order) go
through try_assign() and end in the same bind primitive.

Concurrency:
    Candidates are read with SELECT ... FOR UPDATE SKIP LOCKED so that
    concurrent attempts on PostgreSQL pick different rows. The bind then
    re-checks both preconditions in conditional UPDATE statements; if
    either row changed in the meantime nothing matches, AssignmentConflict
    rolls the whole transaction back and the attempt becomes a no-op.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from aristaeus.core.exceptions import AssignmentConflict
from aristaeus.database import Database
from aristaeus.models import Order, OrderStatus, Robot, RobotStatus, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    order_id: int
    robot_id: int


async def select_available_robot(session: AsyncSession) -> Optional[Robot]:
    """
    Online robot without an order, freshest heartbeat first.

    Robots that never sent a heartbeat come last; ties go to the lowest id.
    """
    result = await session.execute(
        select(Robot)
        .where(
            Robot.status == RobotStatus.ONLINE,
            Robot.current_order_id.is_(None),
        )
        .order_by(Robot.last_heartbeat.desc().nulls_last(), Robot.id.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    return result.scalar_one_or_none()


async def select_oldest_pending_order(session: AsyncSession) -> Optional[Order]:
    """Unassigned pending order with the earliest creation time (FIFO)."""
    result = await session.execute(
        select(Order)
        .where(
            Order.status == OrderStatus.PENDING,
            Order.assigned_robot_id.is_(None),
        )
        .order_by(Order.created_at.asc(), Order.id.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    return result.scalar_one_or_none()


async def bind_order_to_robot(
    session: AsyncSession,
    order_id: int,
    robot_id: int,
) -> Assignment:
    """
    Atomically bind an order to a robot inside the caller's transaction.

    Robot: online and unbound -> busy, current_order_id = order_id
    Order: pending and unassigned -> queued, assigned_robot_id, assigned_at

    Raises:
        AssignmentConflict: either precondition no longer holds. The caller
            must let it escape the transaction so both updates roll back.
    """
    robot_result = await session.execute(
        update(Robot)
        .where(
            Robot.id == robot_id,
            Robot.status == RobotStatus.ONLINE,
            Robot.current_order_id.is_(None),
        )
        .values(status=RobotStatus.BUSY, current_order_id=order_id)
        .execution_options(synchronize_session=False)
    )
    if robot_result.rowcount != 1:
        raise AssignmentConflict(f"Robot {robot_id} is no longer available")

    order_result = await session.execute(
        update(Order)
        .where(
            Order.id == order_id,
            Order.status == OrderStatus.PENDING,
            Order.assigned_robot_id.is_(None),
        )
        .values(
            status=OrderStatus.QUEUED,
            assigned_robot_id=robot_id,
            assigned_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if order_result.rowcount != 1:
        raise AssignmentConflict(f"Order {order_id} is no longer pending")

    logger.info(f"Assigned order #{order_id} to robot #{robot_id}")
    return Assignment(order_id=order_id, robot_id=robot_id)


async def try_assign(
    db: Database,
    *,
    order_id: Optional[int] = None,
    robot_id: Optional[int] = None,
) -> Optional[Assignment]:
    """
    Attempt one assignment in its own transaction.

    Pass ``order_id`` to find a robot for that order, or ``robot_id`` to
    find the oldest pending order for that robot.

    Returns:
        The Assignment made, or None when there was nothing to match or
        a concurrent request got there first.
    """
    if (order_id is None) == (robot_id is None):
        raise ValueError("try_assign needs exactly one of order_id or robot_id")

    try:
        async with db.transaction() as session:
            if order_id is not None:
                robot = await select_available_robot(session)
                if robot is None:
                    logger.debug(f"No robot available for order #{order_id}")
                    return None
                return await bind_order_to_robot(session, order_id, robot.id)

            robot = await session.get(Robot, robot_id, with_for_update=True)
            if robot is None or not robot.is_available:
                return None

            order = await select_oldest_pending_order(session)
            if order is None:
                logger.debug(f"No pending order for robot #{robot_id}")
                return None
            return await bind_order_to_robot(session, order.id, robot_id)

    except AssignmentConflict as e:
        logger.info(f"Assignment attempt abandoned: {e}")
        return None
