import pytest

from aristaeus.core.exceptions import ConflictError, NotFoundError
from aristaeus.models import OrderStatus, RobotStatus
from aristaeus.services import robots
from aristaeus.services.transitions import admin_set_order_status, report_order_status

from conftest import fetch_order, fetch_robot


async def test_register_then_reconnect(db):
    first = await robots.register_robot(db, "Kitchen Robot 01", "MOCK_ROBOT_001")
    assert first.created
    assert first.status == RobotStatus.ONLINE

    again = await robots.register_robot(db, "Kitchen Robot One", "MOCK_ROBOT_001")
    assert not again.created
    assert again.robot_id == first.robot_id

    robot = await fetch_robot(db, first.robot_id)
    assert robot.name == "Kitchen Robot One"
    assert robot.last_heartbeat is not None


async def test_reconnect_after_error_comes_back_online(db, add_robot):
    robot_id = await add_robot("R1", status=RobotStatus.ERROR)

    result = await robots.register_robot(db, "Robot R1", "R1")

    assert result.robot_id == robot_id
    assert result.status == RobotStatus.ONLINE


async def test_reconnect_while_bound_stays_busy(db, add_robot, place_order):
    robot_id = await add_robot("R1")
    order = await place_order()

    result = await robots.register_robot(db, "Robot R1", "R1")

    assert result.status == RobotStatus.BUSY
    assert (await fetch_robot(db, robot_id)).current_order_id == order.id


async def test_heartbeat_unknown_robot(db):
    with pytest.raises(NotFoundError):
        await robots.record_heartbeat(db, 42, "online")


async def test_heartbeat_going_offline(db, add_robot):
    robot_id = await add_robot("R1")

    result = await robots.record_heartbeat(db, robot_id, RobotStatus.OFFLINE)

    assert result.status == RobotStatus.OFFLINE
    assert result.assignment is None
    assert (await fetch_robot(db, robot_id)).status == RobotStatus.OFFLINE


async def test_online_heartbeat_picks_up_pending_order(db, add_robot, place_order):
    robot_id = await add_robot("R1", status=RobotStatus.OFFLINE)
    order = await place_order()
    assert order.status == OrderStatus.PENDING

    result = await robots.record_heartbeat(db, robot_id, "online")

    assert result.status == RobotStatus.BUSY
    assert result.assigned_order_id == order.id
    assert (await fetch_order(db, order.id)).status == OrderStatus.QUEUED


async def test_bound_robot_must_stay_busy(db, add_robot, place_order):
    robot_id = await add_robot("R1")
    await place_order()

    ok = await robots.record_heartbeat(db, robot_id, "busy")
    assert ok.status == RobotStatus.BUSY

    for status in ("online", "offline", "error"):
        with pytest.raises(ConflictError) as exc_info:
            await robots.record_heartbeat(db, robot_id, status)
        assert exc_info.value.allowed == ["busy"]

    robot = await fetch_robot(db, robot_id)
    assert robot.status == RobotStatus.BUSY
    assert robot.current_order_id is not None


async def test_unbound_robot_cannot_claim_busy(db, add_robot):
    robot_id = await add_robot("R1")

    with pytest.raises(ConflictError):
        await robots.record_heartbeat(db, robot_id, "busy")

    assert (await fetch_robot(db, robot_id)).status == RobotStatus.ONLINE


async def test_poll_acknowledges_assignment(db, add_robot, place_order, catalog_ids):
    robot_id = await add_robot("R1")
    order = await place_order(grams=120)

    polled = await robots.get_next_order(db, robot_id)

    assert polled.id == order.id
    assert polled.status == OrderStatus.ASSIGNED
    assert [(i.ingredient.name, i.sequence_order) for i in polled.items] == [("Rice", 1)]
    assert (await fetch_order(db, order.id)).status == OrderStatus.ASSIGNED

    again = await robots.get_next_order(db, robot_id)
    assert again.id == order.id
    assert again.status == OrderStatus.ASSIGNED


async def test_poll_with_nothing_to_do(db, add_robot):
    robot_id = await add_robot("R1")

    assert await robots.get_next_order(db, robot_id) is None


async def test_poll_unknown_robot(db):
    with pytest.raises(NotFoundError):
        await robots.get_next_order(db, 7)


async def test_poll_after_start_returns_nothing(db, add_robot, place_order):
    robot_id = await add_robot("R1")
    await place_order()
    order = await robots.get_next_order(db, robot_id)

    await report_order_status(db, order.id, robot_id, "preparing")

    assert await robots.get_next_order(db, robot_id) is None


async def test_poll_ignores_reopened_finished_order(db, add_robot, place_order):
    robot_id = await add_robot("R1")
    first = await place_order()
    await robots.get_next_order(db, robot_id)
    for status in ("preparing", "ready"):
        await report_order_status(db, first.id, robot_id, status)
    second = await place_order()
    await report_order_status(db, first.id, robot_id, "completed")
    assert (await fetch_robot(db, robot_id)).current_order_id == second.id

    await admin_set_order_status(db, first.id, "queued")
    polled = await robots.get_next_order(db, robot_id)

    assert polled.id == second.id
    assert (await fetch_order(db, first.id)).status == OrderStatus.QUEUED
