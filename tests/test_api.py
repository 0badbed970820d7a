import httpx
import pytest

from aristaeus.main import app

from conftest import order_payload


@pytest.fixture
async def client(db):
    app.state.db = db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register(client, identifier="MOCK_ROBOT_001"):
    response = await client.post(
        "/api/robots/register",
        json={"name": "Kitchen Robot 01", "identifier": identifier},
    )
    return response


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["orders"] == "/api/orders"


async def test_ingredient_catalog(client, catalog_ids, add_ingredient):
    await add_ingredient("Salmon", available=False)

    response = await client.get("/api/ingredients")

    assert response.status_code == 200
    names = {i["name"] for i in response.json()["ingredients"]}
    assert names == {"Rice", "Chicken"}


async def test_create_order_prices_and_assigns(client, catalog_ids):
    robot = (await register(client)).json()

    response = await client.post(
        "/api/orders",
        json=order_payload([(catalog_ids["rice"], 100), (catalog_ids["chicken"], 50)]),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "queued"
    assert body["total_price"] == 2600

    order = (await client.get(f"/api/orders/{body['order_id']}")).json()
    assert order["assigned_robot_id"] == robot["robot_id"]
    assert order["nutritional_summary"]["total_weight_g"] == 150
    assert order["nutritional_summary"]["total_calories"] == pytest.approx(212.5)
    assert [i["ingredient_name"] for i in order["items"]] == ["Rice", "Chicken"]
    assert order["customer"]["address"]["city"] == "Bogota"


async def test_structural_errors_are_400(client, catalog_ids):
    payload = order_payload([(catalog_ids["rice"], 100)], bowl_size=300)

    response = await client.post("/api/orders", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Bad Request"
    assert any(e["loc"][-1] == "bowl_size" for e in body["details"]["errors"])


async def test_capacity_error_is_400(client, catalog_ids):
    payload = order_payload([(catalog_ids["rice"], 260)], bowl_size=250)

    response = await client.post("/api/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Total weight (260g) exceeds bowl capacity (250g)"


async def test_unknown_ingredient_is_400(client, catalog_ids):
    payload = order_payload([(catalog_ids["rice"], 100), (999, 50)])

    response = await client.post("/api/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["details"]["missing_ids"] == [999]
    assert (await client.get("/api/orders")).json()["total"] == 0


async def test_missing_order_is_404(client):
    response = await client.get("/api/orders/12345")

    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


async def test_list_orders_newest_first_with_filter(client, catalog_ids):
    ids = []
    for _ in range(3):
        response = await client.post("/api/orders", json=order_payload([(catalog_ids["rice"], 50)]))
        ids.append(response.json()["order_id"])
    await client.put(f"/api/orders/{ids[0]}/status", json={"status": "cancelled"})

    everything = (await client.get("/api/orders")).json()
    assert everything["total"] == 3
    assert [o["id"] for o in everything["orders"]] == list(reversed(ids))

    pending = (await client.get("/api/orders", params={"status": "pending"})).json()
    assert [o["id"] for o in pending["orders"]] == [ids[2], ids[1]]

    response = await client.get("/api/orders", params={"status": "lost"})
    assert response.status_code == 400


async def test_robot_registration_codes(client):
    first = await register(client)
    second = await register(client)

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["robot_id"] == first.json()["robot_id"]
    assert second.json()["message"] == "Robot reconnected"


async def test_robot_full_cycle(client, catalog_ids):
    robot_id = (await register(client)).json()["robot_id"]
    order_id = (
        await client.post("/api/orders", json=order_payload([(catalog_ids["rice"], 100)]))
    ).json()["order_id"]

    work = (await client.get(f"/api/robots/{robot_id}/next-order")).json()
    assert work["order_id"] == order_id
    assert work["status"] == "assigned"
    assert work["items"][0]["ingredient_name"] == "Rice"

    for status in ("preparing", "ready"):
        response = await client.post(
            f"/api/orders/{order_id}/status",
            json={"robot_id": robot_id, "status": status},
        )
        assert response.status_code == 200
        assert response.json()["current_status"] == status

    response = await client.post(
        f"/api/orders/{order_id}/status",
        json={"robot_id": robot_id, "status": "preparing"},
    )
    assert response.status_code == 409
    assert response.json()["details"] == {"current_status": "ready", "allowed": ["completed"]}

    response = await client.post(
        f"/api/orders/{order_id}/status",
        json={"robot_id": robot_id, "status": "completed"},
    )
    assert response.status_code == 200

    idle = (await client.get(f"/api/robots/{robot_id}/next-order")).json()
    assert idle["order_id"] is None
    assert idle["items"] == []


async def test_robot_status_rules(client, catalog_ids):
    robot_id = (await register(client)).json()["robot_id"]
    order_id = (
        await client.post("/api/orders", json=order_payload([(catalog_ids["rice"], 100)]))
    ).json()["order_id"]

    response = await client.post(
        f"/api/orders/{order_id}/status",
        json={"robot_id": robot_id + 1, "status": "preparing"},
    )
    assert response.status_code == 409

    response = await client.post(
        f"/api/orders/{order_id}/status",
        json={"robot_id": robot_id, "status": "cancelled"},
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/orders/999/status",
        json={"robot_id": robot_id, "status": "preparing"},
    )
    assert response.status_code == 404


async def test_heartbeats(client, catalog_ids):
    robot_id = (await register(client)).json()["robot_id"]

    response = await client.post(f"/api/robots/{robot_id}/heartbeat", json={"status": "offline"})
    assert response.status_code == 200
    assert response.json()["status"] == "offline"

    order_id = (
        await client.post("/api/orders", json=order_payload([(catalog_ids["rice"], 100)]))
    ).json()["order_id"]

    response = await client.post(f"/api/robots/{robot_id}/heartbeat", json={"status": "online"})
    assert response.json()["assigned_order_id"] == order_id
    assert response.json()["status"] == "busy"

    response = await client.post(f"/api/robots/{robot_id}/heartbeat", json={"status": "online"})
    assert response.status_code == 409

    response = await client.post("/api/robots/999/heartbeat", json={"status": "online"})
    assert response.status_code == 404


async def test_admin_override(client, catalog_ids):
    robot_id = (await register(client)).json()["robot_id"]
    order_id = (
        await client.post("/api/orders", json=order_payload([(catalog_ids["rice"], 100)]))
    ).json()["order_id"]

    response = await client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
    assert response.status_code == 200
    assert response.json()["current_status"] == "cancelled"

    order = (await client.get(f"/api/orders/{order_id}")).json()
    assert order["completed_at"] is not None

    idle = (await client.get(f"/api/robots/{robot_id}/next-order")).json()
    assert idle["order_id"] is None

    response = await client.put(f"/api/orders/{order_id}/status", json={"status": "lost"})
    assert response.status_code == 400

    response = await client.put("/api/orders/999/status", json={"status": "cancelled"})
    assert response.status_code == 404


async def test_check_phone(client, catalog_ids):
    response = await client.get("/api/customers/check-phone", params={"phone": "3001234567"})
    assert response.json() == {"exists": False, "customer": None}

    await client.post("/api/orders", json=order_payload([(catalog_ids["rice"], 100)]))

    response = await client.get("/api/customers/check-phone", params={"phone": "3001234567"})
    body = response.json()
    assert body["exists"] is True
    assert body["customer"]["name"] == "Juan Perez"

    response = await client.get("/api/customers/check-phone", params={"phone": "12"})
    assert response.status_code == 400
