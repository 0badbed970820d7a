"""
Kitchen Simulation Script

Fires concurrent bowl orders at a running API while a fleet of mock
robots polls for work and walks each order through
preparing -> ready -> completed. Afterwards every order is checked for
double assignment.

Run from project root: python scripts/simulate.py

Version: 1.0.0
"""

import asyncio
import sys
import random
import time
import argparse
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:3000"
TOTAL_ORDERS = 50
TOTAL_ROBOTS = 3
TERMINAL = {"completed", "cancelled", "failed"}

# Sample data for random orders
FIRST_NAMES = ["Camila", "Santiago", "Valentina", "Mateo", "Isabella", "Samuel", "Mariana", "Sebastian"]
LAST_NAMES = ["Gomez", "Rodriguez", "Martinez", "Lopez", "Garcia", "Hernandez", "Ramirez", "Torres"]
STREETS = ["Calle 10 # 43-20", "Carrera 70 # 1-45", "Avenida 80 # 30-15", "Calle 33 # 65-10"]
NEIGHBORHOODS = ["El Poblado", "Laureles", "Belen", "Envigado Centro"]
BOWL_SIZES = [250, 450, 600]


def generate_random_customer() -> dict[str, Any]:
    """Generate random customer info."""
    first = random.choice(FIRST_NAMES)
    last = random.choice(LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "phone": f"+573{random.randint(100000000, 999999999)}",
        "email": f"{first.lower()}.{last.lower()}@example.com",
        "address": {
            "street_address": random.choice(STREETS),
            "neighborhood": random.choice(NEIGHBORHOODS),
            "city": "Medellin",
            "department": "Antioquia",
            "postal_code": "050021",
        },
    }


def generate_random_items(ingredient_ids: list[int], bowl_size: int) -> list[dict]:
    """Random items that always fit the bowl."""
    num_items = random.randint(1, 4)
    per_item = bowl_size // num_items
    return [
        {
            "ingredient_id": random.choice(ingredient_ids),
            "quantity_grams": random.randint(10, max(10, per_item)),
        }
        for _ in range(num_items)
    ]


def generate_order_payload(ingredient_ids: list[int]) -> dict[str, Any]:
    bowl_size = random.choice(BOWL_SIZES)
    return {
        "bowl_size": bowl_size,
        "customer": generate_random_customer(),
        "items": generate_random_items(ingredient_ids, bowl_size),
    }


# =============================================================================
# ORDERS
# =============================================================================

async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    ingredient_ids: list[int],
) -> dict[str, Any]:
    """Send one order."""
    payload = generate_order_payload(ingredient_ids)
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=payload,
            timeout=30.0
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data.get("order_id"),
                "total": data.get("total_price"),
                "status": data.get("status"),
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# ROBOTS
# =============================================================================

async def report(client: httpx.AsyncClient, order_id: int, robot_id: int, status: str) -> None:
    response = await client.post(
        f"{API_BASE_URL}/api/orders/{order_id}/status",
        json={"robot_id": robot_id, "status": status},
    )
    response.raise_for_status()


async def run_robot(
    client: httpx.AsyncClient,
    index: int,
    stop: asyncio.Event,
    completed: dict[int, list[int]],
    fail_rate: float,
) -> None:
    """Register, then poll and prepare orders until told to stop."""
    identifier = f"MOCK_ROBOT_{index:03d}"
    response = await client.post(
        f"{API_BASE_URL}/api/robots/register",
        json={"name": f"Mock Robot {index}", "identifier": identifier},
    )
    response.raise_for_status()
    robot_id = response.json()["robot_id"]
    print(f"   Robot #{robot_id} ({identifier}) online")

    while not stop.is_set():
        response = await client.get(f"{API_BASE_URL}/api/robots/{robot_id}/next-order")
        response.raise_for_status()
        order = response.json()
        order_id: Optional[int] = order.get("order_id")

        if order_id is None:
            # Idle: heartbeat so the registry offers us the next pending order
            await client.post(
                f"{API_BASE_URL}/api/robots/{robot_id}/heartbeat",
                json={"status": "online"},
            )
            await asyncio.sleep(0.2)
            continue

        await report(client, order_id, robot_id, "preparing")
        await asyncio.sleep(random.uniform(0.05, 0.2) * len(order["items"]))

        if random.random() < fail_rate:
            await report(client, order_id, robot_id, "failed")
        else:
            await report(client, order_id, robot_id, "ready")
            await report(client, order_id, robot_id, "completed")
        completed[robot_id].append(order_id)


# =============================================================================
# VERIFICATION
# =============================================================================

async def check_assignments(client: httpx.AsyncClient) -> list[str]:
    """Every robot holds at most one non-terminal order."""
    response = await client.get(f"{API_BASE_URL}/api/orders")
    response.raise_for_status()

    active_by_robot = defaultdict(list)
    for order in response.json()["orders"]:
        robot_id = order.get("assigned_robot_id")
        if robot_id is not None and order["status"] not in TERMINAL:
            active_by_robot[robot_id].append(order["id"])

    return [
        f"Robot #{robot_id} holds orders {order_ids}"
        for robot_id, order_ids in active_by_robot.items()
        if len(order_ids) > 1
    ]


async def wait_until_drained(client: httpx.AsyncClient, timeout: float) -> int:
    """Wait for every order to reach a terminal state; returns how many did not."""
    deadline = time.time() + timeout
    while True:
        response = await client.get(f"{API_BASE_URL}/api/orders")
        response.raise_for_status()
        open_orders = [o for o in response.json()["orders"] if o["status"] not in TERMINAL]
        if not open_orders or time.time() > deadline:
            return len(open_orders)
        await asyncio.sleep(0.5)


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    num_orders: int = TOTAL_ORDERS,
    num_robots: int = TOTAL_ROBOTS,
    fail_rate: float = 0.1,
    timeout: float = 120.0,
) -> dict[str, Any]:
    """
    Run the kitchen simulation.

    Args:
        num_orders: Number of orders to fire concurrently
        num_robots: Number of mock robots
        fail_rate: Probability that a robot fails an order it prepares
        timeout: Seconds to wait for the kitchen to drain
    """
    print("=" * 70)
    print("KITCHEN SIMULATION - CONCURRENT ORDERS")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Robots: {num_robots}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    stop = asyncio.Event()
    completed: dict[int, list[int]] = defaultdict(list)

    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.get(f"{API_BASE_URL}/api/ingredients")
        response.raise_for_status()
        ingredient_ids = [i["id"] for i in response.json()["ingredients"]]
        if not ingredient_ids:
            print("No ingredients available. Run: python scripts/seed.py")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        print("\nStarting robots...\n")
        robots = [
            asyncio.create_task(run_robot(client, i + 1, stop, completed, fail_rate))
            for i in range(num_robots)
        ]

        print("\nFiring orders...\n")
        results = await asyncio.gather(
            *(send_order(client, i + 1, ingredient_ids) for i in range(num_orders))
        )

        violations = await check_assignments(client)
        still_open = await wait_until_drained(client, timeout)
        violations += await check_assignments(client)

        stop.set()
        await asyncio.gather(*robots)

    total_time = round(time.time() - start_time, 2)

    # Analyze results
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)

    print(f"\nAccepted Orders: {len(successful)}/{num_orders}")
    print(f"Rejected Orders: {len(failed)}/{num_orders}")
    print(f"Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)
        queued_on_arrival = len([r for r in successful if r.get("status") == "queued"])

        print("\nPerformance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   Assigned on arrival: {queued_on_arrival}")
        print(f"   Total Revenue: ${total_revenue:,.0f}")

    print("\nPer Robot:")
    for robot_id, order_ids in sorted(completed.items()):
        print(f"   Robot #{robot_id}: {len(order_ids)} orders")

    if failed:
        print("\nRejected Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    if still_open:
        print(f"\n{still_open} orders still open after {timeout}s")

    if violations:
        print("\nDOUBLE ASSIGNMENT DETECTED:")
        for v in violations:
            print(f"   {v}")
    else:
        print("\nNo double assignments")

    print("\n" + "=" * 70)
    print("VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check Celery terminal - all export tasks should complete")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "violations": violations,
        "still_open": still_open,
        "total_time": total_time,
        "results": results,
    }


async def test_single_flows(ingredient_count: int = 2) -> bool:
    """Test individual flows before the simulation."""
    print("\n" + "=" * 70)
    print("TESTING INDIVIDUAL FLOWS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1. Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   Failed: {response.text}")
            return False
        data = response.json()
        print(f"   Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Redis: {data.get('redis')}")

        print("\n2. Ingredient Catalog...")
        response = await client.get(f"{API_BASE_URL}/api/ingredients")
        ingredients = response.json().get("ingredients", [])
        print(f"   {len(ingredients)} ingredients available")
        if not ingredients:
            return False

        print("\n3. Capacity Rejection...")
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json={
                "bowl_size": 250,
                "customer": generate_random_customer(),
                "items": [{"ingredient_id": ingredients[0]["id"], "quantity_grams": 300}],
            },
        )
        print(f"   {response.status_code}: {response.json().get('detail')}")

        print("\n4. Single Order...")
        ids = [i["id"] for i in ingredients[:ingredient_count]]
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=generate_order_payload(ids),
        )
        if response.status_code == 201:
            data = response.json()
            print(f"   Order #{data.get('order_id')} created ({data.get('status')})")
            print(f"   Total: ${data.get('total_price'):,.0f}")
        else:
            print(f"   Response: {response.text[:100]}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Kitchen Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--robots", type=int, default=TOTAL_ROBOTS, help="Number of mock robots")
    parser.add_argument("--fail-rate", type=float, default=0.1, help="Probability a robot fails an order")
    parser.add_argument("--skip-tests", action="store_true", help="Skip individual tests")
    args = parser.parse_args()

    if not args.skip_tests:
        if not asyncio.run(test_single_flows()):
            print("\nPre-flight tests failed. Fix issues before running simulation.")
            sys.exit(1)
        print("\nPre-flight tests passed!")

    summary = asyncio.run(
        run_simulation(num_orders=args.orders, num_robots=args.robots, fail_rate=args.fail_rate)
    )
    sys.exit(1 if summary.get("violations") else 0)
