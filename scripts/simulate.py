"""
Rush Hour Simulation Script

Fires concurrent orders at a running API while a staff stream listens on
/api/events, then walks part of the orders through the status workflow.
Checks that every committed order and transition shows up exactly once on
the stream.

Run from project root (API and establishment must be open):
    python scripts/simulate.py --orders 30 --staff-key change-me

Version: 1.0.0
"""

import argparse
import asyncio
import json
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"

FIRST_NAMES = ["Ana", "Bruno", "Carla", "Diego", "Elisa", "Fábio", "Gabriela", "Heitor", "Isabela", "João"]
LAST_NAMES = ["Silva", "Souza", "Oliveira", "Santos", "Pereira", "Costa", "Almeida", "Ferreira"]
STREETS = ["Rua das Flores", "Av. Brasil", "Rua XV de Novembro", "Rua São Bento", "Av. Paulista"]
NEIGHBORHOODS = ["Centro", "Jardim América", "Vila Nova"]

MENU = [
    {"item_id": "pz-margherita", "name": "Margherita", "sizes": ["P", "G"], "borders": ["catupiry", "cheddar"]},
    {"item_id": "pz-calabresa", "name": "Calabresa", "sizes": ["P", "G"], "borders": ["catupiry"]},
    {"item_id": "pz-portuguesa", "name": "Portuguesa", "sizes": ["P", "G"], "borders": ["catupiry"]},
    {"item_id": "bb-refri-2l", "name": "Refrigerante 2L", "sizes": [], "borders": []},
]
HALF_AND_HALF = ["Margherita", "Calabresa", "Portuguesa"]

WORKFLOW = ["preparing", "ready", "out_for_delivery", "delivered"]


def generate_random_item() -> dict[str, Any]:
    entry = random.choice(MENU)
    item: dict[str, Any] = {
        "item_id": entry["item_id"],
        "name": entry["name"],
        "quantity": random.randint(1, 2),
    }
    if entry["sizes"]:
        item["size"] = random.choice(entry["sizes"])
    if entry["borders"] and random.random() < 0.4:
        item["border"] = random.choice(entry["borders"])
    if entry["sizes"] and random.random() < 0.3:
        item["flavors"] = random.sample(HALF_AND_HALF, 2)
    return item


def generate_order_payload() -> dict[str, Any]:
    """Random delivery or pickup order."""
    payment = random.choice(["pix", "card", "cash"])
    payload: dict[str, Any] = {
        "items": [generate_random_item() for _ in range(random.randint(1, 3))],
        "customer": {
            "name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
            "phone": f"(11) 9{random.randint(1000, 9999)}-{random.randint(1000, 9999)}",
        },
        "payment_method": payment,
        "notes": random.choice([None, "Sem cebola", "Tocar o interfone", "Troco na entrega"]),
    }
    if payment == "cash" and random.random() < 0.5:
        payload["change_for"] = "100"

    if random.random() < 0.7:
        payload["delivery_mode"] = "delivery"
        payload["delivery_details"] = {
            "address": {
                "street": random.choice(STREETS),
                "number": str(random.randint(1, 999)),
                "neighborhood": random.choice(NEIGHBORHOODS),
            },
            "estimated_time": "40-50 min",
        }
    else:
        payload["delivery_mode"] = "pickup"
    return payload


# =============================================================================
# STAFF STREAM
# =============================================================================

async def listen_for_events(
    client: httpx.AsyncClient,
    staff_key: str,
    received: list[dict],
    connected: asyncio.Event,
) -> None:
    """Collect data frames from the live stream until cancelled."""
    async with client.stream(
        "GET",
        f"{API_BASE_URL}/api/events",
        params={"subscriber_id": "simulation"},
        headers={"X-Staff-Key": staff_key},
        timeout=None,
    ) as response:
        response.raise_for_status()
        async for line in response.aiter_lines():
            if not line.startswith("data: ") or line == "data: ok":
                continue
            frame = json.loads(line[len("data: "):])
            if frame.get("type") == "connected":
                connected.set()
                continue
            received.append(frame)


# =============================================================================
# ORDER FLOW
# =============================================================================

async def send_order(client: httpx.AsyncClient, order_num: int) -> dict[str, Any]:
    payload = generate_order_payload()
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100], "time": 0.0}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code == 201:
        data = response.json()
        return {
            "order_num": order_num,
            "success": True,
            "order_id": data["order_id"],
            "total": data["total"],
            "time": elapsed,
        }
    return {
        "order_num": order_num,
        "success": False,
        "error": response.text[:100],
        "time": elapsed,
    }


async def walk_workflow(client: httpx.AsyncClient, order_id: str, staff_key: str) -> int:
    """Advance one order to delivered. Returns the number of committed transitions."""
    committed = 0
    for status in WORKFLOW:
        response = await client.patch(
            f"{API_BASE_URL}/api/orders/{order_id}/status",
            json={"status": status},
            headers={"X-Staff-Key": staff_key},
        )
        if response.status_code != 200:
            print(f"   ⚠️ {order_id[:8]} -> {status}: {response.text[:80]}")
            break
        committed += 1
    return committed


async def run_simulation(num_orders: int, staff_key: str) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 RUSH HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        status = (await client.get(f"{API_BASE_URL}/api/status")).json()
        if not status.get("is_open"):
            print(f"\n❌ Establishment closed ({status.get('reason')}). Nothing to simulate.")
            return {"total": num_orders, "successful": 0}

        received: list[dict] = []
        connected = asyncio.Event()
        listener = asyncio.create_task(listen_for_events(client, staff_key, received, connected))
        await asyncio.wait_for(connected.wait(), timeout=10)
        print("\n📡 Staff stream connected")

        start_time = time.time()
        print("\n🚀 Firing orders...\n")
        results = await asyncio.gather(*[send_order(client, i + 1) for i in range(num_orders)])
        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        to_deliver = successful[: max(1, len(successful) // 3)] if successful else []
        print(f"🛵 Walking {len(to_deliver)} orders through the workflow...\n")
        transitions = await asyncio.gather(*[
            walk_workflow(client, r["order_id"], staff_key) for r in to_deliver
        ])
        total_time = round(time.time() - start_time, 2)

        # Let the last frames arrive
        await asyncio.sleep(1.0)
        listener.cancel()
        try:
            await listener
        except asyncio.CancelledError:
            pass

    new_orders = [e for e in received if e.get("type") == "new-order"]
    status_changes = [e for e in received if e.get("type") == "status-changed"]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        revenue = sum(r["total"] for r in successful)
        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: R$ {revenue:.2f}")

    print("\n📡 Stream Check:")
    print(f"   new-order events: {len(new_orders)} (expected {len(successful)})")
    print(f"   status-changed events: {len(status_changes)} (expected {sum(transitions)})")
    stream_ok = len(new_orders) == len(successful) and len(status_changes) == sum(transitions)
    print(f"   {'✅ Stream consistent' if stream_ok else '❌ Stream mismatch'}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("=" * 70)
    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "stream_ok": stream_ok,
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=30, help="Number of orders")
    parser.add_argument("--staff-key", default="change-me", help="X-Staff-Key value")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")
    summary = asyncio.run(run_simulation(args.orders, args.staff_key))
    sys.exit(0 if summary.get("stream_ok") else 1)
