"""
Checkout Rush Simulation

Fires many concurrent checkouts at one scarce menu item to show that the
persistent surface never sells more grams than it has in stock.
Run from project root (server on port 5000): python scripts/simulate.py
"""

import argparse
import asyncio
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
API_BASE_URL = "http://localhost:5000"
API_PREFIX = "/api/v1"
TOTAL_BILLS = 50
STOCK_GRAMS = 2000
PAYMENT_METHODS = ["cash", "upi", "card"]


def rush_item() -> dict[str, Any]:
    return {
        "id": f"rush_{random.randint(100000, 999999)}",
        "name": "Rush Samosa",
        "category": "Snacks",
        "pricePerGram": 0.025,
        "icon": "🥟",
        "stockQuantity": STOCK_GRAMS,
        "lowStockThreshold": 200,
    }


async def send_bill(
    client: httpx.AsyncClient,
    bill_num: int,
    item_id: str,
) -> dict[str, Any]:
    """Submit one checkout for a random 50-250g portion."""
    grams = random.choice([50, 100, 150, 200, 250])
    payload = {
        "cartItems": [{"menuItemId": item_id, "quantityInGrams": grams}],
        "paymentMethod": random.choice(PAYMENT_METHODS),
    }
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}{API_PREFIX}/billing/create",
            json=payload,
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)
        body = response.json()

        if response.status_code == 201:
            return {
                "bill_num": bill_num,
                "success": True,
                "bill_id": body["data"]["id"],
                "grams": grams,
                "total": body["data"]["totalAmount"],
                "time": elapsed,
            }
        return {
            "bill_num": bill_num,
            "success": False,
            "grams": grams,
            "error": body.get("error", response.text)[:100],
            "time": elapsed,
        }
    except Exception as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "bill_num": bill_num,
            "success": False,
            "grams": grams,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_bills: int = TOTAL_BILLS) -> dict[str, Any]:
    """
    Create a scarce item, rush it with concurrent bills, then check stock.

    Args:
        num_bills: Number of concurrent checkouts
    """
    print("=" * 70)
    print("🔥 CHECKOUT RUSH - CONCURRENT STOCK TEST")
    print("=" * 70)
    print(f"📋 Total Bills: {num_bills}")
    print(f"🎯 Target: {API_BASE_URL}{API_PREFIX}")
    print(f"📦 Starting Stock: {STOCK_GRAMS}g")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        item = rush_item()
        response = await client.post(f"{API_BASE_URL}{API_PREFIX}/menu", json=item)
        if response.status_code != 201:
            print(f"\n❌ Could not create rush item: {response.text}")
            return {"total": num_bills, "successful": 0, "failed": num_bills}

        print("\n🚀 Firing concurrent checkouts...\n")
        start_time = time.time()
        results = await asyncio.gather(
            *[send_bill(client, i + 1, item["id"]) for i in range(num_bills)]
        )
        total_time = round(time.time() - start_time, 2)

        response = await client.get(f"{API_BASE_URL}{API_PREFIX}/menu/{item['id']}")
        remaining = response.json()["data"]["stockQuantity"]

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    sold = sum(r["grams"] for r in successful)

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Successful Bills: {len(successful)}/{num_bills}")
    print(f"❌ Rejected Bills: {len(failed)}/{num_bills}")
    print(f"⏱️  Total Time: {total_time}s")

    print(f"\n📦 STOCK:")
    print(f"   Sold: {sold}g")
    print(f"   Remaining: {remaining:g}g")
    if sold + remaining == STOCK_GRAMS and remaining >= 0:
        print("   ✅ Sold + remaining matches starting stock")
    else:
        print("   ❌ Stock drift detected!")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r["total"] for r in successful)
        print(f"\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: {total_revenue:.2f}")

    if failed:
        print(f"\n⚠️  Rejected Bill Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Bill #{f['bill_num']} ({f['grams']}g): {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check Celery terminal - all ledger exports should complete")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_bills,
        "successful": len(successful),
        "failed": len(failed),
        "sold_grams": sold,
        "remaining_grams": remaining,
        "total_time": total_time,
        "results": results,
    }


async def check_health() -> bool:
    """Pre-flight: the server and its database must be up."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"❌ Server unreachable: {e}")
            return False

    data = response.json()
    print(f"🩺 Status: {data.get('status')} | Database: {data.get('database')} | Redis: {data.get('redis')}")
    return response.status_code == 200 and data.get("database") == "healthy"


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Checkout Rush Simulation")
    parser.add_argument("--bills", type=int, default=TOTAL_BILLS, help="Number of concurrent bills")
    parser.add_argument("--base-url", default=API_BASE_URL, help="Server base URL")
    args = parser.parse_args()
    API_BASE_URL = args.base_url

    if not asyncio.run(check_health()):
        print("\n❌ Pre-flight check failed. Start the server first.")
        sys.exit(1)

    asyncio.run(run_simulation(num_bills=args.bills))
