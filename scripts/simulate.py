"""
Rush Hour Simulation Script

Fires concurrent checkouts at the store, then walks every new order
through the kitchen states the way an operator would. Without
--endpoint the store comes from ENV_MODE (the local workbook in
development). Run from project root:

    python scripts/simulate.py --orders 30
    python scripts/simulate.py --endpoint http://localhost:8001/api

Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
from typing import Any, Optional

from cafe_orders.core.exceptions import CafeOrdersError
from cafe_orders.schemas import (
    CustomerInfo,
    DeliveryAddress,
    FulfillmentType,
    OrderStatus,
    PaymentMethod,
    Product,
)
from cafe_orders.services.cart import CartLedger
from cafe_orders.services.checkout import OrderSubmitter
from cafe_orders.services.coupons import CouponValidator
from cafe_orders.services.delivery_zones import load_zones, resolve
from cafe_orders.services.gateway import BaseGateway, HttpGateway, WorkbookGateway, get_gateway
from cafe_orders.services.kitchen import KitchenFeed, NotificationController
from cafe_orders.services.notifications import NotificationDispatcher
from cafe_orders.services.storage import MemoryStorage

# Sample data for random orders
FIRST_NAMES = ["Ana", "Bruno", "Carla", "Diego", "Elisa", "Felipe", "Gabriela", "Hugo", "Isabel", "João"]
LAST_NAMES = ["Silva", "Souza", "Oliveira", "Santos", "Lima", "Costa", "Pereira", "Almeida"]
STREETS = ["Rua das Flores", "Av. Brasil", "Rua XV de Novembro", "Rua Augusta", "Av. Paulista"]
NEIGHBORHOODS = ["Centro", "Jardim América", "jardim america", "Vila Nova", "Bairro Distante"]
COUPONS = [None, None, None, "BEMVINDO10", "RETIRA5"]

SIZE_GROUP = {
    "id": "tamanho",
    "label": "Tamanho",
    "required": True,
    "options": [
        {"id": "p", "label": "Pequeno", "surcharge": 0},
        {"id": "m", "label": "Médio", "surcharge": 1.0},
        {"id": "g", "label": "Grande", "surcharge": 2.0},
    ],
}

MENU = [
    Product(id="esp", name="Espresso", base_price=5.50),
    Product(id="lat", name="Latte", base_price=8.00, option_groups=[SIZE_GROUP]),
    Product(id="cap", name="Cappuccino", base_price=9.00, option_groups=[SIZE_GROUP]),
    Product(id="pdq", name="Pão de Queijo", base_price=4.50),
    Product(id="bol", name="Bolo de Cenoura", base_price=7.00),
]


def random_customer(fulfillment_type: FulfillmentType) -> CustomerInfo:
    address = None
    if fulfillment_type == FulfillmentType.DELIVERY:
        address = DeliveryAddress(
            street=random.choice(STREETS),
            number=str(random.randint(1, 999)),
            neighborhood=random.choice(NEIGHBORHOODS),
            city="São Paulo",
        )
    return CustomerInfo(
        name=f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        phone=f"(11) 9{random.randint(1000, 9999)}-{random.randint(1000, 9999)}",
        address=address,
        table_number=str(random.randint(1, 30)) if fulfillment_type == FulfillmentType.DINE_IN else None,
        wants_notification=False,
    )


def random_cart() -> CartLedger:
    cart = CartLedger(MemoryStorage())
    for _ in range(random.randint(1, 4)):
        product = random.choice(MENU)
        selected = {"tamanho": random.choice(["p", "m", "g"])} if product.option_groups else {}
        cart.add_item(product, selected, quantity=random.randint(1, 3))
    return cart


# =============================================================================
# CHECKOUT SIMULATION
# =============================================================================

async def place_order(gateway: BaseGateway, zones: list, order_num: int) -> dict[str, Any]:
    fulfillment_type = random.choice(list(FulfillmentType))
    customer = random_customer(fulfillment_type)
    cart = random_cart()
    submitter = OrderSubmitter(gateway, NotificationDispatcher(opener=lambda url: False))
    start_time = time.time()

    try:
        zone = None
        if fulfillment_type == FulfillmentType.DELIVERY:
            zone = resolve(customer.address.neighborhood, zones)

        coupon = None
        code = random.choice(COUPONS)
        if code:
            try:
                coupon = await CouponValidator(gateway).validate(code, cart.subtotal(), fulfillment_type)
            except CafeOrdersError:
                coupon = None

        result = await submitter.checkout(
            cart,
            fulfillment_type,
            customer,
            coupon=coupon,
            zone=zone,
            payment_method=random.choice(list(PaymentMethod)),
        )
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": result.success,
            "order_id": result.submit.order_id,
            "total": result.payload.total if result.payload else 0,
            "error": result.submit.message,
            "time": elapsed,
            "mode": fulfillment_type.value,
        }
    except CafeOrdersError as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": e.message[:100],
            "time": elapsed,
            "mode": fulfillment_type.value,
        }


async def run_kitchen(gateway: BaseGateway) -> dict[OrderStatus, int]:
    """Advance every open order until it is delivered."""
    feed = KitchenFeed(gateway, NotificationController(alert_seconds=1))
    await feed.poll()

    for _ in range(len(OrderStatus)):
        moves = []
        for order in feed.orders:
            if order.status is None or order.status.is_terminal:
                continue
            moves.append(feed.transition(order.order_id, order.status.next_status()))
        if not moves:
            break
        outcomes = await asyncio.gather(*moves, return_exceptions=True)
        failures = [o for o in outcomes if isinstance(o, Exception)]
        if failures:
            print(f"   ⚠️ {len(failures)} status change(s) failed, e.g. {failures[0]}")
        await feed.poll()

    await feed.stop()
    return feed.status_counts()


async def run_simulation(num_orders: int, endpoint: Optional[str] = None) -> dict[str, Any]:
    print("\n" + "=" * 70)
    gateway = HttpGateway(endpoint) if endpoint else get_gateway()
    if isinstance(gateway, WorkbookGateway) and not gateway.path.exists():
        gateway.seed()
    print(f"☕ RUSH HOUR SIMULATION - {num_orders} orders -> {gateway.provider_name}")
    print("=" * 70)

    zones = await load_zones(gateway)
    print(f"\n📍 {len(zones)} delivery zone(s) loaded")

    start_time = time.time()
    results = await asyncio.gather(
        *(place_order(gateway, zones, i + 1) for i in range(num_orders))
    )
    total_time = round(time.time() - start_time, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    for fulfillment_type in FulfillmentType:
        of_type = [r for r in results if r["mode"] == fulfillment_type.value]
        ok = len([r for r in of_type if r["success"]])
        print(f"   {fulfillment_type.label}: {ok}/{len(of_type)}")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)
        print(f"\n📈 Average Response: {avg_time}s")
        print(f"💰 Total Revenue: R$ {total_revenue:.2f}")

    if failed:
        print(f"\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} [{f['mode']}]: {f.get('error') or 'Unknown error'}")

    print("\n👩‍🍳 Kitchen: walking orders to Entregue...")
    counts = await run_kitchen(gateway)
    print("   " + " • ".join(f"{status.value}: {count}" for status, count in counts.items()))

    print("\n" + "=" * 70)
    print("🔍 Next: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=30, help="Number of orders")
    parser.add_argument("--endpoint", default=None, help="Action endpoint (default: the ENV_MODE store)")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args.orders, args.endpoint))
    sys.exit(0 if summary["failed"] < summary["total"] else 1)
