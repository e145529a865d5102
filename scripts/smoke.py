"""End-to-end check against running OrderService and InventoryService.

Places an order and polls inventory until the deduction shows up.
Needs RabbitMQ and both services running.
"""
import argparse
import time

import requests

ORDER_URL = "http://localhost:5021/api/orders"
INVENTORY_URL = "http://localhost:5022/api/inventory"


def _stock(product_id: int) -> int:
    resp = requests.get(f"{INVENTORY_URL}/{product_id}", timeout=5)
    resp.raise_for_status()
    return resp.json()["unitsInStock"]


def place_and_wait(product_id: int, qty: int, wait_s: float) -> bool:
    before = _stock(product_id)
    payload = {
        "customerId": "ALFKI",
        "items": [{"productId": product_id, "quantity": qty, "unitPrice": 18.0}],
    }
    resp = requests.post(ORDER_URL, json=payload, timeout=5)
    print("order", resp.status_code, resp.text)
    if resp.status_code != 201:
        return False

    expected = max(0, before - qty)
    deadline = time.time() + wait_s
    while time.time() < deadline:
        now = _stock(product_id)
        if now == expected:
            print(f"product {product_id}: stock {before} -> {now}")
            return True
        time.sleep(0.5)
    print(f"product {product_id}: stock still {_stock(product_id)}, expected {expected}")
    return False


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--product", type=int, default=1)
    parser.add_argument("--qty", type=int, default=1)
    parser.add_argument("--wait", type=float, default=15.0)
    args = parser.parse_args()
    ok = place_and_wait(args.product, args.qty, args.wait)
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
