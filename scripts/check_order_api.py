#!/usr/bin/env python3
"""
Smoke test for a running orderflow API: start an order, submit one invalid
step, then walk the checkout flow to completion.

Start the API first (in another terminal):
  API_KEYS=dev-key uvicorn orderflow.api.main:app --host 127.0.0.1 --port 8000

Then run this script:
  python scripts/check_order_api.py --api-key dev-key
  python scripts/check_order_api.py --base-url http://127.0.0.1:8000 --api-key dev-key --digital
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Optional

import requests

TIMEOUT = 30


class ApiClient:
    def __init__(self, base_url: str, api_key: str) -> None:
        self.base = base_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers["X-API-KEY"] = api_key

    def get(self, path: str) -> requests.Response:
        return self.session.get(f"{self.base}{path}", timeout=TIMEOUT)

    def post(self, path: str, data: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self.session.post(f"{self.base}{path}", json=data or {}, timeout=TIMEOUT)


def checkout_steps(digital: bool):
    steps = [
        ("customer_details", {"full_name": "Jane Test", "email": "jane.test@example.com", "phone_number": "07700900123"}),
    ]
    if digital:
        steps.append(("line_items", {"items": [{"sku": "EBOOK-GUIDE", "quantity": 1}]}))
    else:
        steps.append(("line_items", {"items": [{"sku": "MUG-001", "quantity": 2}]}))
        steps.append(("delivery", {"delivery_method": "standard", "address": "1 High Street", "city": "Bristol", "postal_code": "BS1 4DJ"}))
    steps.append(("payment_method", {"payment_method": "card"}))
    steps.append(("review", {"confirm": True}))
    return steps


def main() -> int:
    parser = argparse.ArgumentParser(description="Smoke test the orderflow API (start order, steps, draft, history)")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--api-key", required=True, help="Value for the X-API-KEY header")
    parser.add_argument("--user-id", default="smoke-test-user", help="User identifier")
    parser.add_argument("--digital", action="store_true", help="Order a digital-only basket (no delivery step)")
    args = parser.parse_args()
    api = ApiClient(args.base_url, args.api_key)

    print("=== Orderflow API smoke test ===\n")
    print(f"Base URL: {api.base}")
    print(f"User ID:  {args.user_id}\n")

    print("1) GET /health")
    try:
        health = api.get("/health")
        health.raise_for_status()
        print(f"   {health.json()}\n")
    except requests.RequestException as e:
        print(f"   FAIL: {e}")
        if "Connection refused" in str(e) or "Failed to establish" in str(e):
            print("   -> Start the API first: uvicorn orderflow.api.main:app --host 127.0.0.1 --port 8000")
        return 1

    print("2) POST /api/v1/orders")
    resp = api.post("/api/v1/orders", {"user_id": args.user_id})
    if resp.status_code != 201:
        print(f"   FAIL: {resp.status_code} {resp.text[:300]}")
        return 1
    order_id = resp.json()["order_id"]
    print(f"   order_id: {order_id}\n")

    print("3) POST customer_details with a bad email (expect 422)")
    resp = api.post(f"/api/v1/orders/{order_id}/steps/customer_details", {"full_name": "Jane Test", "email": "nope"})
    if resp.status_code != 422:
        print(f"   FAIL: expected 422, got {resp.status_code}")
        return 1
    print(f"   field_errors: {resp.json()['detail']['field_errors']}")
    draft = api.get(f"/api/v1/orders/{order_id}/draft")
    print(f"   draft kept: {draft.status_code == 200}\n")

    for n, (step_id, payload) in enumerate(checkout_steps(args.digital), start=4):
        print(f"{n}) POST step {step_id}")
        resp = api.post(f"/api/v1/orders/{order_id}/steps/{step_id}", payload)
        if resp.status_code != 200:
            print(f"   FAIL: {resp.status_code} {resp.text[:300]}")
            return 1
        body = resp.json()
        print(f"   status={body['status']} next_step={body['next_step']} message={body['message'][:60]!r}\n")

    order = api.get(f"/api/v1/orders/{order_id}").json()
    history = api.get(f"/api/v1/orders/{order_id}/history").json()
    print(f"Order status: {order['status']}  total: {order['submission_data'].get('totals', {}).get('total')}")
    print(f"History: {[(e['step_id'], e['status']) for e in history]}\n")

    print("=== All steps completed successfully ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())
