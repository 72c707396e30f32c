#!/usr/bin/env python3
"""
Run a full checkout flow against the in-memory stores and print each stage.
Shows forms, an invalid submission, the stored order record and the final
client response.

Usage (from repo root, after `pip install -e .`):
  python scripts/run_flow_demo.py
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from orderflow.config import load_config
from orderflow.database.postgres import PostgresDB
from orderflow.database.redis import RedisCache
from orderflow.engine.engine import FlowEngine
from orderflow.flows import CHECKOUT_FLOW, build_registry
from orderflow.orchestrator import OrderOrchestrator
from orderflow.validation import FormValidationError


def setup_logging():
    """Log to terminal at INFO so every stage is visible."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )


def print_stage(title: str, data):
    """Print a stage header and data to the terminal."""
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)
    if isinstance(data, (dict, list)):
        print(json.dumps(data, indent=2, default=str))
    else:
        print(data)
    print()


async def main():
    setup_logging()
    cfg = load_config()
    db = PostgresDB()
    orch = OrderOrchestrator(db, FlowEngine(build_registry(cfg)), drafts=RedisCache())

    started = await orch.start_order("demo-user", CHECKOUT_FLOW)
    order_id = started["order_id"]
    print_stage("START: first form", started["data"]["form"])

    try:
        await orch.submit_step(order_id, "customer_details", {"full_name": "J", "email": "not-an-email"})
    except FormValidationError as e:
        print_stage("INVALID SUBMISSION: field errors", e.field_errors)
        print_stage("Draft kept for the frontend", orch.get_draft(order_id))

    steps = [
        ("customer_details", {"full_name": "Jane Demo", "email": "jane@example.com", "phone_number": "+44 20 7946 0958"}),
        ("line_items", {"items": [{"sku": "MUG-001", "quantity": 2}, {"sku": "KETTLE-01", "quantity": 1}]}),
        ("delivery", {"delivery_method": "standard", "address": "1 High Street", "city": "Bristol", "postal_code": "BS1 4DJ"}),
        ("payment_method", {"payment_method": "card"}),
        ("review", {"confirm": True}),
    ]
    for step_id, payload in steps:
        result = await orch.submit_step(order_id, step_id, payload)
        print_stage(f"STEP {step_id}: client response", result)

    print_stage("STORED ORDER RECORD", orch.get_order(order_id).to_dict())

    print("\n" + "=" * 60)
    print("  Demo complete. Check logs above for each stage.")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
