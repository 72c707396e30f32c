"""
Lightweight in-memory PostgresDB replacement for local development and tests.

This provides the same order-store interface as `postgres_real` so the API and
orchestrator can run without a real database. It is NOT intended for
production use.

Records are copied on the way in and on the way out: an `Order` returned by
this store is the caller's to modify, and nothing changes in the store until
`save_order` is called with it. `save_order` only accepts a copy whose
`version` matches the stored one; every save bumps it.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from orderflow.errors import ConcurrentUpdateError, OrderNotFoundError

ORDER_STATUSES = ("in_progress", "complete", "cancelled")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Order:
    id: str
    user_id: str
    flow: str
    current_step: Optional[str]
    status: str = "in_progress"
    submission_data: Dict[str, Any] = field(default_factory=dict)
    completed_steps: List[str] = field(default_factory=list)
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["created_at"] = self.created_at.isoformat()
        out["updated_at"] = self.updated_at.isoformat()
        return out


@dataclass
class OrderStepEvent:
    id: str
    order_id: str
    step_id: str
    status: str
    field_errors: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["created_at"] = self.created_at.isoformat()
        return out


class PostgresDB:
    """
    In-memory stand-in for the Postgres-backed order store.
    """

    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}
        self._events: List[OrderStepEvent] = []

    # ------------------------------------------------------------------ #
    # Schema / lifecycle
    # ------------------------------------------------------------------ #
    def create_tables(self) -> None:
        """
        No-op for the in-memory implementation. Kept for compatibility
        with the startup hook in `orderflow/api/main.py`.
        """
        return None

    def ping(self) -> bool:
        return True

    # ------------------------------------------------------------------ #
    # Orders
    # ------------------------------------------------------------------ #
    def create_order(self, user_id: str, flow: str, first_step: str) -> Order:
        order = Order(id=str(uuid.uuid4()), user_id=user_id, flow=flow, current_step=first_step)
        self._orders[order.id] = order
        return copy.deepcopy(order)

    def get_order(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    def list_orders(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
        """Newest first."""
        orders = [
            o
            for o in self._orders.values()
            if (user_id is None or o.user_id == user_id) and (status is None or o.status == status)
        ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [copy.deepcopy(o) for o in orders]

    def save_order(self, order: Order) -> Order:
        current = self._orders.get(order.id)
        if current is None:
            raise OrderNotFoundError(order.id)
        if order.status not in ORDER_STATUSES:
            raise ValueError(f"Unknown order status: {order.status}")
        if order.version != current.version:
            raise ConcurrentUpdateError(order.id, order.version, current.version)
        stored = copy.deepcopy(order)
        stored.version = current.version + 1
        stored.updated_at = utcnow()
        self._orders[order.id] = stored
        return copy.deepcopy(stored)

    # ------------------------------------------------------------------ #
    # Step history
    # ------------------------------------------------------------------ #
    def add_step_event(
        self,
        order_id: str,
        step_id: str,
        status: str,
        field_errors: Optional[Dict[str, str]] = None,
    ) -> OrderStepEvent:
        event = OrderStepEvent(
            id=str(uuid.uuid4()),
            order_id=order_id,
            step_id=step_id,
            status=status,
            field_errors=dict(field_errors or {}),
        )
        self._events.append(event)
        return copy.deepcopy(event)

    def list_step_events(self, order_id: str) -> List[OrderStepEvent]:
        return [copy.deepcopy(e) for e in self._events if e.order_id == order_id]
