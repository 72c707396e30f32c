"""
Order orchestration - runs the engine for a step submission and persists the result.

This is the only place that writes submission data to an order record:

    load order -> build snapshot -> engine.execute -> merge validated input
    and backend data into the order -> save

The engine works on a frozen snapshot, so whatever happens inside a step node
cannot reach the stored order or the caller's payload.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from orderflow.database.postgres import Order, OrderStepEvent
from orderflow.engine.context import build_context
from orderflow.engine.engine import FlowEngine
from orderflow.engine.frozen import thaw
from orderflow.errors import OrderNotFoundError, OrderStateError, StepMismatchError
from orderflow.validation import FormValidationError

logger = logging.getLogger(__name__)


class OrderOrchestrator:
    def __init__(self, store, engine: FlowEngine, drafts=None, draft_ttl: Optional[int] = None):
        self.store = store
        self.engine = engine
        self.drafts = drafts
        self.draft_ttl = draft_ttl

    def _load(self, order_id: str) -> Order:
        order = self.store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def start_order(self, user_id: str, flow_name: str) -> Dict[str, Any]:
        """Create an order at the flow's first step and return that step's form."""
        flow = self.engine.registry.get(flow_name)
        order = self.store.create_order(user_id, flow.name, flow.first_step)
        logger.info("[Orchestrator] started order_id=%s user_id=%s flow=%s", order.id, user_id, flow.name)
        return {
            "order_id": order.id,
            "flow": flow.name,
            "status": order.status,
            "step": None,
            "next_step": flow.first_step,
            "complete": False,
            "message": "",
            "field_errors": {},
            "data": {"form": flow.form(flow.first_step)},
        }

    async def submit_step(self, order_id: str, step_id: str, current_data: Optional[Mapping]) -> Dict[str, Any]:
        """Run one step for an order.

        Re-submitting a step that was already completed rewinds the order to
        that step; steps after it have to be submitted again.

        Two submissions for the same order may run at once; the store only
        accepts the save of the one that loaded the current `version`, the
        other fails with ConcurrentUpdateError and nothing of it is merged.

        Raises:
            OrderNotFoundError, OrderStateError, StepMismatchError,
            ConcurrentUpdateError,
            FormValidationError (the raw input is kept as a draft).
        """
        order = self._load(order_id)
        if order.status != "in_progress":
            raise OrderStateError(order_id, order.status, "submit a step for")
        if step_id != order.current_step and step_id not in order.completed_steps:
            raise StepMismatchError(order.current_step, step_id)

        snapshot = build_context(order.id, order.flow, step_id, current_data, order.submission_data)
        response = await self.engine.execute(step_id, snapshot)
        self.store.add_step_event(order.id, step_id, response.status.value, thaw(response.field_errors))

        if not response.is_valid:
            if self.drafts is not None:
                self.drafts.set_draft(order.id, step_id, thaw(snapshot.current), ttl=self.draft_ttl)
            logger.info("[Orchestrator] order_id=%s step=%s rejected fields=%s", order.id, step_id, list(response.field_errors))
            raise FormValidationError(field_errors=thaw(response.field_errors), message=response.message)

        order.submission_data.update(response.persistable())

        completed = list(order.completed_steps)
        if step_id in completed:
            completed = completed[: completed.index(step_id)]
        completed.append(step_id)
        order.completed_steps = completed
        order.current_step = response.next_step
        order.status = "complete" if response.is_complete else "in_progress"

        self.store.save_order(order)
        if self.drafts is not None:
            self.drafts.delete_draft(order.id)

        logger.info(
            "[Orchestrator] order_id=%s step=%s saved status=%s next_step=%s",
            order.id, step_id, order.status, order.current_step,
        )
        return response.to_client()

    def get_order(self, order_id: str) -> Order:
        return self._load(order_id)

    def list_orders(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
        return self.store.list_orders(user_id=user_id, status=status)

    def get_history(self, order_id: str) -> List[OrderStepEvent]:
        self._load(order_id)
        return self.store.list_step_events(order_id)

    def get_draft(self, order_id: str) -> Optional[Dict[str, Any]]:
        self._load(order_id)
        if self.drafts is None:
            return None
        return self.drafts.get_draft(order_id)

    async def cancel_order(self, order_id: str) -> Order:
        order = self._load(order_id)
        if order.status != "in_progress":
            raise OrderStateError(order_id, order.status, "cancel")
        order.status = "cancelled"
        order.current_step = None
        saved = self.store.save_order(order)
        if self.drafts is not None:
            self.drafts.delete_draft(order_id)
        logger.info("[Orchestrator] cancelled order_id=%s", order_id)
        return saved

    def describe_flow(self, flow_name: str) -> Dict[str, Any]:
        return self.engine.registry.get(flow_name).describe()
