"""
Flow engine - executes one step node against a context snapshot
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Dict

from orderflow.engine.context import ContextSnapshot
from orderflow.engine.frozen import FrozenDict
from orderflow.engine.nodes import FlowRegistry, StepOutput
from orderflow.engine.response import EngineResponse, StepStatus
from orderflow.errors import StepMismatchError, UnknownStepError
from orderflow.validation import FormValidationError

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    """Node hooks may be plain functions or coroutines."""
    if inspect.isawaitable(value):
        return await value
    return value


class FlowEngine:
    def __init__(self, registry: FlowRegistry):
        self.registry = registry

    async def execute(self, step_id: str, snapshot: ContextSnapshot) -> EngineResponse:
        """Validate, compute and route `step_id` for the order described by `snapshot`."""
        flow = self.registry.get(snapshot.flow)
        node = flow.node(step_id)

        if snapshot.step_id != step_id:
            raise StepMismatchError(snapshot.step_id, step_id)

        logger.info("[Engine] execute order_id=%s flow=%s step=%s", snapshot.order_id, flow.name, step_id)

        try:
            validated = await _resolve(node.validate(snapshot))
        except FormValidationError as e:
            logger.info("[Engine] step=%s invalid field_errors=%s", step_id, sorted(e.field_errors))
            return EngineResponse(
                order_id=snapshot.order_id,
                flow=flow.name,
                step_id=step_id,
                status=StepStatus.INVALID,
                field_errors=e.field_errors,
                frontend_data={"form": node.form()},
                message=e.message,
            )

        frozen_input = FrozenDict(validated or {})
        output = await _resolve(node.compute(snapshot, frozen_input))
        if output is None:
            output = StepOutput()

        next_step = await _resolve(node.route(snapshot, frozen_input, flow))
        if next_step is not None and not flow.has_step(next_step):
            raise UnknownStepError(flow.name, next_step)

        frontend: Dict[str, Any] = dict(output.frontend_data)
        if next_step is not None:
            frontend["form"] = flow.form(next_step)
            status = StepStatus.IN_PROGRESS
        else:
            status = StepStatus.COMPLETE

        logger.info(
            "[Engine] step=%s status=%s next_step=%s backend_keys=%s frontend_keys=%s",
            step_id, status.value, next_step, list(output.backend_data.keys()), list(frontend.keys()),
        )

        return EngineResponse(
            order_id=snapshot.order_id,
            flow=flow.name,
            step_id=step_id,
            status=status,
            next_step=next_step,
            validated_input=frozen_input,
            backend_data=output.backend_data,
            frontend_data=frontend,
            message=output.message,
        )
