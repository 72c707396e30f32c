"""
Engine response - result of executing one step node
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Optional

from orderflow.engine.frozen import FrozenDict, thaw
from orderflow.errors import ReadOnlyContextError


class StepStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    INVALID = "invalid"
    COMPLETE = "complete"


class EngineResponse:
    """Immutable engine output.

    Data is split by destination: `backend_data` is merged into the order
    record by the orchestrator and is never sent to the client;
    `frontend_data` is returned to the client and is never persisted.
    """

    __slots__ = (
        "order_id",
        "flow",
        "step_id",
        "status",
        "next_step",
        "validated_input",
        "field_errors",
        "backend_data",
        "frontend_data",
        "message",
    )

    def __init__(
        self,
        *,
        order_id: str,
        flow: str,
        step_id: str,
        status: StepStatus,
        next_step: Optional[str] = None,
        validated_input: Optional[Mapping] = None,
        field_errors: Optional[Mapping] = None,
        backend_data: Optional[Mapping] = None,
        frontend_data: Optional[Mapping] = None,
        message: str = "",
    ) -> None:
        status = StepStatus(status)
        if status is StepStatus.INVALID:
            if not field_errors:
                raise ValueError("An invalid response needs at least one field error")
            if validated_input or backend_data:
                raise ValueError("An invalid response cannot carry validated input or backend data")
            next_step = step_id
        elif field_errors:
            raise ValueError(f"A {status.value} response cannot carry field errors")
        if status is StepStatus.COMPLETE and next_step is not None:
            raise ValueError("A complete response has no next step")
        if status is StepStatus.IN_PROGRESS and not next_step:
            raise ValueError("An in-progress response needs a next step")

        values = {
            "order_id": order_id,
            "flow": flow,
            "step_id": step_id,
            "status": status,
            "next_step": next_step,
            "validated_input": FrozenDict(validated_input or {}),
            "field_errors": FrozenDict(field_errors or {}),
            "backend_data": FrozenDict(backend_data or {}),
            "frontend_data": FrozenDict(frontend_data or {}),
            "message": message,
        }
        for name, value in values.items():
            object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReadOnlyContextError(f"set attribute '{name}'", "engine response")

    def __delattr__(self, name: str) -> None:
        raise ReadOnlyContextError(f"delete attribute '{name}'", "engine response")

    def __repr__(self) -> str:
        return (
            f"EngineResponse(order_id={self.order_id!r}, step_id={self.step_id!r}, "
            f"status={self.status.value!r}, next_step={self.next_step!r})"
        )

    @property
    def is_valid(self) -> bool:
        return self.status is not StepStatus.INVALID

    @property
    def is_complete(self) -> bool:
        return self.status is StepStatus.COMPLETE

    def persistable(self) -> Dict[str, Any]:
        """Validated input overlaid with backend data, as a fresh dict for the order record."""
        data = thaw(self.validated_input)
        data.update(thaw(self.backend_data))
        return data

    def to_client(self) -> Dict[str, Any]:
        """JSON-friendly payload for the frontend. Backend data is never included."""
        return {
            "order_id": self.order_id,
            "flow": self.flow,
            "step": self.step_id,
            "status": self.status.value,
            "next_step": self.next_step,
            "complete": self.is_complete,
            "message": self.message,
            "field_errors": thaw(self.field_errors),
            "data": thaw(self.frontend_data),
        }
