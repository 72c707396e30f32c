"""Exception types raised by the flow engine, orchestrator and stores.

The API layer maps these onto HTTP status codes (see `orderflow.api.error_handlers`).
Form validation failures live in `orderflow.validation.FormValidationError`
because they carry field-level errors for the frontend.
"""

from __future__ import annotations

from typing import Optional


class OrderflowError(Exception):
    """Base class for all orderflow errors."""


class ReadOnlyContextError(OrderflowError, TypeError):
    """Raised when code tries to modify a context snapshot or a frozen mapping."""

    def __init__(self, operation: str, target: str = "context snapshot") -> None:
        super().__init__(f"Cannot {operation}: {target} is read-only")
        self.operation = operation
        self.target = target


class FlowDefinitionError(OrderflowError, ValueError):
    """A flow definition is malformed (duplicate or empty step ids)."""


class UnknownFlowError(OrderflowError, LookupError):
    def __init__(self, flow: str) -> None:
        super().__init__(f"Unknown flow: {flow}")
        self.flow = flow


class UnknownStepError(OrderflowError, LookupError):
    def __init__(self, flow: str, step_id: Optional[str]) -> None:
        super().__init__(f"Unknown step '{step_id}' in flow '{flow}'")
        self.flow = flow
        self.step_id = step_id


class StepMismatchError(OrderflowError):
    """The submitted step is not the one the order (or snapshot) expects."""

    def __init__(self, expected: Optional[str], received: str) -> None:
        super().__init__(f"Expected step '{expected}', received '{received}'")
        self.expected = expected
        self.received = received


class OrderNotFoundError(OrderflowError, LookupError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class OrderStateError(OrderflowError):
    """The order is not in a state that allows the requested operation."""

    def __init__(self, order_id: str, status: str, operation: str) -> None:
        super().__init__(f"Cannot {operation} order {order_id} with status '{status}'")
        self.order_id = order_id
        self.status = status
        self.operation = operation


class ConcurrentUpdateError(OrderflowError):
    """The order was saved by someone else after this copy was loaded."""

    def __init__(self, order_id: str, expected_version: int, stored_version: int) -> None:
        super().__init__(
            f"Order {order_id} changed while it was being processed "
            f"(loaded version {expected_version}, stored version {stored_version})"
        )
        self.order_id = order_id
        self.expected_version = expected_version
        self.stored_version = stored_version
