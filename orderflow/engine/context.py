"""
Context builder - immutable snapshot of one step submission for the engine
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from orderflow.engine.frozen import FrozenDict, freeze, thaw
from orderflow.errors import ReadOnlyContextError

logger = logging.getLogger(__name__)

_MISSING = object()


class ContextSnapshot:
    """Read-only bundle of current-step input and previously accumulated data.

    Both mappings are frozen copies taken when the snapshot is created. The
    order record and the caller's payload can change afterwards without the
    snapshot noticing, and nothing done through the snapshot reaches them.
    """

    __slots__ = ("order_id", "flow", "step_id", "current", "accumulated", "created_at")

    def __init__(
        self,
        *,
        order_id: str,
        flow: str,
        step_id: str,
        current: Optional[Mapping] = None,
        accumulated: Optional[Mapping] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        object.__setattr__(self, "order_id", order_id)
        object.__setattr__(self, "flow", flow)
        object.__setattr__(self, "step_id", step_id)
        object.__setattr__(self, "current", FrozenDict(current or {}))
        object.__setattr__(self, "accumulated", FrozenDict(accumulated or {}))
        object.__setattr__(self, "created_at", created_at or datetime.now(timezone.utc))

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReadOnlyContextError(f"set attribute '{name}'")

    def __delattr__(self, name: str) -> None:
        raise ReadOnlyContextError(f"delete attribute '{name}'")

    def __repr__(self) -> str:
        return (
            f"ContextSnapshot(order_id={self.order_id!r}, flow={self.flow!r}, step_id={self.step_id!r}, "
            f"current_keys={sorted(map(str, self.current))}, accumulated_keys={sorted(map(str, self.accumulated))})"
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ContextSnapshot):
            return NotImplemented
        return (
            self.order_id == other.order_id
            and self.flow == other.flow
            and self.step_id == other.step_id
            and self.current == other.current
            and self.accumulated == other.accumulated
        )

    __hash__ = None

    def get(self, field: str, default: Any = None) -> Any:
        """Current-step value if submitted, else the accumulated one.

        The current step belongs to the client. Values computed by earlier
        steps (prices, totals) are read from `accumulated` directly.
        """
        value = self.current.get(field, _MISSING)
        if value is _MISSING:
            value = self.accumulated.get(field, default)
        return value

    def merged(self) -> Dict[str, Any]:
        """Plain dict of accumulated data overlaid with the current step. Caller owns it."""
        data = thaw(self.accumulated)
        data.update(thaw(self.current))
        return data


def build_context(
    order_id: str,
    flow: str,
    step_id: str,
    current: Optional[Mapping] = None,
    accumulated: Optional[Mapping] = None,
) -> ContextSnapshot:
    """Build the snapshot handed to `FlowEngine.execute`.

    `current` belongs to the caller (request payload) and `accumulated` to the
    persisted order. Neither is stored by reference.
    """
    for name, value in (("current", current), ("accumulated", accumulated)):
        if value is not None and not isinstance(value, Mapping):
            raise TypeError(f"{name} submission data must be a mapping, got {type(value).__name__}")

    snapshot = ContextSnapshot(
        order_id=order_id,
        flow=flow,
        step_id=step_id,
        current=current,
        accumulated=accumulated,
    )
    logger.debug(
        "[Context] built snapshot order_id=%s step=%s current_keys=%s accumulated_keys=%s",
        order_id, step_id, list(snapshot.current.keys()), list(snapshot.accumulated.keys()),
    )
    return snapshot


__all__ = ["ContextSnapshot", "build_context", "freeze", "thaw"]
