"""
Step nodes and flow definitions.

A flow is an ordered list of `StepNode`s. Each node owns one step of the
order journey:

    validate(context)            -> normalized current-step input, or raise FormValidationError
    compute(context, validated)  -> StepOutput(backend_data, frontend_data, message)
    route(context, validated, flow) -> next step id, or None when the flow is done

Nodes receive the immutable `ContextSnapshot` and a frozen copy of their own
validated input. They return new data; they never write to what they were given.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from orderflow.engine.context import ContextSnapshot
from orderflow.engine.frozen import FrozenDict, thaw
from orderflow.errors import FlowDefinitionError, UnknownFlowError, UnknownStepError
from orderflow.validation import FormValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """Form field rendered by the frontend for a step."""

    name: str
    label: str
    type: str = "text"
    required: bool = True
    options: Tuple[str, ...] = ()
    help: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "label": self.label, "type": self.type, "required": self.required}
        if self.options:
            out["options"] = list(self.options)
        if self.help:
            out["help"] = self.help
        return out


@dataclass(frozen=True)
class StepOutput:
    backend_data: Mapping = field(default_factory=FrozenDict)
    frontend_data: Mapping = field(default_factory=FrozenDict)
    message: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "backend_data", FrozenDict(self.backend_data))
        object.__setattr__(self, "frontend_data", FrozenDict(self.frontend_data))


class StepNode:
    """Base class for a flow step. Subclasses set `step_id`, `title`, `fields`."""

    step_id: str = ""
    title: str = ""
    fields: Tuple[FieldSpec, ...] = ()

    def validate(self, context: ContextSnapshot) -> Dict[str, Any]:
        """Default: required fields must be present; declared fields are passed through."""
        errors: Dict[str, str] = {}
        validated: Dict[str, Any] = {}
        for spec in self.fields:
            value = context.current.get(spec.name)
            if value is None or (isinstance(value, str) and not value.strip()):
                if spec.required:
                    errors[spec.name] = f"{spec.label} is required"
                continue
            validated[spec.name] = thaw(value)
        if errors:
            raise FormValidationError(field_errors=errors, message="Please correct the highlighted fields")
        return validated

    def compute(self, context: ContextSnapshot, validated: FrozenDict) -> StepOutput:
        return StepOutput()

    def route(self, context: ContextSnapshot, validated: FrozenDict, flow: "FlowDefinition") -> Optional[str]:
        return flow.next_after(self.step_id)

    def form(self) -> Dict[str, Any]:
        return {
            "step": self.step_id,
            "title": self.title,
            "fields": [f.to_dict() for f in self.fields],
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(step_id={self.step_id!r})"


class FlowDefinition:
    def __init__(self, name: str, nodes: Iterable[StepNode]) -> None:
        self.name = name
        self._nodes: List[StepNode] = list(nodes)
        if not self._nodes:
            raise FlowDefinitionError(f"Flow '{name}' has no steps")

        self._by_id: Dict[str, StepNode] = {}
        for node in self._nodes:
            if not node.step_id:
                raise FlowDefinitionError(f"Flow '{name}' has a step without an id: {node!r}")
            if node.step_id in self._by_id:
                raise FlowDefinitionError(f"Flow '{name}' has duplicate step id '{node.step_id}'")
            self._by_id[node.step_id] = node

    @property
    def steps(self) -> List[str]:
        return [n.step_id for n in self._nodes]

    @property
    def first_step(self) -> str:
        return self._nodes[0].step_id

    def has_step(self, step_id: Optional[str]) -> bool:
        return step_id in self._by_id

    def node(self, step_id: str) -> StepNode:
        try:
            return self._by_id[step_id]
        except KeyError:
            raise UnknownStepError(self.name, step_id) from None

    def next_after(self, step_id: str) -> Optional[str]:
        idx = self.steps.index(self.node(step_id).step_id)
        if idx + 1 < len(self._nodes):
            return self._nodes[idx + 1].step_id
        return None

    def form(self, step_id: str) -> Dict[str, Any]:
        return self.node(step_id).form()

    def describe(self) -> Dict[str, Any]:
        return {"flow": self.name, "steps": [n.form() for n in self._nodes]}


class FlowRegistry:
    def __init__(self, flows: Iterable[FlowDefinition] = ()) -> None:
        self._flows: Dict[str, FlowDefinition] = {}
        for flow in flows:
            self.register(flow)

    def register(self, flow: FlowDefinition) -> None:
        if flow.name in self._flows:
            raise FlowDefinitionError(f"Flow '{flow.name}' is already registered")
        self._flows[flow.name] = flow
        logger.info("[Flows] registered flow=%s steps=%s", flow.name, flow.steps)

    def get(self, name: str) -> FlowDefinition:
        try:
            return self._flows[name]
        except KeyError:
            raise UnknownFlowError(name) from None

    def names(self) -> List[str]:
        return list(self._flows)

    def __contains__(self, name: object) -> bool:
        return name in self._flows
