"""
Flow engine: context snapshots, step nodes, execution and responses.
"""
from .context import ContextSnapshot, build_context
from .engine import FlowEngine
from .frozen import FrozenDict, freeze, thaw
from .nodes import FieldSpec, FlowDefinition, FlowRegistry, StepNode, StepOutput
from .response import EngineResponse, StepStatus

__all__ = [
    'ContextSnapshot',
    'build_context',
    'FlowEngine',
    'FrozenDict',
    'freeze',
    'thaw',
    'FieldSpec',
    'FlowDefinition',
    'FlowRegistry',
    'StepNode',
    'StepOutput',
    'EngineResponse',
    'StepStatus',
]
