from .dsl import PipelineBuilder, command, wait, block, input_step, trigger, group, annotation, notify, plugin, pipeline
from .model import Pipeline, Step, StepType
from .serializer import serialize, serialize_full
from .validator import UnifiedValidator, ValidationReport, validate
from .graph import DependencyGraph, build_graph, layout_pipeline
from .matrix import expand_matrix
from .loader import load_pipeline, PipelineLoadError

__all__ = [
    "PipelineBuilder",
    "command",
    "wait",
    "block",
    "input_step",
    "trigger",
    "group",
    "annotation",
    "notify",
    "plugin",
    "pipeline",
    "Pipeline",
    "Step",
    "StepType",
    "serialize",
    "serialize_full",
    "UnifiedValidator",
    "ValidationReport",
    "validate",
    "DependencyGraph",
    "build_graph",
    "layout_pipeline",
    "expand_matrix",
    "load_pipeline",
    "PipelineLoadError",
]
