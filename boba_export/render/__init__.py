from boba_export.render.engine import FFmpegEngine, TranscodingEngine
from boba_export.render.filter_graph import (
    FilterGraph,
    FilterNode,
    NodeKind,
    check_timeline,
    compile_filter_graph,
)
from boba_export.render.inputs import InputSlot, ResolvedInput, plan_inputs
from boba_export.render.pipeline import TimelineExporter
from boba_export.render.preprocessor import Preprocessor
from boba_export.render.settings_resolver import resolve_encoder_parameters, resolve_export_settings

__all__ = [
    "FFmpegEngine",
    "FilterGraph",
    "FilterNode",
    "InputSlot",
    "NodeKind",
    "Preprocessor",
    "ResolvedInput",
    "TimelineExporter",
    "TranscodingEngine",
    "check_timeline",
    "compile_filter_graph",
    "plan_inputs",
    "resolve_encoder_parameters",
    "resolve_export_settings",
]
