"""Build pipeline: stage sequencing from asset bundling to artifact assembly."""

from .aot import SNAPSHOT_CANDIDATES, find_snapshot_tool, probe
from .base import (
    STAGE_ORDER,
    BuildContext,
    PipelineOptions,
    PipelineState,
    Stage,
    StageFailure,
)
from .native import link_flags, native_build_command
from .runner import BuildPipeline

__all__ = [
    "STAGE_ORDER",
    "SNAPSHOT_CANDIDATES",
    "BuildContext",
    "BuildPipeline",
    "PipelineOptions",
    "PipelineState",
    "Stage",
    "StageFailure",
    "find_snapshot_tool",
    "link_flags",
    "native_build_command",
    "probe",
]
