"""Public package entrypoint for runtimekit."""

from .errors import (
    ConfigError,
    ExternalProcessError,
    ExtractionFailureError,
    NetworkFailureError,
    PackagingValidationError,
    RuntimeKitError,
    RuntimeNotFoundError,
    SnapshotToolNotFoundError,
    ToolNotFoundError,
    UnsupportedFormatError,
    UnsupportedPlatformError,
)
from .artifacts import Artifact, ArtifactSet
from .cache import RuntimeCache
from .config import Settings, resolve_settings
from .manifest import Manifest, load_manifest
from .models import BuildProfile, CommandSpec, RuntimeHandle
from .packaging import PackageFormat, PackageSpec, get_backend
from .pipeline import BuildContext, BuildPipeline, PipelineOptions, PipelineState, Stage
from .platforms import PlatformResolver
from .project import BuildOutcome, BuildRequest, Project

__all__ = [
    "Artifact",
    "ArtifactSet",
    "BuildContext",
    "BuildOutcome",
    "BuildPipeline",
    "BuildProfile",
    "BuildRequest",
    "CommandSpec",
    "ConfigError",
    "ExternalProcessError",
    "ExtractionFailureError",
    "Manifest",
    "NetworkFailureError",
    "PackageFormat",
    "PackageSpec",
    "PackagingValidationError",
    "PipelineOptions",
    "PipelineState",
    "PlatformResolver",
    "Project",
    "RuntimeCache",
    "RuntimeHandle",
    "RuntimeKitError",
    "RuntimeNotFoundError",
    "Settings",
    "SnapshotToolNotFoundError",
    "Stage",
    "ToolNotFoundError",
    "UnsupportedFormatError",
    "UnsupportedPlatformError",
    "get_backend",
    "load_manifest",
    "resolve_settings",
]
