"""Deterministic cache paths and distribution URLs for runtime handles."""

from __future__ import annotations

from pathlib import Path

from runtimekit.models import RuntimeHandle
from runtimekit.platforms import require_platform

COMPLETION_MARKER = ".complete"


def runtime_dir(root: Path, handle: RuntimeHandle) -> Path:
    """``<root>/<version>/<platform>/<profile>``; a pure function of the handle."""
    return root / handle.relative_dir


def runtime_path(root: Path, handle: RuntimeHandle) -> Path:
    info = require_platform(handle.platform)
    return runtime_dir(root, handle) / info.library_name


def marker_path(root: Path, handle: RuntimeHandle) -> Path:
    return runtime_dir(root, handle) / COMPLETION_MARKER


def archive_name(handle: RuntimeHandle) -> str:
    info = require_platform(handle.platform)
    return f"{info.variant}_{handle.profile.artifact_name}{info.suffix}.zip"


def download_url(mirror: str, handle: RuntimeHandle) -> str:
    return f"{mirror.rstrip('/')}/f-{handle.version}/{archive_name(handle)}"
