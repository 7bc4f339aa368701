"""Packaging backends: one closed variant per supported distributable format."""

from __future__ import annotations

from runtimekit.config import Settings
from runtimekit.errors import UnsupportedFormatError
from runtimekit.process import Runner

from .apk import ApkBackend
from .appimage import AppImageBackend
from .base import (
    PLACEHOLDER_FORMATS,
    PackageFormat,
    PackageSpec,
    PackagingBackend,
    copy_entries,
    fresh_stage_dir,
)


def get_backend(
    fmt: str | PackageFormat,
    *,
    settings: Settings,
    runner: Runner,
) -> PackagingBackend:
    selected = fmt if isinstance(fmt, PackageFormat) else PackageFormat.parse(fmt)
    if selected is PackageFormat.APPIMAGE:
        return AppImageBackend(settings=settings, runner=runner)
    if selected is PackageFormat.APK:
        return ApkBackend(settings=settings, runner=runner)
    if selected in PLACEHOLDER_FORMATS:
        raise UnsupportedFormatError(selected.value, context={"status": "not implemented"})
    raise UnsupportedFormatError(str(fmt))


__all__ = [
    "ApkBackend",
    "AppImageBackend",
    "PLACEHOLDER_FORMATS",
    "PackageFormat",
    "PackageSpec",
    "PackagingBackend",
    "copy_entries",
    "fresh_stage_dir",
    "get_backend",
]
