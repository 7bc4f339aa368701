"""Package formats, package specs and shared staging helpers."""

from __future__ import annotations

import shutil
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

from runtimekit.artifacts import Artifact, ArtifactSet
from runtimekit.errors import PackagingValidationError, UnsupportedFormatError
from runtimekit.manifest import Manifest


class PackageFormat(StrEnum):
    APPIMAGE = "appimage"
    APK = "apk"
    DMG = "dmg"
    LIPO = "lipo"
    NSIS = "nsis"

    @classmethod
    def parse(cls, value: str) -> PackageFormat:
        try:
            return cls(value.lower())
        except ValueError:
            raise UnsupportedFormatError(value) from None


# Recognised but not implemented; selecting one is an error, never a no-op.
PLACEHOLDER_FORMATS: frozenset[PackageFormat] = frozenset(
    {PackageFormat.DMG, PackageFormat.LIPO, PackageFormat.NSIS}
)


@dataclass(frozen=True, slots=True)
class PackageSpec:
    format: PackageFormat
    out_dir: Path
    sign: bool = False
    icon: Path | None = None
    label: str | None = None
    extra: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_manifest(
        cls,
        fmt: PackageFormat,
        manifest: Manifest,
        *,
        out_dir: Path,
        sign: bool,
    ) -> PackageSpec:
        """Build a package spec from the manifest's ``[package.metadata.<format>]`` block."""
        config = manifest.packaging_config(fmt.value)
        icon_value = _string(config, "icon")
        icon = manifest.root_dir / icon_value if icon_value else None
        if fmt is PackageFormat.APPIMAGE and icon is None:
            icon = manifest.root_dir / "assets" / "icon.svg"
        label = _string(config, "name") or _string(config, "label")
        extra = {
            key: str(value)
            for key, value in sorted(config.items())
            if key not in {"icon", "name", "label"} and isinstance(value, (str, int))
        }
        if "keystore" in extra:
            extra["keystore"] = str(manifest.root_dir / extra["keystore"])
        return cls(format=fmt, out_dir=out_dir, sign=sign, icon=icon, label=label, extra=extra)


class PackagingBackend(Protocol):
    name: str

    def build(self, artifacts: ArtifactSet, spec: PackageSpec) -> Path:
        """Validate inputs, stage the package layout and produce the distributable."""


def validate_payload(artifacts: ArtifactSet) -> None:
    artifacts.require_payload()


def require_icon(spec: PackageSpec) -> Path:
    if spec.icon is None or not spec.icon.is_file():
        raise PackagingValidationError(
            f"Icon not found: {spec.icon}",
            hint="Set `icon` in the manifest's packaging metadata or add assets/icon.svg.",
            context={"format": spec.format.value},
        )
    return spec.icon


def fresh_stage_dir(path: Path) -> Path:
    """Remove any previous staging output at *path* and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def copy_entries(entries: Iterable[Artifact], destination: Path) -> list[Path]:
    destination.mkdir(parents=True, exist_ok=True)
    copied: list[Path] = []
    for entry in entries:
        target = destination / entry.name
        if entry.path.is_dir():
            shutil.copytree(entry.path, target)
        else:
            shutil.copy2(entry.path, target)
        copied.append(target)
    return copied


def _string(config: Mapping[str, Any], key: str) -> str | None:
    value = config.get(key)
    return value if isinstance(value, str) and value else None
