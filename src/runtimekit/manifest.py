"""Read-only access to the project manifest (``Cargo.toml``)."""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from runtimekit.errors import ConfigError

MANIFEST_NAME = "Cargo.toml"
METADATA_KEY = "runtimekit"


@dataclass(frozen=True, slots=True)
class Manifest:
    path: Path
    name: str
    version: str
    runtime_version: str | None = None
    packaging: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    @property
    def root_dir(self) -> Path:
        return self.path.parent

    @property
    def crate_name(self) -> str:
        return self.name.replace("-", "_")

    def packaging_config(self, fmt: str) -> Mapping[str, Any]:
        return self.packaging.get(fmt, {})


def find_manifest(start: Path) -> Path:
    """Walk up from *start* until a manifest is found."""
    current = start.resolve()
    for directory in (current, *current.parents):
        candidate = directory / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    raise ConfigError(
        f"Couldn't find {MANIFEST_NAME} in {start} or any parent directory.",
        hint="Run inside a project or pass --manifest-path.",
    )


def load_manifest(path: Path, *, package: str | None = None) -> Manifest:
    """Load *path*, or the workspace member called *package*."""
    data = _read_toml(path)
    section = data.get("package")
    if package is None:
        if not isinstance(section, dict):
            raise ConfigError(
                "Manifest has no [package] section.",
                hint="Pass --package to select a workspace member.",
                context={"manifest": str(path)},
            )
        return _from_package(path, section)

    if isinstance(section, dict) and section.get("name") == package:
        return _from_package(path, section)
    for member_path in _workspace_members(path, data):
        member = _read_toml(member_path).get("package")
        if isinstance(member, dict) and member.get("name") == package:
            return _from_package(member_path, member)
    raise ConfigError(
        f"Package '{package}' is not a member of the workspace.",
        context={"manifest": str(path)},
    )


def _from_package(path: Path, section: Mapping[str, Any]) -> Manifest:
    name = section.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigError("Manifest [package] requires a name.", context={"manifest": str(path)})
    version = section.get("version", "0.0.0")
    if not isinstance(version, str):
        raise ConfigError(
            "Manifest package version must be a string.",
            context={"manifest": str(path)},
        )

    metadata = section.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ConfigError("[package.metadata] must be a table.", context={"manifest": str(path)})
    own = metadata.get(METADATA_KEY) or {}
    runtime_version = own.get("runtime_version") if isinstance(own, dict) else None
    if runtime_version is not None and not isinstance(runtime_version, str):
        raise ConfigError(
            "runtime_version must be a string.",
            context={"manifest": str(path)},
        )
    packaging = {
        key: value
        for key, value in metadata.items()
        if key != METADATA_KEY and isinstance(value, dict)
    }
    return Manifest(
        path=path,
        name=name,
        version=version,
        runtime_version=runtime_version,
        packaging=packaging,
    )


def _workspace_members(path: Path, data: Mapping[str, Any]) -> list[Path]:
    workspace = data.get("workspace")
    if not isinstance(workspace, dict):
        return []
    members: list[Path] = []
    for pattern in workspace.get("members", []):
        for directory in sorted(path.parent.glob(str(pattern))):
            candidate = directory / MANIFEST_NAME
            if candidate.is_file():
                members.append(candidate)
    return members


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(
            f"Manifest not found: {path}",
            hint="Run inside a project or pass --manifest-path.",
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Manifest is not valid TOML: {exc}",
            context={"manifest": str(path)},
        ) from exc
