"""Typed collection of build outputs handed from the pipeline to packaging."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from runtimekit.errors import PackagingValidationError
from runtimekit.models import BuildProfile, PlatformId

ArtifactKind = Literal["bin", "lib", "asset"]


@dataclass(frozen=True, slots=True)
class Artifact:
    path: Path
    name: str

    @classmethod
    def from_path(cls, path: str | Path, name: str | None = None) -> Artifact:
        resolved = Path(path)
        return cls(path=resolved, name=name or resolved.name)


@dataclass(slots=True)
class ArtifactSet:
    """Named binaries, shared libraries and asset directories of one build.

    Names are unique within each category. Packaging requires at least one
    binary or library, see :meth:`require_payload`.
    """

    name: str
    version: str
    platform: PlatformId
    profile: BuildProfile
    bins: list[Artifact] = field(default_factory=list)
    libs: list[Artifact] = field(default_factory=list)
    assets: list[Artifact] = field(default_factory=list)

    def add_bin(self, path: str | Path, name: str | None = None) -> Artifact:
        return self._add("bin", Artifact.from_path(path, name))

    def add_lib(self, path: str | Path, name: str | None = None) -> Artifact:
        return self._add("lib", Artifact.from_path(path, name))

    def add_asset(self, path: str | Path, name: str | None = None) -> Artifact:
        return self._add("asset", Artifact.from_path(path, name))

    def category(self, kind: ArtifactKind) -> list[Artifact]:
        if kind == "bin":
            return self.bins
        if kind == "lib":
            return self.libs
        return self.assets

    def names(self, kind: ArtifactKind) -> tuple[str, ...]:
        return tuple(item.name for item in self.category(kind))

    @property
    def has_payload(self) -> bool:
        return bool(self.bins or self.libs)

    def require_payload(self) -> None:
        if not self.has_payload:
            raise PackagingValidationError(
                "Nothing to package: the artifact set has no binaries or libraries.",
                hint="Check that the native build produced an executable or shared library.",
                context={"package": self.name, "platform": self.platform},
            )

    def digests(self) -> dict[str, str]:
        """sha256 of every file artifact, keyed by ``<kind>/<name>``."""
        result: dict[str, str] = {}
        for kind in ("bin", "lib"):
            for item in self.category(kind):
                if item.path.is_file():
                    result[f"{kind}/{item.name}"] = hashlib.sha256(
                        item.path.read_bytes()
                    ).hexdigest()
        return dict(sorted(result.items()))

    def _add(self, kind: ArtifactKind, artifact: Artifact) -> Artifact:
        items = self.category(kind)
        if any(existing.name == artifact.name for existing in items):
            raise PackagingValidationError(
                f"Duplicate {kind} artifact name '{artifact.name}'.",
                context={"kind": kind, "name": artifact.name, "path": str(artifact.path)},
            )
        items.append(artifact)
        return artifact


__all__ = ["Artifact", "ArtifactKind", "ArtifactSet"]
