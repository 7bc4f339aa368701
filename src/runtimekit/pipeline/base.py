"""Typed pipeline state, options and per-invocation build context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from runtimekit.models import BuildProfile, PlatformId


class Stage(StrEnum):
    """Build stages in their fixed execution order."""

    BUNDLE = "bundle"
    INTERMEDIATE_COMPILE = "intermediate-compile"
    SNAPSHOT = "snapshot"
    NATIVE_BUILD = "native-build"
    ASSEMBLY = "assembly"


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)


class PipelineState(StrEnum):
    IDLE = "idle"
    BUNDLE = "bundle"
    INTERMEDIATE_COMPILE = "intermediate-compile"
    SNAPSHOT = "snapshot"
    NATIVE_BUILD = "native-build"
    ASSEMBLY = "assembly"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class StageFailure:
    """``Failed(stage, cause)``: the exit code for tool failures, else the exception."""

    stage: Stage
    cause: int | Exception


@dataclass(frozen=True, slots=True)
class PipelineOptions:
    bundle: bool = True
    aot: bool | None = None

    def aot_enabled(self, profile: BuildProfile) -> bool:
        return profile.requires_aot if self.aot is None else self.aot


@dataclass(frozen=True, slots=True)
class BuildContext:
    name: str
    version: str
    root_dir: Path
    target_dir: Path
    profile: BuildProfile
    host_platform: PlatformId
    target_platform: PlatformId
    runtime_version: str
    host_runtime: Path
    target_runtime: Path
    explicit_target: bool = False
    dart_main: Path = Path("lib/main.dart")
    compiler_args: tuple[str, ...] = ()
    sdk_root: Path | None = None

    @property
    def crate_name(self) -> str:
        return self.name.replace("-", "_")

    @property
    def cargo_profile_dir(self) -> str:
        return "debug" if self.profile is BuildProfile.DEBUG else "release"

    @property
    def out_dir(self) -> Path:
        base = self.target_dir / self.target_platform if self.explicit_target else self.target_dir
        return base / self.cargo_profile_dir

    @property
    def asset_dir(self) -> Path:
        return self.out_dir / "flutter_assets"

    @property
    def depfile(self) -> Path:
        return self.out_dir / "snapshot_blob.bin.d"

    @property
    def kernel_path(self) -> Path:
        return self.out_dir / "kernel_snapshot.dill"

    @property
    def snapshot_path(self) -> Path:
        return self.out_dir / "app.so"

    @property
    def report_path(self) -> Path:
        return self.out_dir / "build-report.json"

    @property
    def host_runtime_dir(self) -> Path:
        return self.host_runtime.parent

    @property
    def target_runtime_dir(self) -> Path:
        return self.target_runtime.parent
