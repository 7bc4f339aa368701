"""Core typed dataclasses for build profiles, runtime handles and commands."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from runtimekit.errors import ConfigError

PlatformId = str


class BuildProfile(StrEnum):
    """Optimization profile; selects compiler flags and the runtime variant."""

    DEBUG = "debug"
    PROFILE = "profile"
    RELEASE = "release"

    @property
    def dir_name(self) -> str:
        """Directory name used in the runtime cache layout."""
        return self.value

    @property
    def artifact_name(self) -> str:
        """Profile component of the published runtime archive name."""
        if self is BuildProfile.DEBUG:
            return "debug_unopt"
        return self.value

    @property
    def requires_aot(self) -> bool:
        return self is not BuildProfile.DEBUG

    @property
    def embeds_rpath(self) -> bool:
        return self is not BuildProfile.RELEASE

    @property
    def bundler_flag(self) -> str:
        return f"--{self.value}"

    @classmethod
    def parse(cls, value: str) -> BuildProfile:
        try:
            return cls(value.lower())
        except ValueError:
            raise ConfigError(
                f"Unknown build profile '{value}'.",
                hint="Use one of: debug, profile, release.",
            ) from None


@dataclass(frozen=True, slots=True)
class RuntimeHandle:
    """Identity of one prebuilt runtime: (version, platform, profile)."""

    version: str
    platform: PlatformId
    profile: BuildProfile

    @property
    def relative_dir(self) -> Path:
        return Path(self.version) / self.platform / self.profile.dir_name


@dataclass(frozen=True, slots=True)
class CommandSpec:
    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path | None = None

    def display(self) -> str:
        return " ".join(self.argv)


__all__ = ["BuildProfile", "CommandSpec", "PlatformId", "RuntimeHandle"]
