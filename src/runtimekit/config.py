"""One-shot resolution of tool locations, cache root and environment overrides.

Everything that would otherwise be looked up ad hoc from ``PATH`` or the
process environment is resolved once by :func:`resolve_settings` and carried
around in an immutable :class:`Settings` value.
"""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from runtimekit.errors import ConfigError, ToolNotFoundError

ENV_RUNTIME_PATH = "RUNTIMEKIT_RUNTIME_PATH"
ENV_RUNTIME_VERSION = "RUNTIMEKIT_RUNTIME_VERSION"
ENV_ASSET_DIR = "RUNTIMEKIT_ASSET_DIR"
ENV_AOT_SNAPSHOT = "RUNTIMEKIT_AOT_SNAPSHOT"
ENV_OBSERVATORY_PORT = "RUNTIMEKIT_OBSERVATORY_PORT"
ENV_SDK_ROOT = "RUNTIMEKIT_SDK_ROOT"
ENV_CACHE_DIR = "RUNTIMEKIT_CACHE_DIR"
ENV_MIRROR_URL = "RUNTIMEKIT_MIRROR_URL"
ENV_NETWORK_TIMEOUT = "RUNTIMEKIT_NETWORK_TIMEOUT"
ENV_PROCESS_TIMEOUT = "RUNTIMEKIT_PROCESS_TIMEOUT"
ENV_HOST_TRIPLE = "RUNTIMEKIT_HOST_TRIPLE"

DEFAULT_MIRROR_URL = "https://github.com/flutter-rs/engine-builds/releases/download"
CACHE_COMPONENT = "flutter-engine"

# Tool name -> (environment override, executable looked up on PATH)
TOOLS: dict[str, tuple[str, str]] = {
    "compiler": ("RUNTIMEKIT_CARGO", "cargo"),
    "rustc": ("RUNTIMEKIT_RUSTC", "rustc"),
    "bundler": ("RUNTIMEKIT_BUNDLER", "flutter"),
    "appimagetool": ("RUNTIMEKIT_APPIMAGETOOL", "appimagetool"),
    "aapt": ("RUNTIMEKIT_AAPT", "aapt"),
    "apksigner": ("RUNTIMEKIT_APKSIGNER", "apksigner"),
}


@dataclass(frozen=True, slots=True)
class Settings:
    cache_root: Path
    mirror_url: str = DEFAULT_MIRROR_URL
    tools: Mapping[str, str | None] = field(default_factory=dict)
    sdk_root: Path | None = None
    android_sdk_root: Path | None = None
    android_ndk_root: Path | None = None
    runtime_path_override: Path | None = None
    runtime_version_override: str | None = None
    host_triple: str | None = None
    network_timeout: float | None = None
    process_timeout: float | None = None
    quiet: bool = False

    def tool(self, name: str) -> str:
        """Return the resolved executable for *name* or raise ``ToolNotFoundError``."""
        path = self.tools.get(name)
        if not path:
            executable = TOOLS[name][1] if name in TOOLS else name
            raise ToolNotFoundError(
                f"Required tool `{executable}` was not found.",
                hint=f"Install {executable} and make sure it is on PATH.",
                context={"tool": name},
            )
        return path

    def has_tool(self, name: str) -> bool:
        return bool(self.tools.get(name))

    @property
    def runtime_cache_dir(self) -> Path:
        return self.cache_root / CACHE_COMPONENT


def resolve_settings(
    env: Mapping[str, str] | None = None,
    *,
    quiet: bool = False,
) -> Settings:
    """Resolve all ambient configuration exactly once."""
    environ = os.environ if env is None else env
    tools = {name: _discover_tool(environ, name) for name in TOOLS}
    return Settings(
        cache_root=_path_from(environ, ENV_CACHE_DIR) or default_cache_root(environ),
        mirror_url=environ.get(ENV_MIRROR_URL, DEFAULT_MIRROR_URL).rstrip("/"),
        tools=tools,
        sdk_root=_path_from(environ, ENV_SDK_ROOT) or _sdk_root_from_bundler(tools["bundler"]),
        android_sdk_root=(
            _path_from(environ, "ANDROID_SDK_ROOT") or _path_from(environ, "ANDROID_HOME")
        ),
        android_ndk_root=(
            _path_from(environ, "ANDROID_NDK_ROOT") or _path_from(environ, "ANDROID_NDK_HOME")
        ),
        runtime_path_override=_path_from(environ, ENV_RUNTIME_PATH),
        runtime_version_override=environ.get(ENV_RUNTIME_VERSION) or None,
        host_triple=environ.get(ENV_HOST_TRIPLE) or None,
        network_timeout=_seconds_from(environ, ENV_NETWORK_TIMEOUT),
        process_timeout=_seconds_from(environ, ENV_PROCESS_TIMEOUT),
        quiet=quiet,
    )


def default_cache_root(
    env: Mapping[str, str] | None = None,
    *,
    platform: str | None = None,
) -> Path:
    """Return the per-user cache directory for the current operating system."""
    environ = os.environ if env is None else env
    platform = platform or sys.platform
    home = Path(environ.get("HOME") or Path.home())
    if platform.startswith("win"):
        local = environ.get("LOCALAPPDATA")
        return Path(local) if local else home / "AppData" / "Local"
    if platform == "darwin":
        return home / "Library" / "Caches"
    xdg = environ.get("XDG_CACHE_HOME")
    return Path(xdg) if xdg else home / ".cache"


def read_sdk_runtime_version(sdk_root: Path | None) -> str | None:
    """Read the runtime version pinned by the installed bundler SDK, if any."""
    if sdk_root is None:
        return None
    version_file = sdk_root / "bin" / "internal" / "engine.version"
    if not version_file.is_file():
        return None
    return version_file.read_text(encoding="utf-8").strip() or None


def resolve_runtime_version(*, pinned: str | None, settings: Settings) -> str:
    """Pick the runtime version: manifest pin, then env override, then the SDK."""
    version = pinned or settings.runtime_version_override
    if version is None:
        version = read_sdk_runtime_version(settings.sdk_root)
    if not version:
        raise ConfigError(
            "Couldn't determine the runtime version.",
            hint=(
                "Set runtime_version under [package.metadata.runtimekit], export "
                f"{ENV_RUNTIME_VERSION}, or point {ENV_SDK_ROOT} at an installed SDK."
            ),
            context={"sdk_root": str(settings.sdk_root or "")},
        )
    return version


def _discover_tool(env: Mapping[str, str], name: str) -> str | None:
    env_name, executable = TOOLS[name]
    override = env.get(env_name)
    if override:
        return override
    return shutil.which(executable, path=env.get("PATH"))


def _sdk_root_from_bundler(bundler: str | None) -> Path | None:
    if bundler is None:
        return None
    # <sdk>/bin/<bundler>
    return Path(bundler).resolve().parent.parent


def _path_from(env: Mapping[str, str], name: str) -> Path | None:
    value = env.get(name)
    return Path(value) if value else None


def _seconds_from(env: Mapping[str, str], name: str) -> float | None:
    value = env.get(name)
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError as exc:
        raise ConfigError(
            f"{name} must be a number of seconds.",
            context={"value": value},
        ) from exc
    return seconds if seconds > 0 else None


__all__ = [
    "CACHE_COMPONENT",
    "DEFAULT_MIRROR_URL",
    "ENV_AOT_SNAPSHOT",
    "ENV_ASSET_DIR",
    "ENV_OBSERVATORY_PORT",
    "ENV_RUNTIME_PATH",
    "ENV_RUNTIME_VERSION",
    "Settings",
    "default_cache_root",
    "read_sdk_runtime_version",
    "resolve_runtime_version",
    "resolve_settings",
]
