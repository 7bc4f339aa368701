"""Android NDK toolchain selection for the native build.

Cargo needs the NDK's clang wrapper as linker and C compiler for every
``*-android*`` target; the ``cc`` crate additionally picks up ``CC_<triple>``
and ``AR_<triple>`` for build scripts that compile C code.
"""

from __future__ import annotations

import re
import sys
from pathlib import Path

from runtimekit.errors import ToolNotFoundError
from runtimekit.models import PlatformId

NDK_HOST_TAGS = {
    "linux": "linux-x86_64",
    "darwin": "darwin-x86_64",
    "win32": "windows-x86_64",
}

# rustc triples whose clang target name differs.
_CLANG_TRIPLES = {"armv7-linux-androideabi": "armv7a-linux-androideabi"}


def host_tag(platform: str | None = None) -> str:
    platform = platform or sys.platform
    for prefix, tag in NDK_HOST_TAGS.items():
        if platform.startswith(prefix):
            return tag
    raise ToolNotFoundError(
        f"The Android NDK has no prebuilt toolchain for host '{platform}'.",
        context={"host": platform},
    )


def toolchain_bin(ndk_root: Path, *, platform: str | None = None) -> Path:
    return ndk_root / "toolchains" / "llvm" / "prebuilt" / host_tag(platform) / "bin"


def clang_triple(triple: PlatformId) -> str:
    return _CLANG_TRIPLES.get(triple, triple)


def default_api_level(bin_dir: Path, triple: PlatformId, *, platform: str | None = None) -> int:
    """Return the highest API level the NDK ships a clang wrapper for."""
    suffix = ".cmd" if (platform or sys.platform).startswith("win") else ""
    pattern = re.compile(rf"^{re.escape(clang_triple(triple))}(\d+)-clang{re.escape(suffix)}$")
    levels = []
    if bin_dir.is_dir():
        for entry in bin_dir.iterdir():
            match = pattern.match(entry.name)
            if match:
                levels.append(int(match.group(1)))
    if not levels:
        raise ToolNotFoundError(
            f"The Android NDK has no clang wrapper for {triple}.",
            hint="Install a recent NDK (r19 or newer) and export ANDROID_NDK_ROOT.",
            context={"toolchain": str(bin_dir)},
        )
    return max(levels)


def ndk_environment(
    ndk_root: Path | None,
    triple: PlatformId,
    *,
    platform: str | None = None,
) -> dict[str, str]:
    """Cargo and cc-crate variables that point an Android build at the NDK."""
    if ndk_root is None:
        raise ToolNotFoundError(
            "Building for Android requires the Android NDK.",
            hint="Install the NDK and export ANDROID_NDK_ROOT (or ANDROID_NDK_HOME).",
            context={"target": triple},
        )
    windows = (platform or sys.platform).startswith("win")
    bin_dir = toolchain_bin(ndk_root, platform=platform)
    api = default_api_level(bin_dir, triple, platform=platform)
    clang = bin_dir / f"{clang_triple(triple)}{api}-clang{'.cmd' if windows else ''}"
    archiver = bin_dir / f"llvm-ar{'.exe' if windows else ''}"
    key = triple.replace("-", "_")
    return {
        f"CARGO_TARGET_{key.upper()}_LINKER": str(clang),
        f"CC_{key}": str(clang),
        f"AR_{key}": str(archiver),
    }


__all__ = ["default_api_level", "host_tag", "ndk_environment", "toolchain_bin"]
