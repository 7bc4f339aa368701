"""Ahead-of-time compilation: kernel compile followed by snapshot generation.

Both tools ship inside runtime distributions. The compiler front end runs on
the host runtime's ``dart``; the snapshot compiler comes from the target
runtime and is located by probing an ordered list of candidate file names
kept per platform family in :data:`SNAPSHOT_CANDIDATES`.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from runtimekit.errors import SnapshotToolNotFoundError, ToolNotFoundError
from runtimekit.models import CommandSpec
from runtimekit.platforms import PlatformFamily, require_platform

from .base import BuildContext

DART_CANDIDATES: tuple[str, ...] = ("dart", "dart.exe")

FRONTEND_SERVER_CANDIDATES: tuple[str, ...] = (
    "gen/frontend_server.dart.snapshot",
    "frontend_server.dart.snapshot",
)

PATCHED_SDK_CANDIDATES: tuple[str, ...] = (
    "flutter_patched_sdk",
    "flutter_patched_sdk_product",
)

SNAPSHOT_CANDIDATES: dict[PlatformFamily, tuple[str, ...]] = {
    "linux": ("gen_snapshot", "gen_snapshot_x64", "gen_snapshot_host_targeting_host"),
    "android": ("gen_snapshot", "gen_snapshot_x64", "gen_snapshot_x86"),
    "macos": ("gen_snapshot", "gen_snapshot_x64", "gen_snapshot_host_targeting_host"),
    "ios": ("gen_snapshot", "gen_snapshot_arm64", "gen_snapshot_armv7"),
    "windows": ("gen_snapshot.exe", "gen_snapshot_x64.exe"),
}


def probe(directory: Path, candidates: Sequence[str]) -> Path | None:
    """Return the first candidate that exists under *directory*."""
    for candidate in candidates:
        path = directory / candidate
        if path.is_file():
            return path
    return None


def find_snapshot_tool(ctx: BuildContext) -> Path:
    family = require_platform(ctx.target_platform).family
    candidates = SNAPSHOT_CANDIDATES[family]
    tool = probe(ctx.target_runtime_dir, candidates)
    if tool is None:
        raise SnapshotToolNotFoundError(
            searched=candidates,
            directory=str(ctx.target_runtime_dir),
        )
    return tool


def intermediate_compile_command(ctx: BuildContext) -> CommandSpec:
    dart = _require(ctx.host_runtime_dir, DART_CANDIDATES, tool="dart")
    frontend = _require(ctx.host_runtime_dir, FRONTEND_SERVER_CANDIDATES, tool="frontend server")
    patched_sdk = _patched_sdk(ctx)
    argv = [
        str(dart),
        str(frontend),
        "--sdk-root",
        f"{patched_sdk}/",
        "--target=flutter",
        "--aot",
        "--tfa",
        "-Ddart.vm.product=true",
    ]
    packages = _package_config(ctx.root_dir)
    if packages is not None:
        argv.extend(["--packages", str(packages)])
    argv.extend(["--output-dill", str(ctx.kernel_path), str(ctx.root_dir / ctx.dart_main)])
    return CommandSpec(argv=tuple(argv), cwd=ctx.root_dir)


def snapshot_command(ctx: BuildContext, tool: Path) -> CommandSpec:
    return CommandSpec(
        argv=(
            str(tool),
            "--deterministic",
            "--snapshot_kind=app-aot-elf",
            f"--elf={ctx.snapshot_path}",
            "--strip",
            str(ctx.kernel_path),
        ),
        cwd=ctx.root_dir,
    )


def _patched_sdk(ctx: BuildContext) -> Path:
    for directory in (ctx.host_runtime_dir, _sdk_engine_common(ctx.sdk_root)):
        if directory is None:
            continue
        for name in PATCHED_SDK_CANDIDATES:
            if (directory / name).is_dir():
                return directory / name
    raise ToolNotFoundError(
        "Couldn't find the patched platform SDK for ahead-of-time compilation.",
        hint="Point RUNTIMEKIT_SDK_ROOT at an installed SDK or refetch the runtime.",
        context={"runtime_dir": str(ctx.host_runtime_dir)},
    )


def _sdk_engine_common(sdk_root: Path | None) -> Path | None:
    if sdk_root is None:
        return None
    return sdk_root / "bin" / "cache" / "artifacts" / "engine" / "common"


def _package_config(root: Path) -> Path | None:
    for candidate in (root / ".dart_tool" / "package_config.json", root / ".packages"):
        if candidate.is_file():
            return candidate
    return None


def _require(directory: Path, candidates: Sequence[str], *, tool: str) -> Path:
    path = probe(directory, candidates)
    if path is None:
        raise ToolNotFoundError(
            f"Couldn't find {tool} in the host runtime.",
            hint="Delete the runtime cache entry so it is fetched again.",
            context={"directory": str(directory), "candidates": ", ".join(candidates)},
        )
    return path
