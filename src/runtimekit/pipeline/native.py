"""Native compile/link stage."""

from __future__ import annotations

from runtimekit.config import Settings
from runtimekit.models import BuildProfile, CommandSpec
from runtimekit.platforms import require_platform

from .base import BuildContext
from .ndk import ndk_environment


def link_flags(ctx: BuildContext) -> str:
    """Linker flags that let the binary find the runtime library.

    Non-release builds also embed a run-time search path pointing at the
    cache so the binary runs in place; release builds leave it out so no
    build-machine path ends up in the shipped binary.
    """
    runtime_dir = ctx.target_runtime_dir
    flags = [f"-Clink-arg=-L{runtime_dir}"]
    if ctx.profile.embeds_rpath and not require_platform(ctx.target_platform).is_windows:
        flags.append(f"-Clink-arg=-Wl,-rpath,{runtime_dir}")
    return " ".join(flags)


def native_build_command(ctx: BuildContext, settings: Settings) -> CommandSpec:
    argv = [settings.tool("compiler"), "build", *ctx.compiler_args]
    if ctx.profile is not BuildProfile.DEBUG and "--release" not in argv:
        argv.append("--release")
    if ctx.explicit_target and "--target" not in argv:
        argv.extend(["--target", ctx.target_platform])
    argv.extend(["--target-dir", str(ctx.target_dir)])
    env = {"RUSTFLAGS": link_flags(ctx)}
    if require_platform(ctx.target_platform).is_android:
        env.update(ndk_environment(settings.android_ndk_root, ctx.target_platform))
    return CommandSpec(
        argv=tuple(argv),
        env=env,
        cwd=ctx.root_dir,
    )


def produced_name(ctx: BuildContext) -> str:
    """File name of the binary or shared library the native build emits."""
    info = require_platform(ctx.target_platform)
    if info.is_android:
        return f"lib{ctx.crate_name}.so"
    if info.is_windows:
        return f"{ctx.name}.exe"
    return ctx.name
