"""Asset bundling stage."""

from __future__ import annotations

from runtimekit.config import Settings
from runtimekit.models import CommandSpec

from .base import BuildContext


def bundle_command(ctx: BuildContext, settings: Settings) -> CommandSpec:
    return CommandSpec(
        argv=(
            settings.tool("bundler"),
            "build",
            "bundle",
            ctx.profile.bundler_flag,
            "--track-widget-creation",
            "--asset-dir",
            str(ctx.asset_dir),
            "--depfile",
            str(ctx.depfile),
            "--target",
            str(ctx.dart_main),
        ),
        cwd=ctx.root_dir,
    )
