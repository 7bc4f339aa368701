"""Artifact assembly and build report emission."""

from __future__ import annotations

import json
import shutil
from collections.abc import Sequence
from pathlib import Path

from runtimekit.artifacts import ArtifactSet
from runtimekit.errors import PackagingValidationError
from runtimekit.observability import StructuredLogger
from runtimekit.platforms import require_platform

from .base import BuildContext, Stage
from .native import produced_name


def copy_runtime(ctx: BuildContext) -> Path:
    """Copy the runtime library (and import library) next to the produced binary."""
    info = require_platform(ctx.target_platform)
    ctx.out_dir.mkdir(parents=True, exist_ok=True)
    destination = ctx.out_dir / ctx.target_runtime.name
    if destination.resolve() != ctx.target_runtime.resolve():
        shutil.copy2(ctx.target_runtime, destination)
    if info.import_library is not None:
        import_library = ctx.target_runtime_dir / info.import_library
        if import_library.is_file():
            shutil.copy2(import_library, ctx.out_dir / info.import_library)
    return destination


def assemble(ctx: BuildContext, *, bundled: bool, snapshot_built: bool) -> ArtifactSet:
    info = require_platform(ctx.target_platform)
    produced = ctx.out_dir / produced_name(ctx)
    if not produced.is_file():
        raise PackagingValidationError(
            "The native build did not produce the expected output.",
            hint="Make sure the package builds a binary (or a cdylib on Android).",
            context={"expected": str(produced)},
        )

    artifacts = ArtifactSet(
        name=ctx.name,
        version=ctx.version,
        platform=ctx.target_platform,
        profile=ctx.profile,
    )
    if info.is_android:
        artifacts.add_lib(produced)
    else:
        artifacts.add_bin(produced)
    artifacts.add_lib(copy_runtime(ctx))
    if snapshot_built:
        artifacts.add_lib(ctx.snapshot_path)
    if bundled:
        artifacts.add_asset(ctx.asset_dir)
    return artifacts


def write_report(
    ctx: BuildContext,
    artifacts: ArtifactSet,
    *,
    stages_run: Sequence[Stage],
    stages_skipped: Sequence[Stage],
    events: StructuredLogger,
) -> Path:
    payload = {
        "name": ctx.name,
        "version": ctx.version,
        "platform": ctx.target_platform,
        "host_platform": ctx.host_platform,
        "profile": ctx.profile.value,
        "runtime_version": ctx.runtime_version,
        "stages_run": [stage.value for stage in stages_run],
        "stages_skipped": [stage.value for stage in stages_skipped],
        "artifacts": {
            "bins": list(artifacts.names("bin")),
            "libs": list(artifacts.names("lib")),
            "assets": list(artifacts.names("asset")),
        },
        "artifact_digests": artifacts.digests(),
        "logs": events.records,
    }
    ctx.report_path.parent.mkdir(parents=True, exist_ok=True)
    ctx.report_path.write_text(
        json.dumps(payload, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return ctx.report_path
