"""AppImage packaging backend.

Stages an AppDir::

    appimage/
      AppRun
      <exec>.desktop
      <icon>
      usr/bin/    binaries
      usr/lib/    runtime library, snapshot, other shared libraries
      usr/share/  asset bundles

and hands it to ``appimagetool``.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent

from runtimekit.artifacts import ArtifactSet
from runtimekit.config import ENV_AOT_SNAPSHOT, ENV_ASSET_DIR, Settings
from runtimekit.errors import PackagingValidationError
from runtimekit.models import CommandSpec
from runtimekit.platforms import require_platform
from runtimekit.process import Runner

from .base import PackageSpec, copy_entries, fresh_stage_dir, require_icon, validate_payload

APP_RUN_TEMPLATE = dedent("""\
    #!/bin/sh
    SELF=$(readlink -f "$0")
    HERE=${{SELF%/*}}
    export PATH="${{HERE}}/usr/bin/${{PATH:+:$PATH}}"
    export LD_LIBRARY_PATH="${{HERE}}/usr/lib/${{LD_LIBRARY_PATH:+:$LD_LIBRARY_PATH}}"
    export {asset_env}="${{HERE}}/usr/share/{asset_dir}"
    export {snapshot_env}="${{HERE}}/usr/lib/{snapshot}"
    EXEC=$(grep -e '^Exec=.*' "${{HERE}}"/*.desktop | head -n 1 | cut -d "=" -f 2 | cut -d " " -f 1)
    exec "${{EXEC}}" "$@"
""")

DESKTOP_TEMPLATE = dedent("""\
    [Desktop Entry]
    Name={name}
    Exec={exec}
    Icon={icon}
    Type=Application
    Categories=Utility;
""")


def render_app_run(*, asset_dir: str = "flutter_assets", snapshot: str = "app.so") -> str:
    return APP_RUN_TEMPLATE.format(
        asset_env=ENV_ASSET_DIR,
        snapshot_env=ENV_AOT_SNAPSHOT,
        asset_dir=asset_dir,
        snapshot=snapshot,
    )


def render_desktop_entry(*, name: str, exec_name: str, icon: str) -> str:
    return DESKTOP_TEMPLATE.format(name=name, exec=exec_name, icon=icon)


@dataclass(slots=True)
class AppImageBackend:
    settings: Settings
    runner: Runner
    name: str = "appimage"

    def build(self, artifacts: ArtifactSet, spec: PackageSpec) -> Path:
        self._validate(artifacts, spec)
        icon_path = require_icon(spec)
        appimagetool = self.settings.tool("appimagetool")

        app_dir = fresh_stage_dir(spec.out_dir / "appimage")
        copy_entries(artifacts.bins, app_dir / "usr" / "bin")
        copy_entries(artifacts.libs, app_dir / "usr" / "lib")
        copy_entries(artifacts.assets, app_dir / "usr" / "share")

        exec_name = artifacts.bins[0].name
        asset_dir = artifacts.assets[0].name if artifacts.assets else "flutter_assets"
        app_run = app_dir / "AppRun"
        app_run.write_text(render_app_run(asset_dir=asset_dir), encoding="utf-8")
        app_run.chmod(0o755)

        desktop = app_dir / f"{exec_name}.desktop"
        desktop.write_text(
            render_desktop_entry(
                name=spec.label or artifacts.name,
                exec_name=exec_name,
                icon=icon_path.stem or "icon",
            ),
            encoding="utf-8",
        )
        desktop.chmod(0o755)
        shutil.copy2(icon_path, app_dir / icon_path.name)

        output = spec.out_dir / f"{artifacts.name}-{artifacts.version}.AppImage"
        argv = [appimagetool, app_dir.name, output.name]
        if spec.sign:
            argv.append("--sign")
        self.runner.check(CommandSpec(argv=tuple(argv), cwd=spec.out_dir), stage="package")
        return output

    def _validate(self, artifacts: ArtifactSet, spec: PackageSpec) -> None:
        if os.name != "posix":
            raise PackagingValidationError(
                "Creating AppImages is only supported from a unix host.",
                context={"format": spec.format.value},
            )
        validate_payload(artifacts)
        if not artifacts.bins:
            raise PackagingValidationError(
                "AppImage packages need an executable.",
                context={"package": artifacts.name},
            )
        if require_platform(artifacts.platform).family != "linux":
            raise PackagingValidationError(
                "AppImage packages can only be built for Linux targets.",
                context={"platform": artifacts.platform},
            )
