"""Android APK packaging backend."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from xml.sax.saxutils import quoteattr

from runtimekit.artifacts import ArtifactSet
from runtimekit.config import Settings
from runtimekit.errors import PackagingValidationError, ToolNotFoundError
from runtimekit.models import CommandSpec
from runtimekit.platforms import require_platform
from runtimekit.process import Runner

from .base import PackageSpec, copy_entries, fresh_stage_dir, validate_payload

DEFAULT_MIN_SDK = "21"
DEFAULT_TARGET_SDK = "30"

MANIFEST_TEMPLATE = dedent("""\
    <?xml version="1.0" encoding="utf-8"?>
    <manifest xmlns:android="http://schemas.android.com/apk/res/android"
        package={package_id}
        android:versionName={version}>
        <uses-sdk android:minSdkVersion={min_sdk} android:targetSdkVersion={target_sdk} />
        <application android:label={label} android:hasCode="false">
            <activity android:name="android.app.NativeActivity"
                android:label={label}
                android:configChanges="orientation|keyboardHidden|screenSize">
                <meta-data android:name="android.app.lib_name" android:value={lib_name} />
                <intent-filter>
                    <action android:name="android.intent.action.MAIN" />
                    <category android:name="android.intent.category.LAUNCHER" />
                </intent-filter>
            </activity>
        </application>
    </manifest>
""")

_PLATFORM_DIR = re.compile(r"^android-(\d+)$")


def render_android_manifest(
    *,
    package_id: str,
    version: str,
    label: str,
    lib_name: str,
    min_sdk: str = DEFAULT_MIN_SDK,
    target_sdk: str = DEFAULT_TARGET_SDK,
) -> str:
    return MANIFEST_TEMPLATE.format(
        package_id=quoteattr(package_id),
        version=quoteattr(version),
        label=quoteattr(label),
        lib_name=quoteattr(lib_name),
        min_sdk=quoteattr(min_sdk),
        target_sdk=quoteattr(target_sdk),
    )


def find_android_jar(sdk_root: Path | None) -> Path:
    """Return ``platforms/android-<N>/android.jar`` for the highest installed N."""
    platforms = sdk_root / "platforms" if sdk_root is not None else None
    best: tuple[int, Path] | None = None
    if platforms is not None and platforms.is_dir():
        for directory in platforms.iterdir():
            match = _PLATFORM_DIR.match(directory.name)
            jar = directory / "android.jar"
            if match and jar.is_file():
                level = int(match.group(1))
                if best is None or level > best[0]:
                    best = (level, jar)
    if best is None:
        raise ToolNotFoundError(
            "Couldn't find an Android platform (android.jar).",
            hint="Install an SDK platform and export ANDROID_SDK_ROOT.",
            context={"sdk_root": str(sdk_root or "")},
        )
    return best[1]


@dataclass(slots=True)
class ApkBackend:
    settings: Settings
    runner: Runner
    name: str = "apk"

    def build(self, artifacts: ArtifactSet, spec: PackageSpec) -> Path:
        abi = self._validate(artifacts, spec)
        aapt = self.settings.tool("aapt")
        android_jar = find_android_jar(self.settings.android_sdk_root)
        apksigner = self.settings.tool("apksigner") if spec.sign else None

        apk_dir = fresh_stage_dir(spec.out_dir / "apk")
        libs = copy_entries(artifacts.libs, apk_dir / "lib" / abi)
        copy_entries(artifacts.assets, apk_dir / "assets")

        manifest = apk_dir / "AndroidManifest.xml"
        manifest.write_text(
            render_android_manifest(
                package_id=spec.extra.get("package_id", _default_package_id(artifacts)),
                version=artifacts.version,
                label=spec.label or artifacts.name,
                lib_name=_lib_name(artifacts),
                min_sdk=spec.extra.get("min_sdk", DEFAULT_MIN_SDK),
                target_sdk=spec.extra.get("target_sdk", DEFAULT_TARGET_SDK),
            ),
            encoding="utf-8",
        )

        unsigned = apk_dir / f"{artifacts.name}-unsigned.apk"
        package_argv = [aapt, "package", "-f", "-M", manifest.name, "-I", str(android_jar)]
        if artifacts.assets:
            package_argv.extend(["-A", "assets"])
        package_argv.extend(["-F", unsigned.name])
        self.runner.check(CommandSpec(argv=tuple(package_argv), cwd=apk_dir), stage="package")
        for lib in libs:
            relative = lib.relative_to(apk_dir).as_posix()
            self.runner.check(
                CommandSpec(argv=(aapt, "add", unsigned.name, relative), cwd=apk_dir),
                stage="package",
            )

        if apksigner is None:
            return unsigned
        signed = spec.out_dir / f"{artifacts.name}.apk"
        self.runner.check(
            CommandSpec(
                argv=(
                    apksigner,
                    "sign",
                    "--ks",
                    spec.extra["keystore"],
                    "--out",
                    str(signed),
                    str(unsigned),
                ),
                cwd=apk_dir,
            ),
            stage="package",
        )
        return signed

    def _validate(self, artifacts: ArtifactSet, spec: PackageSpec) -> str:
        validate_payload(artifacts)
        info = require_platform(artifacts.platform)
        if not info.is_android or info.abi is None:
            raise PackagingValidationError(
                "APK packages can only be built for Android targets.",
                context={"platform": artifacts.platform},
            )
        if not artifacts.libs:
            raise PackagingValidationError(
                "APK packages need at least one shared library.",
                context={"package": artifacts.name},
            )
        if spec.sign:
            keystore = spec.extra.get("keystore")
            if not keystore or not Path(keystore).is_file():
                raise PackagingValidationError(
                    "Signing requested but no keystore was found.",
                    hint="Set `keystore` under [package.metadata.apk] or pass --no-sign.",
                    context={"keystore": keystore or ""},
                )
        return info.abi


def _lib_name(artifacts: ArtifactSet) -> str:
    # The application library is the first one the pipeline registered.
    name = artifacts.libs[0].name
    return name.removeprefix("lib").removesuffix(".so")


def _default_package_id(artifacts: ArtifactSet) -> str:
    return f"rust.{artifacts.name.replace('-', '_')}"
