import dataclasses
import os
from pathlib import Path

import pytest

from runtimekit.artifacts import ArtifactSet
from runtimekit.config import Settings
from runtimekit.errors import PackagingValidationError, ToolNotFoundError, UnsupportedFormatError
from runtimekit.manifest import Manifest
from runtimekit.models import BuildProfile
from runtimekit.packaging import PackageFormat, PackageSpec, get_backend
from runtimekit.packaging.apk import find_android_jar, render_android_manifest
from runtimekit.packaging.appimage import render_app_run

posix_only = pytest.mark.skipif(os.name != "posix", reason="AppImage needs a unix host")


def test_empty_artifact_set_is_rejected_before_staging(
    tmp_path: Path, settings: Settings, runner
) -> None:
    artifacts = ArtifactSet("demo", "0.1.0", "x86_64-unknown-linux-gnu", BuildProfile.DEBUG)
    spec = PackageSpec(format=PackageFormat.APPIMAGE, out_dir=tmp_path / "out")
    backend = get_backend("appimage", settings=settings, runner=runner)

    with pytest.raises(PackagingValidationError) as excinfo:
        backend.build(artifacts, spec)

    assert excinfo.value.exit_code() == 9
    assert not (tmp_path / "out").exists()
    assert runner.commands == []


@posix_only
def test_appimage_layout(tmp_path: Path, settings: Settings, runner) -> None:
    artifacts = _linux_artifacts(tmp_path)
    icon = tmp_path / "icon.svg"
    icon.write_text("<svg/>", encoding="utf-8")
    spec = PackageSpec(
        format=PackageFormat.APPIMAGE,
        out_dir=tmp_path / "out",
        icon=icon,
        label="Demo App",
    )

    output = get_backend("appimage", settings=settings, runner=runner).build(artifacts, spec)

    app_dir = tmp_path / "out" / "appimage"
    assert output == tmp_path / "out" / "demo-0.1.0.AppImage"
    assert (app_dir / "usr" / "bin" / "demo").read_bytes() == b"binary"
    assert (app_dir / "usr" / "lib" / "libflutter_engine.so").is_file()
    assert (app_dir / "usr" / "share" / "flutter_assets" / "AssetManifest.json").is_file()
    assert (app_dir / "icon.svg").is_file()
    assert os.access(app_dir / "AppRun", os.X_OK)
    desktop = (app_dir / "demo.desktop").read_text(encoding="utf-8")
    assert "Name=Demo App\n" in desktop
    assert "Exec=demo\n" in desktop
    assert "Icon=icon\n" in desktop
    assert runner.commands[-1].argv == ("appimagetool", "appimage", "demo-0.1.0.AppImage")
    assert runner.commands[-1].cwd == tmp_path / "out"
    assert runner.stages == ["package"]


@posix_only
def test_appimage_signing_and_restaging(tmp_path: Path, settings: Settings, runner) -> None:
    artifacts = _linux_artifacts(tmp_path)
    icon = tmp_path / "icon.svg"
    icon.write_text("<svg/>", encoding="utf-8")
    spec = PackageSpec(PackageFormat.APPIMAGE, tmp_path / "out", sign=True, icon=icon)
    backend = get_backend(PackageFormat.APPIMAGE, settings=settings, runner=runner)
    stale = tmp_path / "out" / "appimage" / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")

    backend.build(artifacts, spec)

    assert runner.commands[-1].argv[-1] == "--sign"
    assert not stale.exists()


def test_appimage_requires_linux_target(tmp_path: Path, settings: Settings, runner) -> None:
    artifacts = ArtifactSet("demo", "0.1.0", "x86_64-apple-darwin", BuildProfile.RELEASE)
    artifacts.add_bin(_file(tmp_path / "demo"))
    spec = PackageSpec(PackageFormat.APPIMAGE, tmp_path / "out", icon=_file(tmp_path / "i.svg"))

    with pytest.raises(PackagingValidationError):
        get_backend("appimage", settings=settings, runner=runner).build(artifacts, spec)

    assert not (tmp_path / "out").exists()


@posix_only
def test_appimage_missing_icon(tmp_path: Path, settings: Settings, runner) -> None:
    spec = PackageSpec(PackageFormat.APPIMAGE, tmp_path / "out", icon=tmp_path / "nope.svg")

    with pytest.raises(PackagingValidationError) as excinfo:
        get_backend("appimage", settings=settings, runner=runner).build(
            _linux_artifacts(tmp_path), spec
        )

    assert "Icon not found" in str(excinfo.value)
    assert not (tmp_path / "out").exists()


@pytest.mark.parametrize("fmt", ["dmg", "lipo", "nsis", "zip"])
def test_unimplemented_formats_are_rejected(fmt: str, settings: Settings, runner) -> None:
    with pytest.raises(UnsupportedFormatError) as excinfo:
        get_backend(fmt, settings=settings, runner=runner)

    assert excinfo.value.exit_code() == 8


def test_apk_packaging(tmp_path: Path, settings: Settings, runner) -> None:
    sdk = tmp_path / "android-sdk"
    for level in (28, 30):
        _file(sdk / "platforms" / f"android-{level}" / "android.jar")
    android_settings = dataclasses.replace(settings, android_sdk_root=sdk)
    artifacts = ArtifactSet("demo-app", "0.1.0", "aarch64-linux-android", BuildProfile.DEBUG)
    artifacts.add_lib(_file(tmp_path / "build" / "libdemo_app.so"))
    artifacts.add_lib(_file(tmp_path / "runtime" / "libflutter_engine.so"))
    assets = tmp_path / "build" / "flutter_assets"
    _file(assets / "kernel_blob.bin")
    artifacts.add_asset(assets)
    spec = PackageSpec(PackageFormat.APK, tmp_path / "out", label="Demo")

    output = get_backend("apk", settings=android_settings, runner=runner).build(artifacts, spec)

    apk_dir = tmp_path / "out" / "apk"
    assert output == apk_dir / "demo-app-unsigned.apk"
    assert (apk_dir / "lib" / "arm64-v8a" / "libdemo_app.so").is_file()
    assert (apk_dir / "assets" / "flutter_assets" / "kernel_blob.bin").is_file()
    manifest = (apk_dir / "AndroidManifest.xml").read_text(encoding="utf-8")
    assert 'package="rust.demo_app"' in manifest
    assert 'android:value="demo_app"' in manifest
    package_argv = runner.commands[0].argv
    assert package_argv[:2] == ("aapt", "package")
    assert str(sdk / "platforms" / "android-30" / "android.jar") in package_argv
    assert package_argv[-4:] == ("-A", "assets", "-F", "demo-app-unsigned.apk")
    assert [command.argv[-1] for command in runner.commands[1:]] == [
        "lib/arm64-v8a/libdemo_app.so",
        "lib/arm64-v8a/libflutter_engine.so",
    ]


def test_apk_signing_requires_keystore(tmp_path: Path, settings: Settings, runner) -> None:
    artifacts = ArtifactSet("demo", "0.1.0", "armv7-linux-androideabi", BuildProfile.RELEASE)
    artifacts.add_lib(_file(tmp_path / "libdemo.so"))
    spec = PackageSpec(PackageFormat.APK, tmp_path / "out", sign=True)

    with pytest.raises(PackagingValidationError) as excinfo:
        get_backend("apk", settings=settings, runner=runner).build(artifacts, spec)

    assert "keystore" in str(excinfo.value)
    assert runner.commands == []


def test_apk_rejects_desktop_targets(tmp_path: Path, settings: Settings, runner) -> None:
    artifacts = _linux_artifacts(tmp_path)
    spec = PackageSpec(PackageFormat.APK, tmp_path / "out")

    with pytest.raises(PackagingValidationError):
        get_backend("apk", settings=settings, runner=runner).build(artifacts, spec)


def test_package_spec_from_manifest(tmp_path: Path) -> None:
    manifest = Manifest(
        path=tmp_path / "Cargo.toml",
        name="demo",
        version="0.1.0",
        packaging={
            "appimage": {"name": "Demo"},
            "apk": {"label": "Demo", "keystore": "keys/release.jks", "min_sdk": 24},
        },
    )

    appimage = PackageSpec.from_manifest(
        PackageFormat.APPIMAGE, manifest, out_dir=tmp_path / "out", sign=False
    )
    apk = PackageSpec.from_manifest(
        PackageFormat.APK, manifest, out_dir=tmp_path / "out", sign=True
    )

    assert appimage.icon == tmp_path / "assets" / "icon.svg"
    assert appimage.label == "Demo"
    assert apk.icon is None
    assert apk.extra == {"keystore": str(tmp_path / "keys/release.jks"), "min_sdk": "24"}
    assert apk.sign is True


def test_find_android_jar_without_sdk() -> None:
    with pytest.raises(ToolNotFoundError) as excinfo:
        find_android_jar(None)

    assert excinfo.value.code == "E_TOOL_NOT_FOUND"


def test_rendered_templates_escape_and_reference_env() -> None:
    manifest = render_android_manifest(
        package_id="rust.demo",
        version="1.0",
        label="Tom & Jerry's",
        lib_name="demo",
    )
    app_run = render_app_run()

    assert "label=\"Tom &amp; Jerry's\"" in manifest
    assert 'export RUNTIMEKIT_ASSET_DIR="${HERE}/usr/share/flutter_assets"' in app_run
    assert 'export RUNTIMEKIT_AOT_SNAPSHOT="${HERE}/usr/lib/app.so"' in app_run


def _linux_artifacts(root: Path) -> ArtifactSet:
    artifacts = ArtifactSet("demo", "0.1.0", "x86_64-unknown-linux-gnu", BuildProfile.RELEASE)
    artifacts.add_bin(_file(root / "build" / "demo", b"binary"))
    artifacts.add_lib(_file(root / "build" / "libflutter_engine.so"))
    assets = root / "build" / "flutter_assets"
    _file(assets / "AssetManifest.json", b"{}")
    artifacts.add_asset(assets)
    return artifacts


def _file(path: Path, payload: bytes = b"payload") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    return path
