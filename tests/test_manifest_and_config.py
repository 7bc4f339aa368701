import dataclasses
from pathlib import Path

import pytest

from runtimekit.config import (
    Settings,
    default_cache_root,
    read_sdk_runtime_version,
    resolve_runtime_version,
    resolve_settings,
)
from runtimekit.errors import ConfigError, ToolNotFoundError
from runtimekit.manifest import find_manifest, load_manifest

MANIFEST = """\
[package]
name = "hello-world"
version = "0.3.1"

[package.metadata.runtimekit]
runtime_version = "abc123"

[package.metadata.appimage]
name = "Hello"
icon = "assets/hello.svg"
"""


def test_load_manifest_reads_package_and_metadata(tmp_path: Path) -> None:
    path = _write(tmp_path / "Cargo.toml", MANIFEST)

    manifest = load_manifest(path)

    assert manifest.name == "hello-world"
    assert manifest.crate_name == "hello_world"
    assert manifest.version == "0.3.1"
    assert manifest.runtime_version == "abc123"
    assert manifest.packaging_config("appimage") == {"name": "Hello", "icon": "assets/hello.svg"}
    assert manifest.packaging_config("apk") == {}
    assert manifest.root_dir == tmp_path


def test_load_manifest_selects_workspace_member(tmp_path: Path) -> None:
    root = _write(tmp_path / "Cargo.toml", '[workspace]\nmembers = ["apps/*"]\n')
    _write(tmp_path / "apps" / "one" / "Cargo.toml", '[package]\nname = "one"\n')
    _write(tmp_path / "apps" / "two" / "Cargo.toml", '[package]\nname = "two"\nversion = "2.0.0"\n')

    manifest = load_manifest(root, package="two")

    assert manifest.version == "2.0.0"
    assert manifest.root_dir == tmp_path / "apps" / "two"
    with pytest.raises(ConfigError) as excinfo:
        load_manifest(root, package="three")
    assert "not a member of the workspace" in str(excinfo.value)


def test_workspace_root_without_package_needs_selection(tmp_path: Path) -> None:
    root = _write(tmp_path / "Cargo.toml", '[workspace]\nmembers = []\n')

    with pytest.raises(ConfigError) as excinfo:
        load_manifest(root)

    assert excinfo.value.exit_code() == 2


@pytest.mark.parametrize(
    "content",
    [
        "[package\nname = 1",
        '[package]\nversion = "1.0"\n',
        '[package]\nname = "x"\nversion = 3\n',
        '[package]\nname = "x"\n[package.metadata.runtimekit]\nruntime_version = 7\n',
    ],
)
def test_invalid_manifests_are_config_errors(tmp_path: Path, content: str) -> None:
    path = _write(tmp_path / "Cargo.toml", content)

    with pytest.raises(ConfigError):
        load_manifest(path)


def test_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_manifest(tmp_path / "Cargo.toml")


def test_find_manifest_walks_up(tmp_path: Path) -> None:
    path = _write(tmp_path / "Cargo.toml", MANIFEST)
    nested = tmp_path / "src" / "bin"
    nested.mkdir(parents=True)

    assert find_manifest(nested) == path.resolve()


def test_runtime_version_precedence(tmp_path: Path) -> None:
    sdk = tmp_path / "sdk"
    _write(sdk / "bin" / "internal" / "engine.version", "sdkpinned\n")
    settings = Settings(cache_root=tmp_path / "cache", sdk_root=sdk)
    with_env = dataclasses.replace(settings, runtime_version_override="fromenv")

    assert resolve_runtime_version(pinned="manifest", settings=with_env) == "manifest"
    assert resolve_runtime_version(pinned=None, settings=with_env) == "fromenv"
    assert resolve_runtime_version(pinned=None, settings=settings) == "sdkpinned"
    assert read_sdk_runtime_version(None) is None


def test_runtime_version_unavailable(tmp_path: Path) -> None:
    settings = Settings(cache_root=tmp_path / "cache", sdk_root=tmp_path / "missing")

    with pytest.raises(ConfigError) as excinfo:
        resolve_runtime_version(pinned=None, settings=settings)

    assert "RUNTIMEKIT_RUNTIME_VERSION" in (excinfo.value.hint or "")


def test_resolve_settings_from_environment(tmp_path: Path) -> None:
    empty_path = tmp_path / "bin"
    empty_path.mkdir()
    env = {
        "PATH": str(empty_path),
        "HOME": str(tmp_path / "home"),
        "RUNTIMEKIT_CARGO": "/opt/cargo/bin/cargo",
        "RUNTIMEKIT_CACHE_DIR": str(tmp_path / "cache"),
        "RUNTIMEKIT_MIRROR_URL": "https://mirror.example/releases/",
        "RUNTIMEKIT_RUNTIME_VERSION": "abc123",
        "RUNTIMEKIT_SDK_ROOT": str(tmp_path / "sdk"),
        "RUNTIMEKIT_NETWORK_TIMEOUT": "30",
        "ANDROID_HOME": str(tmp_path / "android"),
    }

    settings = resolve_settings(env, quiet=True)

    assert settings.tool("compiler") == "/opt/cargo/bin/cargo"
    assert not settings.has_tool("appimagetool")
    assert settings.cache_root == tmp_path / "cache"
    assert settings.runtime_cache_dir == tmp_path / "cache" / "flutter-engine"
    assert settings.mirror_url == "https://mirror.example/releases"
    assert settings.runtime_version_override == "abc123"
    assert settings.sdk_root == tmp_path / "sdk"
    assert settings.android_sdk_root == tmp_path / "android"
    assert settings.network_timeout == 30.0
    assert settings.process_timeout is None
    assert settings.quiet is True
    with pytest.raises(ToolNotFoundError) as excinfo:
        settings.tool("appimagetool")
    assert "appimagetool" in str(excinfo.value)


def test_tools_are_discovered_on_path(tmp_path: Path) -> None:
    bin_dir = tmp_path / "sdk" / "bin"
    bundler = _write(bin_dir / "flutter", "#!/bin/sh\n")
    bundler.chmod(0o755)

    settings = resolve_settings({"PATH": str(bin_dir), "HOME": str(tmp_path)})

    assert settings.tool("bundler") == str(bundler)
    assert settings.sdk_root == (tmp_path / "sdk").resolve()


def test_invalid_timeout_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        resolve_settings({"PATH": str(tmp_path), "RUNTIMEKIT_PROCESS_TIMEOUT": "soon"})


def test_default_cache_root_per_platform(tmp_path: Path) -> None:
    env = {"HOME": str(tmp_path)}

    assert default_cache_root(env, platform="linux") == tmp_path / ".cache"
    assert default_cache_root({**env, "XDG_CACHE_HOME": "/xdg"}, platform="linux") == Path("/xdg")
    assert default_cache_root(env, platform="darwin") == tmp_path / "Library" / "Caches"
    assert default_cache_root({**env, "LOCALAPPDATA": "C:/Local"}, platform="win32") == Path(
        "C:/Local"
    )


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
