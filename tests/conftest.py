"""Shared test fixtures."""

from __future__ import annotations

import contextlib
import logging
import socketserver
import sys
import threading
import zipfile
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from runtimekit.cache import archive_name
from runtimekit.config import Settings
from runtimekit.errors import ExternalProcessError
from runtimekit.models import BuildProfile, CommandSpec, RuntimeHandle
from runtimekit.pipeline import BuildContext
from runtimekit.pipeline.ndk import toolchain_bin
from runtimekit.platforms import require_platform
from runtimekit.process import ProcessResult

HOST = "x86_64-unknown-linux-gnu"

FAKE_TOOLS = {
    "compiler": "cargo",
    "rustc": "rustc",
    "bundler": "flutter",
    "appimagetool": "appimagetool",
    "aapt": "aapt",
    "apksigner": "apksigner",
}


@dataclass
class FakeProcess:
    argv: tuple[str, ...]
    returncode: int = 0

    def wait(self, timeout: float | None = None) -> int:
        return self.returncode


@dataclass
class RecordingRunner:
    """Stands in for ``ProcessRunner``: records commands and simulates outputs."""

    effects: dict[str, Callable[[CommandSpec], None]] = field(default_factory=dict)
    failures: dict[str, int] = field(default_factory=dict)
    returncodes: dict[str, int] = field(default_factory=dict)
    stdout: dict[str, str] = field(default_factory=dict)
    app_returncode: int = 0
    commands: list[CommandSpec] = field(default_factory=list)
    stages: list[str] = field(default_factory=list)
    spawned: list[CommandSpec] = field(default_factory=list)

    def run(self, command: CommandSpec, *, capture: bool = False) -> ProcessResult:
        self.commands.append(command)
        tool = Path(command.argv[0]).name
        return ProcessResult(
            argv=command.argv,
            returncode=self.returncodes.get(tool, 0),
            stdout=self.stdout.get(tool, "") if capture else "",
        )

    def check(self, command: CommandSpec, *, stage: str, capture: bool = False) -> ProcessResult:
        self.commands.append(command)
        self.stages.append(stage)
        if stage in self.failures:
            raise ExternalProcessError(stage, self.failures[stage])
        effect = self.effects.get(stage)
        if effect is not None:
            effect(command)
        return ProcessResult(argv=command.argv, returncode=0)

    def spawn(self, command: CommandSpec) -> FakeProcess:
        self.spawned.append(command)
        return FakeProcess(argv=command.argv, returncode=self.app_returncode)


@dataclass
class Mirror:
    """A runtime distribution mirror served from the local filesystem."""

    root: Path

    @property
    def url(self) -> str:
        return self.root.as_uri()

    def publish(
        self,
        version: str,
        platform: str,
        profile: BuildProfile,
        files: Mapping[str, bytes] | None = None,
    ) -> Path:
        handle = RuntimeHandle(version=version, platform=platform, profile=profile)
        archive = self.root / f"f-{version}" / archive_name(handle)
        archive.parent.mkdir(parents=True, exist_ok=True)
        if files is None:
            files = {require_platform(platform).library_name: f"runtime {platform}".encode()}
        with zipfile.ZipFile(archive, "w") as bundle:
            for name, data in files.items():
                bundle.writestr(name, data)
        return archive


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    yield
    logger = logging.getLogger("runtimekit")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def mirror(tmp_path: Path) -> Mirror:
    root = tmp_path / "mirror"
    root.mkdir()
    return Mirror(root)


@pytest.fixture
def settings(tmp_path: Path, mirror: Mirror) -> Settings:
    return Settings(
        cache_root=tmp_path / "cache",
        mirror_url=mirror.url,
        tools=dict(FAKE_TOOLS),
        host_triple=HOST,
    )


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


def make_context(
    root: Path,
    *,
    profile: BuildProfile = BuildProfile.DEBUG,
    platform: str = HOST,
    snapshot_tool: bool = True,
    explicit_target: bool = False,
) -> BuildContext:
    """Project checkout plus a fake runtime directory containing the AOT tools."""
    info = require_platform(platform)
    runtime_dir = root / "runtime"
    (runtime_dir / "gen").mkdir(parents=True, exist_ok=True)
    (runtime_dir / "flutter_patched_sdk").mkdir(exist_ok=True)
    (runtime_dir / info.library_name).write_bytes(b"runtime library")
    (runtime_dir / "dart").write_bytes(b"dart")
    (runtime_dir / "gen" / "frontend_server.dart.snapshot").write_bytes(b"frontend")
    if snapshot_tool:
        (runtime_dir / "gen_snapshot").write_bytes(b"gen_snapshot")

    project = root / "project"
    (project / "lib").mkdir(parents=True, exist_ok=True)
    (project / "lib" / "main.dart").write_text("void main() {}\n", encoding="utf-8")
    return BuildContext(
        name="demo",
        version="0.1.0",
        root_dir=project,
        target_dir=project / "target",
        profile=profile,
        host_platform=HOST,
        target_platform=platform,
        runtime_version="1.0",
        host_runtime=runtime_dir / info.library_name,
        target_runtime=runtime_dir / info.library_name,
        explicit_target=explicit_target,
    )


def simulate_outputs(runner: RecordingRunner, ctx: BuildContext, produced: str = "demo") -> None:
    """Make each stage leave behind the files the real tools would write."""

    def bundle(_: CommandSpec) -> None:
        ctx.asset_dir.mkdir(parents=True, exist_ok=True)
        (ctx.asset_dir / "AssetManifest.json").write_text("{}", encoding="utf-8")

    def kernel(_: CommandSpec) -> None:
        ctx.kernel_path.parent.mkdir(parents=True, exist_ok=True)
        ctx.kernel_path.write_bytes(b"kernel")

    def snapshot(_: CommandSpec) -> None:
        ctx.snapshot_path.write_bytes(b"aot snapshot")

    def native(_: CommandSpec) -> None:
        ctx.out_dir.mkdir(parents=True, exist_ok=True)
        (ctx.out_dir / produced).write_bytes(b"\x7fELF demo")

    runner.effects.update(
        {
            "bundle": bundle,
            "intermediate-compile": kernel,
            "snapshot": snapshot,
            "native-build": native,
        }
    )


def make_ndk(root: Path, *, api_levels: tuple[int, ...] = (21, 24)) -> Path:
    """Lay out the prebuilt LLVM toolchain of an NDK for the current host."""
    bin_dir = toolchain_bin(root)
    bin_dir.mkdir(parents=True)
    windows = sys.platform.startswith("win")
    for triple in (
        "armv7a-linux-androideabi",
        "aarch64-linux-android",
        "i686-linux-android",
        "x86_64-linux-android",
    ):
        for level in api_levels:
            (bin_dir / f"{triple}{level}-clang{'.cmd' if windows else ''}").write_text("")
    (bin_dir / f"llvm-ar{'.exe' if windows else ''}").write_text("")
    return root


@contextlib.contextmanager
def serve_raw(response: bytes) -> Iterator[str]:
    """Answer every HTTP request with *response* verbatim, then hang up."""

    class Handler(socketserver.StreamRequestHandler):
        def handle(self) -> None:
            while self.rfile.readline().strip():
                pass
            self.wfile.write(response)

    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), Handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
