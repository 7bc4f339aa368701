"""Command line interface for runtimekit."""

from __future__ import annotations

import argparse
import logging
import random
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

from runtimekit.config import (
    ENV_AOT_SNAPSHOT,
    ENV_ASSET_DIR,
    ENV_OBSERVATORY_PORT,
    Settings,
    resolve_settings,
)
from runtimekit.errors import PackagingValidationError, RuntimeKitError
from runtimekit.models import BuildProfile, CommandSpec
from runtimekit.pipeline import PipelineOptions
from runtimekit.platforms import require_platform
from runtimekit.process import ProcessRunner, Runner
from runtimekit.project import BuildOutcome, BuildRequest, Project

COMMANDS = ("build", "run")
OBSERVATORY_PORTS = (1024, 49152)
ATTACH_DEVICE = "flutter-tester"

logger = logging.getLogger("runtimekit")


class ProgressPrinter:
    """Renders download progress on a single, rewritten stderr line."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stderr
        self._last = -1

    def __call__(self, total: int, done: int) -> None:
        if total > 0:
            percent = min(100, done * 100 // total)
            if percent == self._last:
                return
            self._last = percent
            self.stream.write(f"\rDownloading runtime: {percent:3d}%")
            if done >= total:
                self.stream.write("\n")
        else:
            self.stream.write(f"\rDownloading runtime: {done // 1024} KiB")
        self.stream.flush()


def _configure_logging(*, verbose: int, quiet: bool) -> logging.Logger:
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger.setLevel(level)
    logger.propagate = False
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--target", help="Target platform triple (defaults to the host).")
    common.add_argument("-p", "--package", help="Workspace member to build.")
    common.add_argument(
        "--release",
        action="store_const",
        const=BuildProfile.RELEASE.value,
        dest="profile",
        help="Build with the release profile.",
    )
    common.add_argument(
        "--profile",
        choices=[profile.value for profile in BuildProfile],
        dest="profile",
        help="Build profile (default: debug).",
    )
    common.add_argument("--format", help="Package the build output (appimage, apk).")
    common.add_argument(
        "--sign",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Sign the package (default: only for release builds).",
    )
    common.add_argument(
        "--no-flutter",
        action="store_true",
        help="Only build the native code: no asset bundle, no AOT and no attach.",
    )
    common.add_argument("--no-bundle", action="store_true", help="Skip the asset bundle stage.")
    common.add_argument("--no-aot", action="store_true", help="Skip ahead-of-time compilation.")
    common.add_argument(
        "--no-attach",
        action="store_true",
        help="Launch the application without attaching the bundler.",
    )
    common.add_argument("--manifest-path", type=Path, help="Path to Cargo.toml.")
    common.add_argument("--target-dir", type=Path, help="Directory for build outputs.")
    common.add_argument(
        "--dart-main",
        type=Path,
        default=Path("lib/main.dart"),
        help="Dart entry point relative to the project root.",
    )
    common.add_argument("-q", "--quiet", action="store_true", help="Suppress tool output.")
    common.add_argument("-v", "--verbose", action="count", default=0, help="More logging.")

    parser = argparse.ArgumentParser(
        prog="runtimekit",
        description=(
            "Build, run and package native applications that embed a prebuilt UI runtime. "
            "Any other command is passed through to cargo."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("build", parents=[common], help="Build the application.")
    subparsers.add_parser(
        "run",
        parents=[common],
        help="Build, launch and attach to the application.",
    )
    return parser


def main(
    argv: list[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    runner: Runner | None = None,
) -> int:
    """Run the runtimekit CLI and return its exit code."""
    args_list = list(sys.argv[1:] if argv is None else argv)
    if args_list and not args_list[0].startswith("-") and args_list[0] not in COMMANDS:
        return _passthrough(args_list, env=env, runner=runner)

    parser = build_parser()
    args, extra = parser.parse_known_args(args_list)
    if extra and extra[0] == "--":
        extra = extra[1:]
    _configure_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        settings = resolve_settings(env, quiet=args.quiet)
        active = runner or ProcessRunner(quiet=args.quiet, timeout=settings.process_timeout)
        project = Project(settings=settings, runner=active)
        if args.format:
            project.backend_for(args.format)
        outcome = project.build(
            _request(args, extra),
            observer=None if args.quiet else ProgressPrinter(),
        )
        if args.format:
            output = project.package(outcome, args.format, sign=args.sign)
            logger.info("created %s", output)
        if args.command == "run":
            attach = not (args.no_attach or args.no_flutter)
            return _run(outcome, settings=settings, runner=active, attach=attach)
    except RuntimeKitError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code()
    return 0


def pick_observatory_port(rng: random.Random | None = None) -> int:
    low, high = OBSERVATORY_PORTS
    return (rng or random).randrange(low, high)


def launch_environment(outcome: BuildOutcome, port: int) -> dict[str, str]:
    """Variables telling the launched application where its runtime inputs live."""
    context = outcome.context
    environ = {
        ENV_ASSET_DIR: str(context.asset_dir),
        ENV_OBSERVATORY_PORT: str(port),
    }
    if context.snapshot_path.is_file():
        environ[ENV_AOT_SNAPSHOT] = str(context.snapshot_path)
    return environ


def attach_command(outcome: BuildOutcome, settings: Settings, port: int) -> CommandSpec:
    return CommandSpec(
        argv=(
            settings.tool("bundler"),
            "attach",
            f"--device-id={ATTACH_DEVICE}",
            f"--debug-uri=http://127.0.0.1:{port}",
        ),
        cwd=outcome.context.root_dir,
    )


def _request(args: argparse.Namespace, extra: list[str]) -> BuildRequest:
    return BuildRequest(
        manifest_path=args.manifest_path,
        package=args.package,
        target=args.target,
        profile=BuildProfile.parse(args.profile or BuildProfile.DEBUG.value),
        target_dir=args.target_dir,
        dart_main=args.dart_main,
        compiler_args=tuple(extra),
        options=PipelineOptions(
            bundle=not (args.no_bundle or args.no_flutter),
            aot=False if args.no_aot or args.no_flutter else None,
        ),
    )


def _run(outcome: BuildOutcome, *, settings: Settings, runner: Runner, attach: bool) -> int:
    if require_platform(outcome.context.target_platform).is_android:
        logger.info("Android targets are built only; install the package on a device to run it.")
        return 0
    if not outcome.artifacts.bins:
        raise PackagingValidationError(
            "Nothing to launch: the build produced no executable.",
            context={"package": outcome.artifacts.name},
        )

    port = pick_observatory_port()
    binary = outcome.artifacts.bins[0].path
    logger.info("launching %s (observatory port %d)", binary.name, port)
    app = runner.spawn(
        CommandSpec(
            argv=(str(binary),),
            env=launch_environment(outcome, port),
            cwd=outcome.context.root_dir,
        )
    )
    if attach:
        runner.run(attach_command(outcome, settings, port))
    returncode = app.wait()
    return returncode if returncode >= 0 else 1


def _passthrough(
    argv: list[str],
    *,
    env: Mapping[str, str] | None,
    runner: Runner | None,
) -> int:
    try:
        settings = resolve_settings(env)
        active = runner or ProcessRunner(timeout=settings.process_timeout)
        result = active.run(CommandSpec(argv=(settings.tool("compiler"), *argv)))
    except RuntimeKitError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code()
    return result.returncode if result.returncode >= 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
