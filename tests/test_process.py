import sys
from pathlib import Path

import pytest

from runtimekit.errors import ExternalProcessError, ToolNotFoundError
from runtimekit.models import CommandSpec
from runtimekit.process import TIMEOUT_EXIT_CODE, ProcessRunner


def test_run_captures_output_with_layered_environment(tmp_path: Path) -> None:
    command = CommandSpec(
        argv=(
            sys.executable,
            "-c",
            "import os; print(os.environ['RUSTFLAGS'], os.getcwd(), bool(os.environ.get('PATH')))",
        ),
        env={"RUSTFLAGS": "-Clink-arg=-L/runtime"},
        cwd=tmp_path,
    )

    result = ProcessRunner().run(command, capture=True)

    assert result.ok
    flags, cwd, has_path = result.stdout.split()
    assert flags == "-Clink-arg=-L/runtime"
    assert Path(cwd).resolve() == tmp_path.resolve()
    assert has_path == "True"


def test_check_raises_with_stage_and_exit_code() -> None:
    command = CommandSpec(argv=(sys.executable, "-c", "import sys; sys.exit(101)"))

    with pytest.raises(ExternalProcessError) as excinfo:
        ProcessRunner(quiet=True).check(command, stage="native-build")

    assert excinfo.value.stage == "native-build"
    assert excinfo.value.returncode == 101


def test_missing_executable_is_a_tool_error(tmp_path: Path) -> None:
    command = CommandSpec(argv=(str(tmp_path / "no-such-tool"), "--version"))

    with pytest.raises(ToolNotFoundError):
        ProcessRunner().run(command)


def test_timeout_reports_reserved_exit_code() -> None:
    command = CommandSpec(argv=(sys.executable, "-c", "import time; time.sleep(10)"))

    result = ProcessRunner(quiet=True, timeout=0.5).run(command)

    assert result.returncode == TIMEOUT_EXIT_CODE
    assert not result.ok


def test_spawn_returns_running_process() -> None:
    command = CommandSpec(
        argv=(sys.executable, "-c", "import os, sys; sys.exit(int(os.environ['CODE']))"),
        env={"CODE": "4"},
    )

    process = ProcessRunner().spawn(command)

    assert process.wait(timeout=30) == 4
