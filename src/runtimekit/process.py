"""External tool execution."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Protocol

from runtimekit.errors import ExternalProcessError, ToolNotFoundError
from runtimekit.models import CommandSpec

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = -1


@dataclass(frozen=True, slots=True)
class ProcessResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Runner(Protocol):
    def run(self, command: CommandSpec, *, capture: bool = False) -> ProcessResult:
        """Execute *command* to completion and report its exit status."""

    def check(self, command: CommandSpec, *, stage: str, capture: bool = False) -> ProcessResult:
        """Execute *command* and raise ``ExternalProcessError`` on non-zero exit."""

    def spawn(self, command: CommandSpec) -> subprocess.Popen[bytes]:
        """Start *command* without waiting for it."""


@dataclass(slots=True)
class ProcessRunner:
    """Runs tools with environment overrides layered over the current process env.

    Output is streamed straight to the terminal unless ``quiet`` is set or the
    caller asks for ``capture``; the tools' own diagnostics are the primary
    debugging aid, so they are never swallowed on failure.
    """

    quiet: bool = False
    timeout: float | None = None

    def run(self, command: CommandSpec, *, capture: bool = False) -> ProcessResult:
        logger.debug("running %s", command.display())
        stream = None
        if capture:
            stream = subprocess.PIPE
        elif self.quiet:
            stream = subprocess.DEVNULL
        try:
            completed = subprocess.run(
                list(command.argv),
                cwd=str(command.cwd) if command.cwd is not None else None,
                env=self._environment(command),
                stdout=stream,
                stderr=subprocess.DEVNULL if self.quiet and not capture else None,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(
                f"Couldn't execute `{command.argv[0]}`.",
                hint="Install the tool or point the matching RUNTIMEKIT_* variable at it.",
                context={"command": command.display()},
            ) from exc
        except subprocess.TimeoutExpired:
            logger.error("%s timed out after %ss", command.argv[0], self.timeout)
            return ProcessResult(argv=command.argv, returncode=TIMEOUT_EXIT_CODE)
        return ProcessResult(
            argv=command.argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
        )

    def check(self, command: CommandSpec, *, stage: str, capture: bool = False) -> ProcessResult:
        result = self.run(command, capture=capture)
        if not result.ok:
            raise ExternalProcessError(
                stage,
                result.returncode,
                context={"command": command.display()},
            )
        return result

    def spawn(self, command: CommandSpec) -> subprocess.Popen[bytes]:
        logger.debug("spawning %s", command.display())
        try:
            return subprocess.Popen(
                list(command.argv),
                cwd=str(command.cwd) if command.cwd is not None else None,
                env=self._environment(command),
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(
                f"Couldn't execute `{command.argv[0]}`.",
                context={"command": command.display()},
            ) from exc

    def _environment(self, command: CommandSpec) -> dict[str, str] | None:
        if not command.env:
            return None
        environ = dict(os.environ)
        environ.update(command.env)
        return environ


__all__ = ["ProcessResult", "ProcessRunner", "Runner", "TIMEOUT_EXIT_CODE"]
