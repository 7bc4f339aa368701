"""Host and target platform resolution."""

from __future__ import annotations

from dataclasses import dataclass, field

from runtimekit.config import Settings
from runtimekit.errors import ToolNotFoundError
from runtimekit.models import CommandSpec, PlatformId
from runtimekit.process import Runner

from .table import PlatformInfo, require_platform


def parse_host_triple(version_output: str) -> str | None:
    """Extract the ``host:`` line from verbose compiler version output."""
    for line in version_output.splitlines():
        key, _, value = line.partition(":")
        if key.strip() == "host" and value.strip():
            return value.strip()
    return None


@dataclass(slots=True)
class PlatformResolver:
    settings: Settings
    runner: Runner
    _host: PlatformId | None = field(init=False, default=None, repr=False)

    def host(self) -> PlatformId:
        """Return the platform the build runs on, as reported by the toolchain."""
        if self._host is None:
            triple = self.settings.host_triple or self._query_toolchain()
            require_platform(triple)
            self._host = triple
        return self._host

    def target(self, explicit: str | None = None) -> PlatformId:
        if explicit:
            require_platform(explicit)
            return explicit
        return self.host()

    def info(self, platform: PlatformId) -> PlatformInfo:
        return require_platform(platform)

    def _query_toolchain(self) -> str:
        rustc = self.settings.tool("rustc")
        result = self.runner.run(CommandSpec(argv=(rustc, "-vV")), capture=True)
        triple = parse_host_triple(result.stdout) if result.ok else None
        if triple is None:
            raise ToolNotFoundError(
                "Couldn't determine the host platform from the compiler.",
                hint="Check that `rustc -vV` works, or export RUNTIMEKIT_HOST_TRIPLE.",
                context={"command": f"{rustc} -vV", "returncode": str(result.returncode)},
            )
        return triple
