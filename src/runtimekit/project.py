"""Project orchestration: manifest to build context, pipeline run and packaging."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from runtimekit.artifacts import ArtifactSet
from runtimekit.cache import RuntimeCache
from runtimekit.config import ENV_RUNTIME_PATH, Settings, resolve_runtime_version
from runtimekit.errors import ConfigError
from runtimekit.fetch import ProgressObserver
from runtimekit.manifest import MANIFEST_NAME, Manifest, find_manifest, load_manifest
from runtimekit.models import BuildProfile
from runtimekit.observability import StructuredLogger
from runtimekit.packaging import PackageFormat, PackageSpec, PackagingBackend, get_backend
from runtimekit.pipeline import BuildContext, BuildPipeline, PipelineOptions
from runtimekit.platforms import PlatformResolver
from runtimekit.process import Runner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """Everything the command line contributes to a single build."""

    manifest_path: Path | None = None
    package: str | None = None
    target: str | None = None
    profile: BuildProfile = BuildProfile.DEBUG
    target_dir: Path | None = None
    dart_main: Path = Path("lib/main.dart")
    compiler_args: tuple[str, ...] = ()
    options: PipelineOptions = field(default_factory=PipelineOptions)


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    manifest: Manifest
    context: BuildContext
    artifacts: ArtifactSet


@dataclass(slots=True)
class Project:
    settings: Settings
    runner: Runner
    events: StructuredLogger = field(default_factory=StructuredLogger)
    cwd: Path = field(default_factory=Path.cwd)

    def load(self, request: BuildRequest) -> tuple[Path, Manifest]:
        path = request.manifest_path or find_manifest(self.cwd)
        if path.is_dir():
            path = path / MANIFEST_NAME
        return path, load_manifest(path, package=request.package)

    def prepare(
        self,
        request: BuildRequest,
        *,
        observer: ProgressObserver | None = None,
    ) -> tuple[Manifest, BuildContext]:
        """Resolve platforms and runtimes and return the build context."""
        manifest_path, manifest = self.load(request)
        resolver = PlatformResolver(settings=self.settings, runner=self.runner)
        host = resolver.host()
        target = resolver.target(request.target)
        version = resolve_runtime_version(pinned=manifest.runtime_version, settings=self.settings)
        logger.info("runtime version %s for %s (%s)", version, target, request.profile)
        self._check_runtime_override()

        cache = RuntimeCache(settings=self.settings, events=self.events)
        target_runtime = cache.resolve(version, target, request.profile, observer=observer)
        host_runtime = target_runtime
        if request.options.aot_enabled(request.profile) and host != target:
            host_runtime = cache.resolve(version, host, request.profile, observer=observer)

        context = BuildContext(
            name=manifest.name,
            version=manifest.version,
            root_dir=manifest.root_dir,
            target_dir=request.target_dir or manifest_path.parent / "target",
            profile=request.profile,
            host_platform=host,
            target_platform=target,
            runtime_version=version,
            host_runtime=host_runtime,
            target_runtime=target_runtime,
            explicit_target=request.target is not None,
            dart_main=request.dart_main,
            compiler_args=request.compiler_args,
            sdk_root=self.settings.sdk_root,
        )
        return manifest, context

    def _check_runtime_override(self) -> None:
        override = self.settings.runtime_path_override
        if override is not None and not override.is_file():
            raise ConfigError(
                f"{ENV_RUNTIME_PATH} does not point at a runtime library.",
                hint=f"Fix or unset {ENV_RUNTIME_PATH} to use the cached runtime.",
                context={"path": str(override)},
            )

    def build(
        self,
        request: BuildRequest,
        *,
        observer: ProgressObserver | None = None,
    ) -> BuildOutcome:
        manifest, context = self.prepare(request, observer=observer)
        pipeline = BuildPipeline(
            settings=self.settings,
            runner=self.runner,
            options=request.options,
            events=self.events,
        )
        artifacts = pipeline.run(context)
        return BuildOutcome(manifest=manifest, context=context, artifacts=artifacts)

    def backend_for(self, fmt: str) -> PackagingBackend:
        """Select the packaging backend; unknown and placeholder formats raise here."""
        return get_backend(fmt, settings=self.settings, runner=self.runner)

    def package(self, outcome: BuildOutcome, fmt: str, *, sign: bool | None = None) -> Path:
        """Produce a distributable; signing defaults to on for release builds."""
        backend = self.backend_for(fmt)
        spec = PackageSpec.from_manifest(
            PackageFormat(backend.name),
            outcome.manifest,
            out_dir=outcome.context.out_dir,
            sign=outcome.context.profile is BuildProfile.RELEASE if sign is None else sign,
        )
        output = backend.build(outcome.artifacts, spec)
        self.events.log(
            operation="package",
            stage="package",
            platform=outcome.context.target_platform,
            profile=outcome.context.profile.value,
            message=f"Packaged {backend.name}: {output}",
        )
        return output


__all__ = ["BuildOutcome", "BuildRequest", "Project"]
