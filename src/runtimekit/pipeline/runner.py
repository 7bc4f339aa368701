"""Sequential build pipeline.

``Idle -> [bundle] -> [intermediate-compile -> snapshot] -> native-build ->
assembly -> Done``. Bracketed stages may be disabled; enabled stages always run
in this order, one at a time. The first failing stage moves the pipeline to
``Failed(stage, cause)`` and the error propagates unchanged; nothing is
retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from runtimekit.artifacts import ArtifactSet
from runtimekit.config import Settings
from runtimekit.errors import ExternalProcessError, RuntimeKitError
from runtimekit.observability import StructuredLogger
from runtimekit.process import Runner

from .aot import find_snapshot_tool, intermediate_compile_command, snapshot_command
from .assembly import assemble, write_report
from .base import STAGE_ORDER, BuildContext, PipelineOptions, PipelineState, Stage, StageFailure
from .bundle import bundle_command
from .native import native_build_command


@dataclass(slots=True)
class BuildPipeline:
    settings: Settings
    runner: Runner
    options: PipelineOptions = field(default_factory=PipelineOptions)
    events: StructuredLogger = field(default_factory=StructuredLogger)
    state: PipelineState = field(init=False, default=PipelineState.IDLE)
    failure: StageFailure | None = field(init=False, default=None)
    stages_run: list[Stage] = field(init=False, default_factory=list)
    stages_skipped: list[Stage] = field(init=False, default_factory=list)
    artifacts: ArtifactSet | None = field(init=False, default=None)

    def plan(self, ctx: BuildContext) -> tuple[Stage, ...]:
        enabled = {Stage.NATIVE_BUILD, Stage.ASSEMBLY}
        if self.options.bundle:
            enabled.add(Stage.BUNDLE)
        if self.options.aot_enabled(ctx.profile):
            enabled.update((Stage.INTERMEDIATE_COMPILE, Stage.SNAPSHOT))
        return tuple(stage for stage in STAGE_ORDER if stage in enabled)

    def run(self, ctx: BuildContext) -> ArtifactSet:
        self.state = PipelineState.IDLE
        self.failure = None
        self.stages_run = []
        self.stages_skipped = []
        self.artifacts = None

        plan = self.plan(ctx)
        for stage in STAGE_ORDER:
            if stage not in plan:
                self.stages_skipped.append(stage)
                self._log(ctx, stage, "stage_skipped", f"Skipping {stage}.", level="debug")
                continue
            self.state = PipelineState(stage.value)
            self._log(ctx, stage, "stage_start", f"Running {stage}.")
            try:
                self._execute(stage, ctx, plan)
            except Exception as exc:
                self._fail(ctx, stage, exc)
                raise
            self.stages_run.append(stage)

        assert self.artifacts is not None
        self.state = PipelineState.DONE
        write_report(
            ctx,
            self.artifacts,
            stages_run=self.stages_run,
            stages_skipped=self.stages_skipped,
            events=self.events,
        )
        return self.artifacts

    def _execute(self, stage: Stage, ctx: BuildContext, plan: tuple[Stage, ...]) -> None:
        if stage is Stage.BUNDLE:
            self.runner.check(bundle_command(ctx, self.settings), stage=stage.value)
        elif stage is Stage.INTERMEDIATE_COMPILE:
            ctx.out_dir.mkdir(parents=True, exist_ok=True)
            result = self.runner.check(intermediate_compile_command(ctx), stage=stage.value)
            if not ctx.kernel_path.is_file():
                raise ExternalProcessError(
                    stage.value,
                    result.returncode,
                    hint="The compiler reported success but wrote no kernel file.",
                    context={"expected": str(ctx.kernel_path)},
                )
        elif stage is Stage.SNAPSHOT:
            tool = find_snapshot_tool(ctx)
            self.runner.check(snapshot_command(ctx, tool), stage=stage.value)
        elif stage is Stage.NATIVE_BUILD:
            self.runner.check(native_build_command(ctx, self.settings), stage=stage.value)
        elif stage is Stage.ASSEMBLY:
            self.artifacts = assemble(
                ctx,
                bundled=Stage.BUNDLE in plan,
                snapshot_built=Stage.SNAPSHOT in plan,
            )

    def _fail(self, ctx: BuildContext, stage: Stage, exc: Exception) -> None:
        extra: dict[str, object] = {}
        cause: int | Exception = exc
        if isinstance(exc, RuntimeKitError):
            extra["code"] = exc.code
        else:
            extra["error"] = repr(exc)
        if isinstance(exc, ExternalProcessError):
            cause = exc.returncode
            extra["exit_code"] = exc.returncode
        self.state = PipelineState.FAILED
        self.failure = StageFailure(stage=stage, cause=cause)
        self._log(ctx, stage, "stage_failed", f"{stage} failed.", level="warning", extra=extra)

    def _log(
        self,
        ctx: BuildContext,
        stage: Stage,
        operation: str,
        message: str,
        *,
        level: str = "info",
        extra: dict[str, object] | None = None,
    ) -> None:
        self.events.log(
            operation=operation,
            stage=stage.value,
            platform=ctx.target_platform,
            profile=ctx.profile.value,
            message=message,
            level=level,
            extra=extra,
        )
