import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, List, Sequence, Tuple

from matrix_runner.builder.artifact_collector import ArtifactCollector
from matrix_runner.builder.build_executor import CommandPipelineExecutor, command_failure
from matrix_runner.builder.cache_binder import CacheBinder
from matrix_runner.builder.environment_manager import EnvironmentProvisioner, render_image_ref
from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.dto.environment import BuildTarget
from matrix_runner.common.dto.pipeline import StepResult
from matrix_runner.common.config.constants import (
    EntryState,
    FailPolicy,
    DEFAULT_BASE_IMAGE_TEMPLATE,
    DEFAULT_MAX_PARALLEL,
)
from matrix_runner.common.config.logging_config import get_logger, get_build_logger
from matrix_runner.common.exceptions.base_exceptions import (
    MatrixRunnerException,
    ConfigurationError,
)
from matrix_runner.common.exceptions.build_exceptions import BuildCancelledException
from matrix_runner.common.utils.time_utils import utc_now, Timer
from matrix_runner.monitoring.tracing import entry_span, record_result
from matrix_runner.orchestrator.pipelines import PipelineFactory
from matrix_runner.orchestrator.state_manager import StateManager
from matrix_runner.reporting.aggregator import ResultAggregator


logger = get_logger(__name__)


@dataclass
class MatrixRun:
    """Bookkeeping for one ``run_matrix`` call.

    Concurrent calls on the same coordinator each get their own run, so
    their entries never share a state machine or a halt reason.
    """

    state: StateManager
    semaphore: asyncio.Semaphore
    tasks: Dict[int, asyncio.Task] = field(default_factory=dict)
    completed_steps: Dict[int, List[StepResult]] = field(default_factory=dict)
    halt_reason: Optional[str] = None

    def steps_for(self, index: int) -> List[StepResult]:
        return self.completed_steps.setdefault(index, [])

    def cancel(self, reason: str, keep: Optional[int] = None) -> int:
        if self.halt_reason is None:
            self.halt_reason = reason
        cancelled = 0
        for index, task in self.tasks.items():
            if index != keep and not task.done():
                task.cancel()
                cancelled += 1
        return cancelled


class MatrixCoordinator:
    """Fans a pipeline out across runtime versions.

    Entries are independent: a failing entry never aborts its siblings under
    ``FailPolicy.FAIL_AT_END``. Under ``FailPolicy.FAIL_FAST`` the first
    failure cancels every entry of the same run that has not finished yet.
    Either way the report holds one result per requested version, in
    request order. ``max_parallel`` bounds each run separately.
    """

    def __init__(
        self,
        provisioner: EnvironmentProvisioner,
        cache_binder: CacheBinder,
        executor: CommandPipelineExecutor,
        base_image_template: str = DEFAULT_BASE_IMAGE_TEMPLATE,
        fail_policy: FailPolicy = FailPolicy.FAIL_AT_END,
        max_parallel: int = DEFAULT_MAX_PARALLEL,
        artifact_collector: Optional[ArtifactCollector] = None,
        aggregator: Optional[ResultAggregator] = None,
    ):
        if max_parallel < 1:
            raise ConfigurationError(
                "max_parallel must be at least 1",
                field_name="max_parallel",
                field_value=max_parallel,
            )
        self._provisioner = provisioner
        self._cache_binder = cache_binder
        self._executor = executor
        self._base_image_template = base_image_template
        self._fail_policy = fail_policy
        self._max_parallel = max_parallel
        self._artifact_collector = artifact_collector
        self._aggregator = aggregator or ResultAggregator()
        self._active_runs: List[MatrixRun] = []
        self._last_state: Optional[StateManager] = None

    @property
    def state(self) -> Optional[StateManager]:
        """State machine of the most recently started run."""
        return self._last_state

    @property
    def active_runs(self) -> int:
        return len(self._active_runs)

    async def run_matrix(
        self,
        versions: Sequence[str],
        pipeline_factory: PipelineFactory,
    ) -> MatrixReport:
        versions = list(versions)
        if not versions:
            logger.info("Empty build matrix, nothing to run")
            return self._aggregator.aggregate([])

        logger.info(
            f"Running build matrix {versions} "
            f"(policy={self._fail_policy.value}, max_parallel={self._max_parallel})"
        )

        run = MatrixRun(
            state=StateManager(range(len(versions))),
            semaphore=asyncio.Semaphore(self._max_parallel),
        )
        self._last_state = run.state
        self._active_runs.append(run)

        try:
            for index, version in enumerate(versions):
                run.tasks[index] = asyncio.create_task(
                    self._run_entry(run, index, version, pipeline_factory),
                    name=f"build-{version}",
                )
            outcomes = await asyncio.gather(*run.tasks.values(), return_exceptions=True)
        finally:
            self._active_runs.remove(run)

        results: List[BuildResult] = [
            self._unstarted_result(run, index, version, outcome)
            if isinstance(outcome, BaseException)
            else outcome
            for index, (version, outcome) in enumerate(zip(versions, outcomes))
        ]

        report = self._aggregator.aggregate(results)
        logger.info(
            f"Build matrix finished: {len(report) - len(report.failed_entries)}/"
            f"{len(report)} succeeded"
        )
        return report

    def cancel(self, reason: str = "matrix run cancelled") -> int:
        """Cancel every in-flight entry of every active run; returns how many were signalled."""
        cancelled = sum(run.cancel(reason) for run in list(self._active_runs))
        if cancelled:
            logger.warning(f"Cancelling {cancelled} matrix entries: {reason}")
        return cancelled

    async def _run_entry(
        self,
        run: MatrixRun,
        index: int,
        version: str,
        pipeline_factory: PipelineFactory,
    ) -> BuildResult:
        build_logger = get_build_logger(version)
        target = self._fallback_target(version)
        started_at: Optional[datetime] = None
        timer = Timer()

        try:
            async with run.semaphore:
                if run.halt_reason is not None:
                    raise BuildCancelledException(
                        runtime_version=version,
                        reason=run.halt_reason,
                    )
                started_at = utc_now()
                timer.start()
                with entry_span(version, target.base_image) as span:
                    result = await self._execute_entry(
                        run, index, version, pipeline_factory, started_at, timer
                    )
                    record_result(span, result)
        except asyncio.CancelledError:
            build_logger.warning("Entry cancelled before reaching a terminal state")
            result = self._error_result(
                target,
                BuildCancelledException(
                    runtime_version=version,
                    reason=run.halt_reason or "cancelled",
                ),
                started_at,
                timer,
                run.steps_for(index),
            )
        except BuildCancelledException as e:
            build_logger.info(f"Entry skipped: {e.reason}")
            result = self._error_result(target, e, started_at, timer)

        run.state.fail(index)
        if result.is_failed and self._fail_policy == FailPolicy.FAIL_FAST:
            self._halt(run, index, version)
        return result

    async def _execute_entry(
        self,
        run: MatrixRun,
        index: int,
        version: str,
        pipeline_factory: PipelineFactory,
        started_at: datetime,
        timer: Timer,
    ) -> BuildResult:
        build_logger = get_build_logger(version)
        target = self._fallback_target(version)
        completed = run.steps_for(index)

        try:
            run.state.transition(index, EntryState.PROVISIONING)
            environment = await self._provisioner.provision(self._base_image_template, version)
            target = environment.target

            definition = pipeline_factory(target)
            environment = environment.with_env_variables(definition.env_variables)

            run.state.transition(index, EntryState.CACHE_BINDING)
            environment = self._cache_binder.bind_specs(environment, definition.cache_specs)

            run.state.transition(index, EntryState.EXECUTING)
            artifact_dir = None
            if self._artifact_collector is not None and definition.uses_file_sinks:
                artifact_dir = self._artifact_collector.prepare_entry(target)

            pipeline = await self._executor.run(
                environment, definition.steps, artifact_dir, completed=completed
            )
        except MatrixRunnerException as e:
            build_logger.error(f"Entry failed in {run.state.get_state(index).value}: {e}")
            return self._error_result(target, e, started_at, timer, completed)
        except Exception as e:
            build_logger.exception("Entry failed with unexpected error")
            return self._error_result(
                target,
                MatrixRunnerException(f"Unexpected error: {e}", cause=e),
                started_at,
                timer,
                completed,
            )

        timer.stop()
        result = BuildResult.from_pipeline(
            target,
            pipeline,
            started_at=started_at,
            finished_at=utc_now(),
            duration_seconds=timer.elapsed,
            error=command_failure(pipeline, version),
        )
        run.state.transition(
            index,
            EntryState.SUCCEEDED if pipeline.succeeded else EntryState.FAILED,
        )
        build_logger.info(f"Entry {result.status.value} in {timer.elapsed_formatted}")
        return result

    def _halt(self, run: MatrixRun, index: int, version: str) -> None:
        if run.halt_reason is None:
            run.cancel(f"fail-fast after {version} failed", keep=index)

    def _unstarted_result(
        self,
        run: MatrixRun,
        index: int,
        version: str,
        outcome: BaseException,
    ) -> BuildResult:
        # Tasks cancelled before their first step never reach _run_entry's handlers.
        if isinstance(outcome, asyncio.CancelledError):
            error: MatrixRunnerException = BuildCancelledException(
                runtime_version=version,
                reason=run.halt_reason or "cancelled",
            )
        else:
            logger.error(f"Matrix entry {version} raised outside its handler: {outcome!r}")
            error = MatrixRunnerException(f"Unexpected error: {outcome}", cause=outcome)
        run.state.fail(index)
        return self._error_result(self._fallback_target(version), error, None, Timer())

    def _fallback_target(self, version: str) -> BuildTarget:
        version = version if isinstance(version, str) else str(version)
        return BuildTarget(
            runtime_version=version,
            base_image=render_image_ref(self._base_image_template, version),
        )

    @staticmethod
    def _error_result(
        target: BuildTarget,
        error: MatrixRunnerException,
        started_at: Optional[datetime],
        timer: Timer,
        completed: Sequence[StepResult] = (),
    ) -> BuildResult:
        duration = 0.0
        if started_at is not None:
            duration = timer.stop()
        steps: Tuple[StepResult, ...] = tuple(completed)
        return BuildResult.from_error(
            target,
            error,
            started_at=started_at,
            finished_at=utc_now() if started_at is not None else None,
            duration_seconds=duration,
            steps=steps,
        )
