from pathlib import Path
from typing import Optional, List, Sequence, Union

from matrix_runner.builder.providers.base import EnvironmentProvider
from matrix_runner.common.dto.environment import Environment
from matrix_runner.common.dto.pipeline import (
    CommandStep,
    CommandOutput,
    OutputSink,
    StepResult,
    PipelineResult,
)
from matrix_runner.common.config.constants import PipelineStatus
from matrix_runner.common.config.logging_config import get_build_logger
from matrix_runner.common.exceptions.base_exceptions import ConfigurationError
from matrix_runner.common.exceptions.build_exceptions import CommandFailure
from matrix_runner.common.utils.file_utils import write_text_atomic
from matrix_runner.common.utils.time_utils import Timer


def command_failure(pipeline: PipelineResult, runtime_version: str) -> Optional[CommandFailure]:
    failed = pipeline.failed_step
    if failed is None:
        return None
    return CommandFailure(
        message=f"Step {failed.index} ({failed.step.display}) exited with {failed.exit_code}",
        runtime_version=runtime_version,
        step_index=failed.index,
        argv=failed.step.argv,
        exit_code=failed.exit_code,
        stdout=failed.stdout,
        stderr=failed.stderr,
    )


class CommandPipelineExecutor:
    """Runs the command steps of one matrix entry strictly in order.

    The first non-zero exit code ends the pipeline. Outputs of every step
    that ran are kept in the result; no step is retried. A caller that passes
    ``completed`` still holds the finished steps when ``run`` raises or is
    cancelled partway through.
    """

    def __init__(self, provider: EnvironmentProvider):
        self._provider = provider

    async def run(
        self,
        environment: Environment,
        steps: Sequence[CommandStep],
        artifact_dir: Optional[Union[str, Path]] = None,
        completed: Optional[List[StepResult]] = None,
    ) -> PipelineResult:
        version = environment.target.runtime_version
        logger = get_build_logger(version)
        artifact_root = Path(artifact_dir) if artifact_dir is not None else None

        self._check_sinks(steps, artifact_root, version)

        results: List[StepResult] = completed if completed is not None else []

        async with await self._provider.open_session(environment) as session:
            for index, step in enumerate(steps):
                logger.info(
                    f"Step {index}: {step.display}",
                    extra={"step_index": index},
                )

                timer = Timer().start()
                output = await session.exec(step.argv)
                timer.stop()

                result = self._capture(index, step, output, timer.elapsed, artifact_root)
                results.append(result)

                if not output.succeeded:
                    pipeline = PipelineResult(
                        status=PipelineStatus.FAILED,
                        steps=tuple(results),
                        failed_step_index=index,
                    )
                    logger.error(
                        str(command_failure(pipeline, version)),
                        extra={"step_index": index},
                    )
                    return pipeline

        logger.info(f"All {len(results)} steps succeeded")
        return PipelineResult(status=PipelineStatus.SUCCEEDED, steps=tuple(results))

    @staticmethod
    def _check_sinks(
        steps: Sequence[CommandStep],
        artifact_root: Optional[Path],
        version: str,
    ) -> None:
        if artifact_root is not None:
            return
        for index, step in enumerate(steps):
            if step.stdout_sink.is_file or step.stderr_sink.is_file:
                raise ConfigurationError(
                    message=f"Step {index} redirects output to a file but no artifact directory was given",
                    field_name="artifact_dir",
                    details={"runtime_version": version, "step_index": index},
                )

    def _capture(
        self,
        index: int,
        step: CommandStep,
        output: CommandOutput,
        elapsed: float,
        artifact_root: Optional[Path],
    ) -> StepResult:
        stdout, stdout_path = self._route(output.stdout, step.stdout_sink, artifact_root)
        stderr, stderr_path = self._route(output.stderr, step.stderr_sink, artifact_root)

        # stderr of a failing step stays inline for diagnosis
        if not output.succeeded and step.stderr_sink.is_file:
            stderr = output.stderr

        return StepResult(
            index=index,
            step=step,
            exit_code=output.exit_code,
            stdout=stdout,
            stderr=stderr,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
            duration_seconds=elapsed,
        )

    @staticmethod
    def _route(
        content: str,
        sink: OutputSink,
        artifact_root: Optional[Path],
    ):
        if not sink.is_file:
            return content, None
        path = write_text_atomic(artifact_root / sink.path, content)
        return "", str(path)
