from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, FrozenSet, Iterator, List, Dict, Any

from pydantic import Field

from matrix_runner.common.dto.base import FrozenDTO
from matrix_runner.common.dto.environment import BuildTarget
from matrix_runner.common.dto.pipeline import PipelineResult, StepResult
from matrix_runner.common.config.constants import PipelineStatus
from matrix_runner.common.exceptions.base_exceptions import MatrixRunnerException


class BuildResult(FrozenDTO):
    target: BuildTarget
    status: PipelineStatus
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    artifact_paths: FrozenSet[str] = Field(default_factory=frozenset)
    steps: Tuple[StepResult, ...] = ()
    failed_step_index: Optional[int] = None
    failed_step: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: float = Field(default=0.0, ge=0.0)

    @classmethod
    def from_pipeline(
        cls,
        target: BuildTarget,
        pipeline: PipelineResult,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
        duration_seconds: float = 0.0,
        error: Optional[MatrixRunnerException] = None,
    ) -> "BuildResult":
        failed = pipeline.failed_step
        return cls(
            target=target,
            status=pipeline.status,
            exit_code=pipeline.exit_code,
            stdout=pipeline.stdout,
            stderr=pipeline.stderr,
            artifact_paths=pipeline.artifact_paths,
            steps=pipeline.steps,
            failed_step_index=pipeline.failed_step_index,
            failed_step=failed.step.display if failed else None,
            error_code=error.error_code.value if error else None,
            error_message=error.message if error else None,
            started_at=started_at,
            finished_at=finished_at,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def from_error(
        cls,
        target: BuildTarget,
        error: MatrixRunnerException,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
        duration_seconds: float = 0.0,
        steps: Tuple[StepResult, ...] = (),
    ) -> "BuildResult":
        return cls(
            target=target,
            status=PipelineStatus.FAILED,
            # steps here all exited 0; the failure was not a command exit
            exit_code=None,
            stdout="".join(step.stdout for step in steps),
            stderr="".join(step.stderr for step in steps),
            artifact_paths=frozenset().union(*(step.artifact_paths for step in steps)),
            steps=steps,
            error_code=error.error_code.value,
            error_message=error.message,
            started_at=started_at,
            finished_at=finished_at,
            duration_seconds=duration_seconds,
        )

    @property
    def runtime_version(self) -> str:
        return self.target.runtime_version

    @property
    def label(self) -> str:
        return self.target.label

    @property
    def is_successful(self) -> bool:
        return self.status == PipelineStatus.SUCCEEDED

    @property
    def is_failed(self) -> bool:
        return self.status == PipelineStatus.FAILED


@dataclass(frozen=True)
class MatrixReport:
    results: Tuple[BuildResult, ...] = ()

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[BuildResult]:
        return iter(self.results)

    def __getitem__(self, index: int) -> BuildResult:
        return self.results[index]

    @property
    def versions(self) -> List[str]:
        return [result.runtime_version for result in self.results]

    @property
    def succeeded(self) -> bool:
        return all(result.is_successful for result in self.results)

    @property
    def failed_entries(self) -> List[BuildResult]:
        return [result for result in self.results if result.is_failed]

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def get(self, runtime_version: str) -> Optional[BuildResult]:
        for result in self.results:
            if result.runtime_version == runtime_version:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "total": len(self.results),
            "failed": [result.runtime_version for result in self.failed_entries],
            "entries": [result.model_dump_json_safe() for result in self.results],
        }
