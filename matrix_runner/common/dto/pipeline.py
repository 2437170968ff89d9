from typing import Optional, Tuple, Dict, FrozenSet

from pydantic import BaseModel, Field, field_validator, model_validator

from matrix_runner.common.dto.base import FrozenDTO
from matrix_runner.common.dto.environment import CacheSpec
from matrix_runner.common.config.constants import SinkKind, PipelineStatus
from matrix_runner.common.utils.file_utils import is_relative_subpath


class OutputSink(FrozenDTO):
    kind: SinkKind = Field(default=SinkKind.BUFFER)
    path: Optional[str] = None

    @model_validator(mode="after")
    def check_path(self) -> "OutputSink":
        if self.kind == SinkKind.FILE:
            if not self.path or not is_relative_subpath(self.path):
                raise ValueError(
                    f"File sink needs a relative path inside the artifact directory: {self.path!r}"
                )
        elif self.path is not None:
            raise ValueError("Buffer sink does not take a path")
        return self

    @classmethod
    def buffer(cls) -> "OutputSink":
        return cls(kind=SinkKind.BUFFER)

    @classmethod
    def file(cls, path: str) -> "OutputSink":
        return cls(kind=SinkKind.FILE, path=path)

    @property
    def is_file(self) -> bool:
        return self.kind == SinkKind.FILE


class CommandStep(FrozenDTO):
    argv: Tuple[str, ...]
    name: Optional[str] = None
    stdout_sink: OutputSink = Field(default_factory=OutputSink.buffer)
    stderr_sink: OutputSink = Field(default_factory=OutputSink.buffer)

    @field_validator("argv")
    @classmethod
    def validate_argv(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v or not v[0]:
            raise ValueError("Command step needs a non-empty argv")
        return v

    @classmethod
    def shell(cls, script: str, name: Optional[str] = None) -> "CommandStep":
        return cls(argv=("sh", "-c", script), name=name)

    @property
    def display(self) -> str:
        return self.name or " ".join(self.argv)

    def redirected(self, stdout_path: str, stderr_path: str) -> "CommandStep":
        return self.model_copy(update={
            "stdout_sink": OutputSink.file(stdout_path),
            "stderr_sink": OutputSink.file(stderr_path),
        })


class CommandOutput(BaseModel):
    """Raw outcome of one command as reported by an environment provider."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class StepResult(FrozenDTO):
    index: int = Field(ge=0)
    step: CommandStep
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    stdout_path: Optional[str] = None
    stderr_path: Optional[str] = None
    duration_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def artifact_paths(self) -> FrozenSet[str]:
        return frozenset(p for p in (self.stdout_path, self.stderr_path) if p)


class PipelineResult(FrozenDTO):
    status: PipelineStatus
    steps: Tuple[StepResult, ...] = ()
    failed_step_index: Optional[int] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "PipelineResult":
        if self.status == PipelineStatus.FAILED:
            if self.failed_step_index is None:
                raise ValueError("Failed pipeline must name its failing step")
            if self.failed_step_index != len(self.steps) - 1:
                raise ValueError("Failing step must be the last executed step")
        elif self.failed_step_index is not None:
            raise ValueError("Succeeded pipeline cannot have a failing step")
        return self

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.SUCCEEDED

    @property
    def failed_step(self) -> Optional[StepResult]:
        if self.failed_step_index is None:
            return None
        return self.steps[self.failed_step_index]

    @property
    def exit_code(self) -> Optional[int]:
        return self.steps[-1].exit_code if self.steps else None

    @property
    def stdout(self) -> str:
        return "".join(step.stdout for step in self.steps)

    @property
    def stderr(self) -> str:
        return "".join(step.stderr for step in self.steps)

    @property
    def artifact_paths(self) -> FrozenSet[str]:
        paths: FrozenSet[str] = frozenset()
        for step in self.steps:
            paths = paths | step.artifact_paths
        return paths


class PipelineDefinition(FrozenDTO):
    """Everything a matrix entry needs besides its target."""

    steps: Tuple[CommandStep, ...] = ()
    cache_specs: Tuple[CacheSpec, ...] = ()
    env_variables: Dict[str, str] = Field(default_factory=dict)

    @property
    def uses_file_sinks(self) -> bool:
        return any(
            step.stdout_sink.is_file or step.stderr_sink.is_file
            for step in self.steps
        )

    def with_output_redirection(self) -> "PipelineDefinition":
        steps = tuple(
            step.redirected(
                stdout_path=f"steps/{index:02d}.stdout.log",
                stderr_path=f"steps/{index:02d}.stderr.log",
            )
            for index, step in enumerate(self.steps)
        )
        return self.model_copy(update={"steps": steps})
