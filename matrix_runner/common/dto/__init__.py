from matrix_runner.common.dto.base import FrozenDTO
from matrix_runner.common.dto.environment import (
    BuildTarget,
    CacheSpec,
    CacheBinding,
    Environment,
    EnvironmentOp,
    EnvironmentStep,
    is_valid_version_selector,
)
from matrix_runner.common.dto.pipeline import (
    OutputSink,
    CommandStep,
    CommandOutput,
    StepResult,
    PipelineResult,
    PipelineDefinition,
)
from matrix_runner.common.dto.build import BuildResult, MatrixReport

__all__ = [
    "FrozenDTO",
    "BuildTarget",
    "CacheSpec",
    "CacheBinding",
    "Environment",
    "EnvironmentOp",
    "EnvironmentStep",
    "is_valid_version_selector",
    "OutputSink",
    "CommandStep",
    "CommandOutput",
    "StepResult",
    "PipelineResult",
    "PipelineDefinition",
    "BuildResult",
    "MatrixReport",
]
