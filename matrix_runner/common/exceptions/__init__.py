from matrix_runner.common.exceptions.base_exceptions import (
    MatrixRunnerException,
    ErrorCode,
    ConfigurationError,
)
from matrix_runner.common.exceptions.build_exceptions import (
    BuildException,
    ProvisionError,
    CacheMountError,
    CommandFailure,
    BuildCancelledException,
    InvalidStateTransition,
    AggregationError,
)

__all__ = [
    "MatrixRunnerException",
    "ErrorCode",
    "ConfigurationError",
    "BuildException",
    "ProvisionError",
    "CacheMountError",
    "CommandFailure",
    "BuildCancelledException",
    "InvalidStateTransition",
    "AggregationError",
]
