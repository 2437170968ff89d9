from typing import Optional, Dict, Any, Sequence

from matrix_runner.common.exceptions.base_exceptions import (
    MatrixRunnerException,
    ErrorCode,
)


class BuildException(MatrixRunnerException):
    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.BUILD_FAILED,
        runtime_version: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if runtime_version:
            details["runtime_version"] = runtime_version
        if stage:
            details["stage"] = stage
        super().__init__(message, error_code, details, cause)
        self.runtime_version = runtime_version
        self.stage = stage


class ProvisionError(BuildException):
    def __init__(
        self,
        message: str,
        runtime_version: Optional[str] = None,
        image_ref: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if image_ref:
            details["image_ref"] = image_ref
        super().__init__(
            message=message,
            error_code=ErrorCode.BUILD_PROVISION_ERROR,
            runtime_version=runtime_version,
            stage="provisioning",
            details=details,
            cause=cause,
        )
        self.image_ref = image_ref


class CacheMountError(BuildException):
    def __init__(
        self,
        message: str,
        runtime_version: Optional[str] = None,
        mount_path: Optional[str] = None,
        cache_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if mount_path:
            details["mount_path"] = mount_path
        if cache_key:
            details["cache_key"] = cache_key
        super().__init__(
            message=message,
            error_code=ErrorCode.BUILD_CACHE_MOUNT_ERROR,
            runtime_version=runtime_version,
            stage="cache_binding",
            details=details,
        )
        self.mount_path = mount_path
        self.cache_key = cache_key


class CommandFailure(BuildException):
    def __init__(
        self,
        message: str,
        runtime_version: Optional[str] = None,
        step_index: Optional[int] = None,
        argv: Optional[Sequence[str]] = None,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if step_index is not None:
            details["step_index"] = step_index
        if argv:
            details["argv"] = list(argv)
        if exit_code is not None:
            details["exit_code"] = exit_code
        if stderr:
            details["stderr_excerpt"] = stderr[-1000:]
        super().__init__(
            message=message,
            error_code=ErrorCode.BUILD_COMMAND_FAILED,
            runtime_version=runtime_version,
            stage="executing",
            details=details,
        )
        self.step_index = step_index
        self.argv = tuple(argv or ())
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class BuildCancelledException(BuildException):
    def __init__(
        self,
        message: str = "Build was cancelled",
        runtime_version: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=message,
            error_code=ErrorCode.BUILD_CANCELLED,
            runtime_version=runtime_version,
            details=details,
        )
        self.reason = reason


class InvalidStateTransition(BuildException):
    def __init__(
        self,
        current: str,
        requested: str,
        runtime_version: Optional[str] = None,
    ):
        super().__init__(
            message=f"Cannot move entry from {current} to {requested}",
            error_code=ErrorCode.BUILD_INVALID_STATE,
            runtime_version=runtime_version,
            details={"current": current, "requested": requested},
        )
        self.current = current
        self.requested = requested


class AggregationError(MatrixRunnerException):
    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if position is not None:
            details["position"] = position
        super().__init__(
            message=message,
            error_code=ErrorCode.AGGREGATION_ERROR,
            details=details,
        )
        self.position = position
