from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ErrorCode(str, Enum):
    UNKNOWN = "E0000"

    # E1xxx: a single matrix entry
    BUILD_FAILED = "E1000"
    BUILD_PROVISION_ERROR = "E1001"
    BUILD_CACHE_MOUNT_ERROR = "E1002"
    BUILD_COMMAND_FAILED = "E1003"
    BUILD_CANCELLED = "E1004"
    BUILD_INVALID_STATE = "E1005"

    # E2xxx: the combined report
    AGGREGATION_ERROR = "E2000"

    CONFIGURATION_ERROR = "E7001"


class MatrixRunnerException(Exception):
    """Root of every error the runner reports.

    ``error_code`` is what ends up in a failed ``BuildResult``; ``details``
    collects the keyword context each subclass is given.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = dict(details or {})
        self.cause = cause
        self.raised_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "type": type(self).__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
            "raised_at": self.raised_at.isoformat(),
        }
        if self.cause is not None:
            payload["cause"] = repr(self.cause)
        return payload

    def with_context(self, **context: Any) -> "MatrixRunnerException":
        self.details.update(context)
        return self


class ConfigurationError(MatrixRunnerException):
    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
        if field_name:
            self.details["field_name"] = field_name
        if field_value is not None:
            self.details["field_value"] = str(field_value)
        self.field_name = field_name
        self.field_value = field_value
