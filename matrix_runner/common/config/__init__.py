from matrix_runner.common.config.settings import Settings, get_settings
from matrix_runner.common.config.logging_config import (
    setup_logging,
    get_logger,
    get_build_logger,
)
from matrix_runner.common.config.constants import (
    EntryState,
    PipelineStatus,
    FailPolicy,
    SinkKind,
    CachePurpose,
    ReportFormat,
)

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "get_build_logger",
    "EntryState",
    "PipelineStatus",
    "FailPolicy",
    "SinkKind",
    "CachePurpose",
    "ReportFormat",
]
