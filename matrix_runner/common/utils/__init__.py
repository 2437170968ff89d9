from matrix_runner.common.utils.file_utils import (
    ensure_directory,
    write_text_atomic,
    is_relative_subpath,
)
from matrix_runner.common.utils.time_utils import (
    utc_now,
    format_duration,
    Timer,
)

__all__ = [
    "ensure_directory",
    "write_text_atomic",
    "is_relative_subpath",
    "utc_now",
    "format_duration",
    "Timer",
]
