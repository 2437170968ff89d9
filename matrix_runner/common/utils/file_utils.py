from pathlib import Path, PurePosixPath
from typing import Union
import os
import tempfile

from matrix_runner.common.config.logging_config import get_logger


logger = get_logger(__name__)


def ensure_directory(directory: Union[str, Path]) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def write_text_atomic(file_path: Union[str, Path], content: str, encoding: str = "utf-8") -> Path:
    """Replace ``file_path`` with ``content`` in one rename."""
    file_path = Path(file_path)
    ensure_directory(file_path.parent)

    fd, temp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            handle.write(content)
        os.replace(temp_name, file_path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise

    logger.debug(f"Wrote {len(content)} characters to {file_path}")
    return file_path


def is_relative_subpath(path: Union[str, Path]) -> bool:
    """True for a non-empty relative path that stays below its base directory."""
    candidate = PurePosixPath(str(path).replace("\\", "/"))
    if candidate.is_absolute() or str(candidate) in ("", "."):
        return False
    return ".." not in candidate.parts
