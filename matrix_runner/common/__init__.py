from matrix_runner.common import config
from matrix_runner.common import dto
from matrix_runner.common import exceptions
from matrix_runner.common import utils

__all__ = [
    "config",
    "dto",
    "exceptions",
    "utils",
]
