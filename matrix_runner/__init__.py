from matrix_runner import common
from matrix_runner import builder
from matrix_runner import monitoring
from matrix_runner import orchestrator
from matrix_runner import reporting

__version__ = "1.0.0"
__all__ = [
    "common",
    "builder",
    "monitoring",
    "orchestrator",
    "reporting",
]
