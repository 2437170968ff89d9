from matrix_runner.builder.providers.base import EnvironmentProvider, ExecutionSession
from matrix_runner.builder.providers.dagger_provider import (
    DaggerEnvironmentProvider,
    DaggerExecutionSession,
)

__all__ = [
    "EnvironmentProvider",
    "ExecutionSession",
    "DaggerEnvironmentProvider",
    "DaggerExecutionSession",
]
