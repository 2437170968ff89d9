from matrix_runner.builder.build_executor import CommandPipelineExecutor, command_failure
from matrix_runner.builder.cache_binder import CacheBinder
from matrix_runner.builder.environment_manager import EnvironmentProvisioner, render_image_ref
from matrix_runner.builder.artifact_collector import ArtifactCollector
from matrix_runner.builder.providers import (
    EnvironmentProvider,
    ExecutionSession,
    DaggerEnvironmentProvider,
)

__all__ = [
    "CommandPipelineExecutor",
    "command_failure",
    "CacheBinder",
    "EnvironmentProvisioner",
    "render_image_ref",
    "ArtifactCollector",
    "EnvironmentProvider",
    "ExecutionSession",
    "DaggerEnvironmentProvider",
]
