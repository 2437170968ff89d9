from matrix_runner.orchestrator.coordinator import MatrixCoordinator
from matrix_runner.orchestrator.state_manager import StateManager
from matrix_runner.orchestrator.pipelines import (
    PipelineFactory,
    node_ci_pipeline,
    node_ci_pipeline_from_settings,
    node_ci_steps,
    node_cache_specs,
)
from matrix_runner.orchestrator.main import MatrixRunnerService, run_build_matrix

__all__ = [
    "MatrixCoordinator",
    "StateManager",
    "PipelineFactory",
    "node_ci_pipeline",
    "node_ci_pipeline_from_settings",
    "node_ci_steps",
    "node_cache_specs",
    "MatrixRunnerService",
    "run_build_matrix",
]
