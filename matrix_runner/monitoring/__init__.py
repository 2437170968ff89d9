from matrix_runner.monitoring.tracing import (
    setup_tracing,
    shutdown_tracing,
    get_tracer,
    entry_span,
    record_result,
)

__all__ = [
    "setup_tracing",
    "shutdown_tracing",
    "get_tracer",
    "entry_span",
    "record_result",
]
