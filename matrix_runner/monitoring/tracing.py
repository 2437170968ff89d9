from contextlib import contextmanager
from typing import Optional, Iterator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.trace import Span, Status, StatusCode

from matrix_runner.common.dto.build import BuildResult
from matrix_runner.common.config.logging_config import get_logger


logger = get_logger(__name__)

_tracer_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str = "matrix-runner",
    exporter: Optional[SpanExporter] = None,
) -> TracerProvider:
    global _tracer_provider

    resource = Resource.create({"service.name": service_name})
    _tracer_provider = TracerProvider(resource=resource)
    _tracer_provider.add_span_processor(
        BatchSpanProcessor(exporter or ConsoleSpanExporter())
    )
    trace.set_tracer_provider(_tracer_provider)

    logger.info(f"OpenTelemetry tracing initialized for {service_name}")
    return _tracer_provider


def shutdown_tracing() -> None:
    global _tracer_provider
    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None


def get_tracer() -> trace.Tracer:
    # without setup_tracing() the global provider hands out no-op spans
    return trace.get_tracer("matrix_runner")


@contextmanager
def entry_span(runtime_version: str, base_image: Optional[str] = None) -> Iterator[Span]:
    with get_tracer().start_as_current_span(f"build {runtime_version}") as span:
        span.set_attribute("matrix.runtime_version", runtime_version)
        if base_image:
            span.set_attribute("matrix.base_image", base_image)
        yield span


def record_result(span: Span, result: BuildResult) -> None:
    span.set_attribute("matrix.status", result.status.value)
    span.set_attribute("matrix.duration_seconds", result.duration_seconds)
    if result.exit_code is not None:
        span.set_attribute("matrix.exit_code", result.exit_code)
    if result.failed_step is not None:
        span.set_attribute("matrix.failed_step", result.failed_step)

    if result.is_failed:
        span.set_status(Status(StatusCode.ERROR, result.error_message or "build failed"))
    else:
        span.set_status(Status(StatusCode.OK))
