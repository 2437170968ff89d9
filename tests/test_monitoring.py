import json
import logging
from unittest.mock import MagicMock

from opentelemetry.trace import StatusCode

from matrix_runner.common.config.constants import PipelineStatus
from matrix_runner.common.config.logging_config import CustomJsonFormatter, get_build_logger
from matrix_runner.common.dto.build import BuildResult
from matrix_runner.common.dto.environment import BuildTarget
from matrix_runner.monitoring.tracing import entry_span, record_result


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("matrix_runner.build", logging.INFO, __file__, 10, "Step 0: install", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonLogging:

    def test_build_fields_are_emitted(self):
        formatter = CustomJsonFormatter("%(message)s")

        payload = json.loads(formatter.format(_record(runtime_version="18", step_index=0)))

        assert payload["message"] == "Step 0: install"
        assert payload["runtime_version"] == "18"
        assert payload["step_index"] == 0
        assert payload["level"] == "INFO"

    def test_build_logger_stamps_version(self):
        msg, kwargs = get_build_logger("20").process("hello", {"extra": {"step_index": 3}})

        assert kwargs["extra"] == {"step_index": 3, "runtime_version": "20"}


class TestTracing:

    def test_failed_result_marks_span_error(self):
        span = MagicMock()
        result = BuildResult(
            target=BuildTarget(runtime_version="18", base_image="node:18"),
            status=PipelineStatus.FAILED,
            exit_code=1,
            failed_step="install",
            error_code="E1003",
            error_message="Step 2 (install) exited with 1",
        )

        record_result(span, result)

        span.set_attribute.assert_any_call("matrix.exit_code", 1)
        span.set_attribute.assert_any_call("matrix.failed_step", "install")
        status = span.set_status.call_args[0][0]
        assert status.status_code == StatusCode.ERROR

    def test_entry_span_without_provider_is_usable(self):
        with entry_span("18", "node:18") as span:
            span.set_attribute("matrix.status", "succeeded")
