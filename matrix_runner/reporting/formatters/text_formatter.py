from typing import List

from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.config.constants import STDERR_EXCERPT_CHARS
from matrix_runner.common.utils.time_utils import format_duration


class TextFormatter:
    def __init__(self, stderr_excerpt_chars: int = STDERR_EXCERPT_CHARS):
        self._stderr_excerpt_chars = stderr_excerpt_chars

    def format_report(self, report: MatrixReport) -> str:
        sections = [self.format_entry(result) for result in report]
        sections.append(self.format_summary(report))
        return "\n".join(sections)

    def format_entry(self, result: BuildResult) -> str:
        lines: List[str] = [self._header(result)]

        if result.stdout:
            lines.append(result.stdout.rstrip("\n"))

        if result.is_failed:
            if result.error_message:
                lines.append(f"error: {result.error_message}")
            if result.stderr:
                lines.append("--- stderr ---")
                lines.append(self._excerpt(result.stderr).rstrip("\n"))

        return "\n".join(lines) + "\n"

    def format_summary(self, report: MatrixReport) -> str:
        total = len(report)
        passed = total - len(report.failed_entries)
        line = f"Summary: {passed}/{total} succeeded"
        if report.failed_entries:
            failed = ", ".join(result.label for result in report.failed_entries)
            line += f"; failed: {failed}"
        return line

    def _header(self, result: BuildResult) -> str:
        target = f"{result.label} ({result.target.base_image})"
        duration = format_duration(result.duration_seconds)
        if result.is_successful:
            return f"=== {target}: SUCCEEDED in {duration} ==="
        if result.failed_step is not None:
            return (
                f"=== {target}: FAILED at step {result.failed_step_index} "
                f"({result.failed_step}), exit code {result.exit_code} ==="
            )
        return f"=== {target}: FAILED [{result.error_code}] ==="

    def _excerpt(self, text: str) -> str:
        if len(text) <= self._stderr_excerpt_chars:
            return text
        return "...\n" + text[-self._stderr_excerpt_chars:]
