from typing import List, Sequence

from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.config.constants import STDERR_EXCERPT_CHARS
from matrix_runner.common.utils.time_utils import format_duration


HEADERS = ("Version", "Image", "Status", "Failed step", "Exit code", "Duration")


def _table_row(cells: Sequence[object]) -> str:
    return "| " + " | ".join(str(cell) for cell in cells) + " |"


class MarkdownFormatter:
    """Report as a GitHub-flavoured Markdown table plus one section per failure."""

    def format_report(self, report: MatrixReport) -> str:
        lines = [f"## Build matrix ({len(report)} entries)", ""]

        if not len(report):
            lines.append("No matrix entries were requested.")
            return "\n".join(lines)

        lines.append(self.table([self._row(result) for result in report]))

        for result in report.failed_entries:
            lines.extend(["", self.format_failure(result)])

        return "\n".join(lines)

    def format_failure(self, result: BuildResult) -> str:
        lines = [f"### {result.label} failed"]
        if result.failed_step is not None:
            lines.append(f"**Step:** `{result.failed_step}` (index {result.failed_step_index})")
        if result.error_message:
            lines.append(f"**Error:** {result.error_message}")
        if result.stderr:
            excerpt = result.stderr[-STDERR_EXCERPT_CHARS:].rstrip("\n")
            lines.extend(["", self.details("stderr", self.code_block(excerpt))])
        return "\n".join(lines)

    @staticmethod
    def table(rows: List[List[str]]) -> str:
        width = len(HEADERS)
        lines = [_table_row(HEADERS), _table_row([":---"] * width)]
        lines.extend(_table_row((row + [""] * width)[:width]) for row in rows)
        return "\n".join(lines)

    @staticmethod
    def details(summary: str, body: str) -> str:
        return f"<details>\n<summary>{summary}</summary>\n\n{body}\n</details>"

    @staticmethod
    def code_block(text: str) -> str:
        return f"```\n{text}\n```"

    @staticmethod
    def _row(result: BuildResult) -> List[str]:
        return [
            result.label,
            f"`{result.target.base_image}`",
            "✅ succeeded" if result.is_successful else "❌ failed",
            result.failed_step or "",
            "" if result.exit_code is None else str(result.exit_code),
            format_duration(result.duration_seconds),
        ]
