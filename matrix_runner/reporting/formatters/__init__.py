from matrix_runner.common.config.constants import ReportFormat
from matrix_runner.reporting.formatters.markdown_formatter import MarkdownFormatter
from matrix_runner.reporting.formatters.text_formatter import TextFormatter


def get_formatter(report_format: ReportFormat):
    if report_format == ReportFormat.MARKDOWN:
        return MarkdownFormatter()
    return TextFormatter()


__all__ = [
    "MarkdownFormatter",
    "TextFormatter",
    "get_formatter",
]
