from matrix_runner.reporting.aggregator import ResultAggregator, aggregate
from matrix_runner.reporting.formatters import MarkdownFormatter, TextFormatter, get_formatter

__all__ = [
    "ResultAggregator",
    "aggregate",
    "MarkdownFormatter",
    "TextFormatter",
    "get_formatter",
]
