from typing import Any, Sequence

from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.exceptions.build_exceptions import AggregationError


class ResultAggregator:
    """Turns per-entry results into a :class:`MatrixReport`.

    Pure: validates and orders, never touches the filesystem.
    """

    def aggregate(self, results: Sequence[Any]) -> MatrixReport:
        for position, result in enumerate(results):
            self._validate(position, result)
        return MatrixReport(results=tuple(results))

    @staticmethod
    def _validate(position: int, result: Any) -> None:
        if not isinstance(result, BuildResult):
            raise AggregationError(
                message=f"Entry {position} is not a build result: {type(result).__name__}",
                position=position,
            )

        version = result.runtime_version
        if result.is_successful:
            if result.failed_step_index is not None or result.error_code:
                raise AggregationError(
                    message=f"Entry {version} succeeded but records a failure",
                    position=position,
                )
            if result.exit_code not in (0, None):
                raise AggregationError(
                    message=f"Entry {version} succeeded with exit code {result.exit_code}",
                    position=position,
                )
        else:
            if not result.error_code:
                raise AggregationError(
                    message=f"Entry {version} failed without an error code",
                    position=position,
                )

        if result.failed_step_index is not None and not (
            0 <= result.failed_step_index < len(result.steps)
        ):
            raise AggregationError(
                message=f"Entry {version} names failing step {result.failed_step_index} "
                        f"but recorded {len(result.steps)} steps",
                position=position,
            )


def aggregate(results: Sequence[Any]) -> MatrixReport:
    return ResultAggregator().aggregate(results)
