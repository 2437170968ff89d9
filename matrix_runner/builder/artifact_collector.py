import json
from pathlib import Path
from typing import List, Union

from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.dto.environment import BuildTarget
from matrix_runner.common.config.logging_config import get_logger
from matrix_runner.common.utils.file_utils import ensure_directory, write_text_atomic


logger = get_logger(__name__)


class ArtifactCollector:
    """Lays out matrix outputs as a directory tree keyed by version label.

    ::

        <output_dir>/
            matrix.json
            18/
                stdout.log
                stderr.log
                result.json
                steps/...      (step file sinks, when used)
    """

    SUMMARY_FILE = "matrix.json"

    def __init__(self, output_dir: Union[str, Path]):
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def entry_dir(self, target: BuildTarget) -> Path:
        return self._output_dir / target.label

    def prepare_entry(self, target: BuildTarget) -> Path:
        return ensure_directory(self.entry_dir(target))

    def write_entry(self, result: BuildResult) -> List[Path]:
        entry_dir = self.prepare_entry(result.target)
        written = [
            write_text_atomic(entry_dir / "stdout.log", self._stream(result, "stdout")),
            write_text_atomic(entry_dir / "stderr.log", self._stream(result, "stderr")),
            write_text_atomic(
                entry_dir / "result.json",
                json.dumps(self._entry_summary(result), indent=2),
            ),
        ]
        return written

    def write_report_tree(self, report: MatrixReport) -> List[Path]:
        ensure_directory(self._output_dir)
        written: List[Path] = []

        for result in report:
            written.extend(self.write_entry(result))

        summary = {
            "succeeded": report.succeeded,
            "versions": report.versions,
            "failed": [result.runtime_version for result in report.failed_entries],
        }
        written.append(write_text_atomic(
            self._output_dir / self.SUMMARY_FILE,
            json.dumps(summary, indent=2),
        ))

        logger.info(f"Wrote {len(written)} report files to {self._output_dir}")
        return written

    @staticmethod
    def _stream(result: BuildResult, stream: str) -> str:
        """Whole ``stdout`` or ``stderr`` of an entry, reading redirected steps back in."""
        paths = [getattr(step, f"{stream}_path") for step in result.steps]
        if not any(paths):
            return getattr(result, stream)
        return "".join(
            Path(path).read_text(encoding="utf-8") if path else getattr(step, stream)
            for step, path in zip(result.steps, paths)
        )

    @staticmethod
    def _entry_summary(result: BuildResult) -> dict:
        return {
            "runtime_version": result.runtime_version,
            "base_image": result.target.base_image,
            "status": result.status.value,
            "exit_code": result.exit_code,
            "failed_step_index": result.failed_step_index,
            "failed_step": result.failed_step,
            "error_code": result.error_code,
            "error_message": result.error_message,
            "duration_seconds": result.duration_seconds,
            "started_at": result.started_at.isoformat() if result.started_at else None,
            "finished_at": result.finished_at.isoformat() if result.finished_at else None,
            "steps": [
                {
                    "index": step.index,
                    "command": step.step.display,
                    "exit_code": step.exit_code,
                    "duration_seconds": round(step.duration_seconds, 3),
                    "stdout_path": step.stdout_path,
                    "stderr_path": step.stderr_path,
                }
                for step in result.steps
            ],
            "artifact_paths": sorted(result.artifact_paths),
        }
