import json

from matrix_runner.builder.artifact_collector import ArtifactCollector
from matrix_runner.common.config.constants import PipelineStatus
from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.dto.environment import BuildTarget
from matrix_runner.common.dto.pipeline import CommandStep, StepResult


def _result(version: str, succeeded: bool) -> BuildResult:
    return BuildResult(
        target=BuildTarget(runtime_version=version, base_image=f"node:{version}"),
        status=PipelineStatus.SUCCEEDED if succeeded else PipelineStatus.FAILED,
        exit_code=0 if succeeded else None,
        stdout=f"out {version}\n",
        stderr="" if succeeded else "boom\n",
        error_code=None if succeeded else "E1001",
        error_message=None if succeeded else "Image not found",
    )


class TestArtifactCollector:

    def test_writes_one_directory_per_version(self, tmp_path):
        report = MatrixReport(results=(_result("18", False), _result("20", True)))

        written = ArtifactCollector(tmp_path / "out").write_report_tree(report)

        out = tmp_path / "out"
        assert (out / "18" / "stderr.log").read_text() == "boom\n"
        assert (out / "20" / "stdout.log").read_text() == "out 20\n"
        assert len(written) == 7

        summary = json.loads((out / "matrix.json").read_text())
        assert summary == {"succeeded": False, "versions": ["18", "20"], "failed": ["18"]}

    def test_result_json_describes_entry(self, tmp_path):
        collector = ArtifactCollector(tmp_path)

        collector.write_entry(_result("18", False))

        entry = json.loads((tmp_path / "18" / "result.json").read_text())
        assert entry["status"] == "failed"
        assert entry["error_code"] == "E1001"
        assert entry["exit_code"] is None
        assert entry["steps"] == []

    def test_unsafe_version_is_sanitized(self, tmp_path):
        collector = ArtifactCollector(tmp_path / "out")
        target = BuildTarget(runtime_version="../../etc", base_image="node")

        entry_dir = collector.prepare_entry(target)

        assert entry_dir.parent == tmp_path / "out"

    def test_redirected_steps_are_read_back_into_entry_logs(self, tmp_path):
        steps_dir = tmp_path / "out" / "18" / "steps"
        steps_dir.mkdir(parents=True)
        (steps_dir / "00.stdout.log").write_text("added 120 packages\n")
        (steps_dir / "00.stderr.log").write_text("npm WARN deprecated\n")

        install = StepResult(
            index=0,
            step=CommandStep(argv=("npm", "ci"), name="install"),
            exit_code=0,
            stdout_path=str(steps_dir / "00.stdout.log"),
            stderr_path=str(steps_dir / "00.stderr.log"),
        )
        lint = StepResult(
            index=1,
            step=CommandStep(argv=("npm", "run", "lint"), name="lint"),
            exit_code=0,
            stdout="lint ok\n",
        )
        result = _result("18", True).model_copy(
            update={"steps": (install, lint), "stdout": "lint ok\n"}
        )

        ArtifactCollector(tmp_path / "out").write_entry(result)

        entry_dir = tmp_path / "out" / "18"
        assert (entry_dir / "stdout.log").read_text() == "added 120 packages\nlint ok\n"
        assert (entry_dir / "stderr.log").read_text() == "npm WARN deprecated\n"
