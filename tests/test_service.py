import asyncio
import json

from matrix_runner.common.config.constants import FailPolicy, ReportFormat
from matrix_runner.common.config.settings import Settings
from matrix_runner.orchestrator.main import MatrixRunnerService, run_build_matrix


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, run_lint=False, **overrides)


class TestMatrixRunnerService:

    def test_build_matrix_uses_configured_versions(self, provider, source_dir):
        service = MatrixRunnerService(provider, source_dir, settings=_settings(node_versions=["18", "20"]))

        report = asyncio.run(service.build_matrix())

        assert report.versions == ["18", "20"]
        assert report.succeeded
        assert ("npm", "run", "lint") not in provider.commands_for("18")

    def test_output_dir_writes_report_tree(self, provider, source_dir, tmp_path):
        out = tmp_path / "out"
        service = MatrixRunnerService(provider, source_dir, settings=_settings(), output_dir=out)

        report = asyncio.run(service.build_matrix(["20"]))

        assert report[0].stdout == ""
        assert (out / "20" / "steps" / "02.stdout.log").read_text() == "[20] npm ci --maxsockets 1\n"
        assert json.loads((out / "matrix.json").read_text())["versions"] == ["20"]

    def test_explicit_policy_overrides_settings(self, provider, source_dir):
        service = MatrixRunnerService(
            provider,
            source_dir,
            settings=_settings(),
            fail_policy=FailPolicy.FAIL_FAST,
            max_parallel=1,
        )
        provider.script(("npm", "run", "build"), exit_code=1, version="18")

        report = asyncio.run(service.build_matrix(["18", "20"]))

        assert report[1].error_code == "E1004"

    def test_build_single_version(self, provider, source_dir):
        service = MatrixRunnerService(provider, source_dir, settings=_settings())

        result = asyncio.run(service.build("18"))

        assert result.is_successful
        assert result.runtime_version == "18"

    def test_base_environment(self, provider, source_dir):
        service = MatrixRunnerService(provider, source_dir, settings=_settings())

        assert service.base("20").describe().splitlines()[0] == "FROM node:20"

    def test_render_markdown(self, provider, source_dir):
        service = MatrixRunnerService(provider, source_dir, settings=_settings())
        report = asyncio.run(service.build_matrix(["18"]))

        assert service.render(report, ReportFormat.MARKDOWN).startswith("## Build matrix (1 entries)")


def test_run_build_matrix_returns_text_report(provider, source_dir):
    provider.script(("npm", "ci", "--maxsockets", "1"), exit_code=1, stderr="npm ERR!\n", version="20")

    text = asyncio.run(run_build_matrix(provider, source_dir, ["18", "20"], settings=_settings()))

    assert "=== 18 (node:18): SUCCEEDED" in text
    assert "=== 20 (node:20): FAILED at step 2 (install), exit code 1 ===" in text
    assert text.splitlines()[-1] == "Summary: 1/2 succeeded; failed: 20"
