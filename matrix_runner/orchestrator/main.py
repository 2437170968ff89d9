from pathlib import Path
from typing import Optional, Sequence, Union

from matrix_runner.builder.artifact_collector import ArtifactCollector
from matrix_runner.builder.build_executor import CommandPipelineExecutor
from matrix_runner.builder.cache_binder import CacheBinder
from matrix_runner.builder.environment_manager import EnvironmentProvisioner
from matrix_runner.builder.providers.base import EnvironmentProvider
from matrix_runner.common.dto.build import BuildResult, MatrixReport
from matrix_runner.common.dto.environment import Environment
from matrix_runner.common.config.constants import FailPolicy, ReportFormat
from matrix_runner.common.config.settings import Settings, get_settings
from matrix_runner.common.config.logging_config import get_logger
from matrix_runner.orchestrator.coordinator import MatrixCoordinator
from matrix_runner.orchestrator.pipelines import PipelineFactory, node_ci_pipeline_from_settings
from matrix_runner.reporting.formatters import get_formatter


logger = get_logger(__name__)


class MatrixRunnerService:
    """Wires provisioner, cache binder, executor and coordinator from settings."""

    def __init__(
        self,
        provider: EnvironmentProvider,
        source_dir: Union[str, Path],
        settings: Optional[Settings] = None,
        output_dir: Optional[Union[str, Path]] = None,
        fail_policy: Optional[FailPolicy] = None,
        max_parallel: Optional[int] = None,
        pipeline_factory: Optional[PipelineFactory] = None,
    ):
        self._settings = settings or get_settings()
        self._provider = provider
        self._source_dir = Path(source_dir)

        output_dir = output_dir or self._settings.output_dir
        self._artifact_collector = ArtifactCollector(output_dir) if output_dir else None

        self._provisioner = EnvironmentProvisioner(
            provider,
            self._source_dir,
            source_mount_path=self._settings.source_mount_path,
            source_exclude=self._settings.source_exclude,
        )
        self._pipeline_factory = pipeline_factory or node_ci_pipeline_from_settings(
            self._settings,
            redirect_output=self._artifact_collector is not None,
        )
        self._coordinator = MatrixCoordinator(
            provisioner=self._provisioner,
            cache_binder=CacheBinder(namespace=self._settings.cache_namespace),
            executor=CommandPipelineExecutor(provider),
            base_image_template=self._settings.base_image_template,
            fail_policy=fail_policy or self._settings.fail_policy,
            max_parallel=max_parallel or self._settings.max_parallel,
            artifact_collector=self._artifact_collector,
        )

    @property
    def provider(self) -> EnvironmentProvider:
        return self._provider

    @property
    def coordinator(self) -> MatrixCoordinator:
        return self._coordinator

    @property
    def artifact_collector(self) -> Optional[ArtifactCollector]:
        return self._artifact_collector

    def base(self, version: str = "latest") -> Environment:
        return self._provisioner.base(version, self._settings.base_image_template)

    async def build(self, version: str) -> BuildResult:
        report = await self._coordinator.run_matrix([version], self._pipeline_factory)
        return report[0]

    async def build_matrix(self, versions: Optional[Sequence[str]] = None) -> MatrixReport:
        if versions is None:
            versions = self._settings.node_versions

        report = await self._coordinator.run_matrix(versions, self._pipeline_factory)

        if self._artifact_collector is not None:
            self._artifact_collector.write_report_tree(report)

        return report

    def cancel(self) -> int:
        return self._coordinator.cancel()

    @staticmethod
    def render(report: MatrixReport, report_format: ReportFormat = ReportFormat.TEXT) -> str:
        return get_formatter(report_format).format_report(report)


async def run_build_matrix(
    provider: EnvironmentProvider,
    source_dir: Union[str, Path],
    versions: Optional[Sequence[str]] = None,
    settings: Optional[Settings] = None,
    output_dir: Optional[Union[str, Path]] = None,
    fail_policy: Optional[FailPolicy] = None,
    report_format: ReportFormat = ReportFormat.TEXT,
) -> str:
    """Build ``source_dir`` for every version and return the combined report."""
    service = MatrixRunnerService(
        provider,
        source_dir,
        settings=settings,
        output_dir=output_dir,
        fail_policy=fail_policy,
    )
    report = await service.build_matrix(versions)
    return service.render(report, report_format)
