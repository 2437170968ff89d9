from pathlib import Path
from typing import Optional, Sequence, Union

from matrix_runner.builder.providers.base import EnvironmentProvider
from matrix_runner.common.dto.environment import (
    BuildTarget,
    Environment,
    is_valid_version_selector,
)
from matrix_runner.common.config.constants import (
    DEFAULT_BASE_IMAGE_TEMPLATE,
    DEFAULT_SOURCE_MOUNT_PATH,
)
from matrix_runner.common.config.logging_config import get_build_logger
from matrix_runner.common.exceptions.build_exceptions import ProvisionError


def render_image_ref(base_image_template: str, version: str) -> str:
    """Fill ``{version}`` in the template, or tag an untagged image with it."""
    if "{version}" in base_image_template:
        return base_image_template.replace("{version}", version)

    last_segment = base_image_template.rsplit("/", 1)[-1]
    if ":" in last_segment or "@" in last_segment:
        return base_image_template
    return f"{base_image_template}:{version}"


class EnvironmentProvisioner:
    def __init__(
        self,
        provider: EnvironmentProvider,
        source_dir: Union[str, Path],
        source_mount_path: str = DEFAULT_SOURCE_MOUNT_PATH,
        source_exclude: Sequence[str] = (),
        verify_images: bool = True,
    ):
        self._provider = provider
        self._source_dir = Path(source_dir)
        self._source_mount_path = source_mount_path
        self._source_exclude = tuple(source_exclude)
        self._verify_images = verify_images

    @property
    def source_mount_path(self) -> str:
        return self._source_mount_path

    def make_target(
        self,
        version: str,
        base_image_template: str = DEFAULT_BASE_IMAGE_TEMPLATE,
    ) -> BuildTarget:
        if not isinstance(version, str) or not is_valid_version_selector(version):
            raise ProvisionError(
                message=f"Invalid runtime version selector: {version!r}",
                runtime_version=str(version) if version else None,
            )
        return BuildTarget(
            runtime_version=version,
            base_image=render_image_ref(base_image_template, version),
        )

    def base(
        self,
        version: str = "latest",
        base_image_template: str = DEFAULT_BASE_IMAGE_TEMPLATE,
    ) -> Environment:
        """Base environment plan: image, source directory and workdir."""
        target = self.make_target(version, base_image_template)
        return (
            Environment.from_image(target)
            .with_directory(
                self._source_mount_path,
                str(self._source_dir),
                exclude=self._source_exclude,
            )
            .with_workdir(self._source_mount_path)
        )

    async def provision(
        self,
        base_image_template: str,
        version: str,
    ) -> Environment:
        environment = self.base(version, base_image_template)
        logger = get_build_logger(version)

        if not self._source_dir.is_dir():
            raise ProvisionError(
                message=f"Source directory does not exist: {self._source_dir}",
                runtime_version=version,
            )

        if self._verify_images:
            logger.debug(f"Resolving base image {environment.image_ref}")
            try:
                await self._provider.resolve_image(environment.image_ref)
            except ProvisionError as e:
                if e.runtime_version is None:
                    e.runtime_version = version
                    e.with_context(runtime_version=version)
                raise

        logger.info(f"Provisioned environment from {environment.image_ref}")
        return environment
