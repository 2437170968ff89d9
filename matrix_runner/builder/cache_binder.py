from typing import Sequence, Tuple, Iterable

from matrix_runner.common.dto.environment import (
    BuildTarget,
    CacheBinding,
    CacheSpec,
    Environment,
    is_valid_cache_name,
)
from matrix_runner.common.config.constants import DEFAULT_CACHE_NAMESPACE
from matrix_runner.common.config.logging_config import get_build_logger
from matrix_runner.common.exceptions.base_exceptions import ConfigurationError
from matrix_runner.common.exceptions.build_exceptions import CacheMountError


class CacheBinder:
    """Attaches persistent, version-namespaced cache volumes to environments.

    Keys take the form ``{namespace}:{version}:{purpose}``. No part can hold
    the separator, so two matrix entries never resolve to the same volume.
    Volumes are created lazily by the provider the first time a key is
    mounted and survive across runs.
    """

    def __init__(self, namespace: str = DEFAULT_CACHE_NAMESPACE):
        if not is_valid_cache_name(namespace):
            raise ConfigurationError(
                f"Invalid cache namespace: {namespace!r}",
                field_name="cache_namespace",
                field_value=namespace,
            )
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def bindings_for(
        self,
        target: BuildTarget,
        specs: Iterable[CacheSpec],
    ) -> Tuple[CacheBinding, ...]:
        return tuple(
            CacheBinding.for_target(
                target,
                purpose=spec.purpose,
                mount_path=spec.mount_path,
                namespace=self._namespace,
            )
            for spec in specs
        )

    def bind(
        self,
        environment: Environment,
        bindings: Sequence[CacheBinding],
    ) -> Environment:
        version = environment.target.runtime_version
        logger = get_build_logger(version)

        for binding in bindings:
            if binding.runtime_version != version:
                raise CacheMountError(
                    message=(
                        f"Cache {binding.cache_key} belongs to version "
                        f"{binding.runtime_version}, not {version}"
                    ),
                    runtime_version=version,
                    mount_path=binding.mount_path,
                    cache_key=binding.cache_key,
                )

            existing = self._find_by_key(environment, binding.cache_key)
            if existing is not None:
                if existing.mount_path != binding.mount_path:
                    logger.warning(
                        f"Cache {binding.cache_key} already mounted at "
                        f"{existing.mount_path}, ignoring {binding.mount_path}"
                    )
                else:
                    logger.debug(f"Cache {binding.cache_key} already bound")
                continue

            occupant = environment.mounts.get(binding.mount_path)
            if occupant is not None:
                raise CacheMountError(
                    message=f"Mount path {binding.mount_path} is already used by {occupant}",
                    runtime_version=version,
                    mount_path=binding.mount_path,
                    cache_key=binding.cache_key,
                )

            environment = environment.with_mounted_cache(binding)
            logger.debug(f"Bound cache {binding.cache_key} at {binding.mount_path}")

        return environment

    def bind_specs(
        self,
        environment: Environment,
        specs: Iterable[CacheSpec],
    ) -> Environment:
        return self.bind(environment, self.bindings_for(environment.target, specs))

    @staticmethod
    def _find_by_key(environment: Environment, cache_key: str):
        for existing in environment.cache_bindings:
            if existing.cache_key == cache_key:
                return existing
        return None
