"""Immutable description of a build environment.

An :class:`Environment` never touches a container runtime. It is an ordered
list of configuration steps (image, directories, caches, variables) that an
environment provider replays when a pipeline executes.
"""
import re
from enum import Enum
from typing import Optional, Tuple, Dict, Mapping

from pydantic import Field, field_validator, model_validator

from matrix_runner.common.dto.base import FrozenDTO
from matrix_runner.common.config.constants import (
    CACHE_KEY_SEPARATOR,
    CACHE_NAME_PATTERN,
    DEFAULT_CACHE_NAMESPACE,
    VERSION_SELECTOR_PATTERN,
)


_VERSION_RE = re.compile(VERSION_SELECTOR_PATTERN)
_LABEL_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")
_CACHE_NAME_RE = re.compile(CACHE_NAME_PATTERN)


def is_valid_version_selector(version: str) -> bool:
    return bool(version) and _VERSION_RE.match(version) is not None


def is_valid_cache_name(name: str) -> bool:
    return bool(name) and _CACHE_NAME_RE.match(name) is not None


class BuildTarget(FrozenDTO):
    # selectors are validated at provisioning so a bad one can still be reported
    runtime_version: str = Field(description="Runtime version selector, e.g. '18'")
    base_image: str = Field(description="Fully resolved base image reference")

    @property
    def label(self) -> str:
        if is_valid_version_selector(self.runtime_version):
            return self.runtime_version
        label = _LABEL_UNSAFE_RE.sub("_", self.runtime_version.strip())
        return f"_{label}" if not label or label.startswith(".") else label


class CacheSpec(FrozenDTO):
    purpose: str
    mount_path: str

    @field_validator("purpose")
    @classmethod
    def validate_purpose(cls, v: str) -> str:
        if not is_valid_cache_name(v):
            raise ValueError(f"Cache purpose must match {CACHE_NAME_PATTERN}: {v!r}")
        return v

    @field_validator("mount_path")
    @classmethod
    def validate_mount_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Cache mount path must be absolute: {v}")
        return v.rstrip("/") or "/"


class CacheBinding(FrozenDTO):
    mount_path: str
    cache_key: str
    runtime_version: str
    purpose: str

    @staticmethod
    def make_key(namespace: str, runtime_version: str, purpose: str) -> str:
        """``{namespace}:{version}:{purpose}``; no part may contain the separator."""
        parts = (namespace, runtime_version, purpose)
        for part in parts:
            if CACHE_KEY_SEPARATOR in part:
                raise ValueError(f"Cache key part {part!r} contains {CACHE_KEY_SEPARATOR!r}")
        return CACHE_KEY_SEPARATOR.join(parts)

    @classmethod
    def for_target(
        cls,
        target: BuildTarget,
        purpose: str,
        mount_path: str,
        namespace: str = DEFAULT_CACHE_NAMESPACE,
    ) -> "CacheBinding":
        spec = CacheSpec(purpose=purpose, mount_path=mount_path)
        return cls(
            mount_path=spec.mount_path,
            cache_key=cls.make_key(namespace, target.runtime_version, purpose),
            runtime_version=target.runtime_version,
            purpose=purpose,
        )


class EnvironmentOp(str, Enum):
    FROM_IMAGE = "from_image"
    WITH_DIRECTORY = "with_directory"
    WITH_WORKDIR = "with_workdir"
    WITH_MOUNTED_CACHE = "with_mounted_cache"
    WITH_ENV_VARIABLE = "with_env_variable"


class EnvironmentStep(FrozenDTO):
    op: EnvironmentOp
    path: Optional[str] = None
    value: Optional[str] = None
    name: Optional[str] = None
    exclude: Tuple[str, ...] = ()
    binding: Optional[CacheBinding] = None

    @model_validator(mode="after")
    def check_required_fields(self) -> "EnvironmentStep":
        if self.op == EnvironmentOp.FROM_IMAGE and not self.value:
            raise ValueError("from_image requires an image reference")
        if self.op in (EnvironmentOp.WITH_DIRECTORY, EnvironmentOp.WITH_WORKDIR) and not self.path:
            raise ValueError(f"{self.op.value} requires a path")
        if self.op == EnvironmentOp.WITH_MOUNTED_CACHE and self.binding is None:
            raise ValueError("with_mounted_cache requires a binding")
        if self.op == EnvironmentOp.WITH_ENV_VARIABLE and not self.name:
            raise ValueError("with_env_variable requires a name")
        return self


class Environment(FrozenDTO):
    target: BuildTarget
    steps: Tuple[EnvironmentStep, ...] = ()

    @classmethod
    def from_image(cls, target: BuildTarget) -> "Environment":
        step = EnvironmentStep(op=EnvironmentOp.FROM_IMAGE, value=target.base_image)
        return cls(target=target, steps=(step,))

    def _append(self, step: EnvironmentStep) -> "Environment":
        return self.model_copy(update={"steps": self.steps + (step,)})

    def with_directory(
        self,
        path: str,
        host_path: str,
        exclude: Tuple[str, ...] = (),
    ) -> "Environment":
        return self._append(EnvironmentStep(
            op=EnvironmentOp.WITH_DIRECTORY,
            path=path,
            value=host_path,
            exclude=tuple(exclude),
        ))

    def with_workdir(self, path: str) -> "Environment":
        return self._append(EnvironmentStep(op=EnvironmentOp.WITH_WORKDIR, path=path))

    def with_mounted_cache(self, binding: CacheBinding) -> "Environment":
        return self._append(EnvironmentStep(
            op=EnvironmentOp.WITH_MOUNTED_CACHE,
            path=binding.mount_path,
            value=binding.cache_key,
            binding=binding,
        ))

    def with_env_variable(self, name: str, value: str) -> "Environment":
        return self._append(EnvironmentStep(
            op=EnvironmentOp.WITH_ENV_VARIABLE,
            name=name,
            value=value,
        ))

    def with_env_variables(self, variables: Mapping[str, str]) -> "Environment":
        env = self
        for name, value in variables.items():
            env = env.with_env_variable(name, value)
        return env

    @property
    def image_ref(self) -> str:
        return self.steps[0].value if self.steps else self.target.base_image

    @property
    def workdir(self) -> Optional[str]:
        workdir = None
        for step in self.steps:
            if step.op == EnvironmentOp.WITH_WORKDIR:
                workdir = step.path
        return workdir

    @property
    def cache_bindings(self) -> Tuple[CacheBinding, ...]:
        return tuple(
            step.binding for step in self.steps
            if step.op == EnvironmentOp.WITH_MOUNTED_CACHE
        )

    @property
    def mounts(self) -> Dict[str, str]:
        mounts: Dict[str, str] = {}
        for step in self.steps:
            if step.op == EnvironmentOp.WITH_DIRECTORY:
                mounts[step.path] = f"dir:{step.value}"
            elif step.op == EnvironmentOp.WITH_MOUNTED_CACHE:
                mounts[step.path] = f"cache:{step.value}"
        return mounts

    @property
    def env_variables(self) -> Dict[str, str]:
        variables: Dict[str, str] = {}
        for step in self.steps:
            if step.op == EnvironmentOp.WITH_ENV_VARIABLE:
                variables[step.name] = step.value or ""
        return variables

    def describe(self) -> str:
        lines = []
        for step in self.steps:
            if step.op == EnvironmentOp.FROM_IMAGE:
                lines.append(f"FROM {step.value}")
            elif step.op == EnvironmentOp.WITH_DIRECTORY:
                lines.append(f"DIRECTORY {step.value} -> {step.path}")
            elif step.op == EnvironmentOp.WITH_WORKDIR:
                lines.append(f"WORKDIR {step.path}")
            elif step.op == EnvironmentOp.WITH_MOUNTED_CACHE:
                lines.append(f"CACHE {step.value} -> {step.path}")
            elif step.op == EnvironmentOp.WITH_ENV_VARIABLE:
                lines.append(f"ENV {step.name}={step.value}")
        return "\n".join(lines)
