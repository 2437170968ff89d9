"""Environment provider interface.

The provider is the only place that talks to a container runtime. Everything
above it (provisioning rules, cache namespacing, step ordering, failure
propagation, aggregation) works on plain values, so a fake provider is enough
to exercise it.
"""
from abc import ABC, abstractmethod
from typing import Sequence

from matrix_runner.common.dto.environment import Environment
from matrix_runner.common.dto.pipeline import CommandOutput


class ExecutionSession(ABC):
    """A materialized environment that runs commands one at a time.

    State produced by a successful command (files written under the workdir,
    cache contents) is visible to the next command of the same session.
    """

    @abstractmethod
    async def exec(self, argv: Sequence[str]) -> CommandOutput:
        """Run one command and return its exit code and captured streams.

        A non-zero exit code is returned, not raised. Infrastructure problems
        (engine unreachable, image missing) raise ``ProvisionError``.
        """

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "ExecutionSession":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


class EnvironmentProvider(ABC):
    name: str = "abstract"

    @abstractmethod
    async def resolve_image(self, image_ref: str) -> None:
        """Raise ``ProvisionError`` when ``image_ref`` cannot be resolved."""

    @abstractmethod
    async def open_session(self, environment: Environment) -> ExecutionSession:
        """Materialize ``environment`` and return a session bound to it."""

    def volume_identity(self, cache_key: str) -> str:
        """Physical volume a cache key maps to; one volume per key."""
        return cache_key

    async def __aenter__(self) -> "EnvironmentProvider":
        return self

    async def __aexit__(self, *args) -> None:
        return None
