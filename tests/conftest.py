"""
Shared pytest fixtures for matrix_runner tests.

The fake provider stands in for a container runtime: every command succeeds
and echoes its argv unless a test scripts a different outcome for it. It
records what was resolved, materialized and executed so tests can assert on
ordering and isolation without a real engine.
"""
import asyncio
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from matrix_runner.builder.build_executor import CommandPipelineExecutor
from matrix_runner.builder.cache_binder import CacheBinder
from matrix_runner.builder.environment_manager import EnvironmentProvisioner
from matrix_runner.builder.providers.base import EnvironmentProvider, ExecutionSession
from matrix_runner.common.dto.environment import Environment
from matrix_runner.common.dto.pipeline import CommandOutput
from matrix_runner.common.exceptions.build_exceptions import ProvisionError
from matrix_runner.orchestrator.coordinator import MatrixCoordinator


class FakeSession(ExecutionSession):
    def __init__(self, provider: "FakeEnvironmentProvider", environment: Environment):
        self._provider = provider
        self._version = environment.target.runtime_version

    async def exec(self, argv: Sequence[str]) -> CommandOutput:
        argv = tuple(argv)
        self._provider.executed.append((self._version, argv))

        # yield so concurrent entries interleave
        await asyncio.sleep(self._provider.delays.get(self._version, 0))

        error = self._provider.errors.get((self._version, argv))
        if error is None:
            error = self._provider.errors.get((None, argv))
        if error is not None:
            raise error

        hangs = (
            self._version in self._provider.hanging
            or (self._version, argv) in self._provider.hanging_commands
        )
        if hangs:
            self._provider.waiting.append(self._version)
            await asyncio.Event().wait()

        output = self._provider.outputs.get((self._version, argv))
        if output is None:
            output = self._provider.outputs.get((None, argv))
        if output is None:
            output = CommandOutput(
                exit_code=0,
                stdout=f"[{self._version}] {' '.join(argv)}\n",
            )
        return output

    async def close(self) -> None:
        self._provider.closed_sessions += 1


class FakeEnvironmentProvider(EnvironmentProvider):
    name = "fake"

    def __init__(self):
        self.outputs: Dict[Tuple[Optional[str], Tuple[str, ...]], CommandOutput] = {}
        self.missing_images: Set[str] = set()
        self.hanging: Set[str] = set()
        self.hanging_commands: Set[Tuple[str, Tuple[str, ...]]] = set()
        self.errors: Dict[Tuple[Optional[str], Tuple[str, ...]], BaseException] = {}
        self.delays: Dict[str, float] = {}

        self.resolved_images: List[str] = []
        self.environments: List[Environment] = []
        self.executed: List[Tuple[str, Tuple[str, ...]]] = []
        self.waiting: List[str] = []
        self.closed_sessions = 0

    def script(
        self,
        argv: Sequence[str],
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        version: Optional[str] = None,
    ) -> None:
        self.outputs[(version, tuple(argv))] = CommandOutput(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
        )

    def fail_with(
        self,
        argv: Sequence[str],
        error: BaseException,
        version: Optional[str] = None,
    ) -> None:
        self.errors[(version, tuple(argv))] = error

    def commands_for(self, version: str) -> List[Tuple[str, ...]]:
        return [argv for v, argv in self.executed if v == version]

    def environment_for(self, version: str) -> Environment:
        for environment in self.environments:
            if environment.target.runtime_version == version:
                return environment
        raise KeyError(version)

    async def resolve_image(self, image_ref: str) -> None:
        await asyncio.sleep(0)
        if image_ref in self.missing_images:
            raise ProvisionError(f"Image not found: {image_ref}", image_ref=image_ref)
        self.resolved_images.append(image_ref)

    async def open_session(self, environment: Environment) -> ExecutionSession:
        self.environments.append(environment)
        return FakeSession(self, environment)


@pytest.fixture
def provider() -> FakeEnvironmentProvider:
    return FakeEnvironmentProvider()


@pytest.fixture
def source_dir(tmp_path):
    source = tmp_path / "app"
    source.mkdir()
    (source / "package.json").write_text('{"name": "app", "scripts": {"build": "tsc"}}')
    return source


@pytest.fixture
def provisioner(provider, source_dir) -> EnvironmentProvisioner:
    return EnvironmentProvisioner(provider, source_dir)


@pytest.fixture
def make_coordinator(provider, provisioner):
    def _make(**kwargs) -> MatrixCoordinator:
        return MatrixCoordinator(
            provisioner=provisioner,
            cache_binder=CacheBinder(),
            executor=CommandPipelineExecutor(provider),
            **kwargs,
        )

    return _make
