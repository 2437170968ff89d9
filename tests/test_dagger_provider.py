"""
test_dagger_provider: mapping environment plans and command outcomes onto
the Dagger SDK. The engine is replaced by mocks; no container runs.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import dagger
import pytest

from matrix_runner.builder.cache_binder import CacheBinder
from matrix_runner.builder.providers.dagger_provider import (
    DaggerEnvironmentProvider,
    DaggerExecutionSession,
)
from matrix_runner.common.dto.environment import CacheSpec
from matrix_runner.common.exceptions.build_exceptions import ProvisionError


class FakeExecError(dagger.DaggerError):
    def __init__(self, exit_code: int, stdout: str = "", stderr: str = ""):
        super().__init__(f"process exited with {exit_code}")
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


def _container(stdout: str = "", stderr: str = "", error: Exception = None) -> MagicMock:
    container = MagicMock()
    candidate = container.with_exec.return_value
    if error is not None:
        candidate.stdout = AsyncMock(side_effect=error)
    else:
        candidate.stdout = AsyncMock(return_value=stdout)
    candidate.stderr = AsyncMock(return_value=stderr)
    return container


class TestContainerPlan:

    def test_environment_steps_replay_in_order(self, provisioner, source_dir):
        client = MagicMock()
        environment = CacheBinder().bind_specs(
            provisioner.base("18").with_env_variable("CI", "1"),
            [CacheSpec(purpose="npm", mount_path="/root/.npm")],
        )

        asyncio.run(DaggerEnvironmentProvider(client=client).open_session(environment))

        from_image = client.container.return_value.from_
        from_image.assert_called_once_with("node:18")
        host_dir = client.host.return_value.directory
        host_dir.assert_called_once_with(str(source_dir), exclude=[])

        with_directory = from_image.return_value.with_directory
        with_directory.assert_called_once_with("/src", host_dir.return_value)
        with_workdir = with_directory.return_value.with_workdir
        with_workdir.assert_called_once_with("/src")
        with_env = with_workdir.return_value.with_env_variable
        with_env.assert_called_once_with("CI", "1")
        with_env.return_value.with_mounted_cache.assert_called_once_with(
            "/root/.npm", client.cache_volume.return_value
        )
        client.cache_volume.assert_called_once_with("cache:18:npm")

    def test_client_required_outside_connection(self):
        with pytest.raises(ProvisionError):
            DaggerEnvironmentProvider().client

    def test_injected_client_skips_connection(self):
        client = MagicMock()

        async def scenario():
            async with DaggerEnvironmentProvider(client=client) as provider:
                return provider.client

        assert asyncio.run(scenario()) is client


class TestImageResolution:

    def test_resolve_syncs_image(self):
        client = MagicMock()
        sync = AsyncMock(return_value=None)
        client.container.return_value.from_.return_value.sync = sync

        asyncio.run(DaggerEnvironmentProvider(client=client).resolve_image("node:18"))

        client.container.return_value.from_.assert_called_once_with("node:18")
        sync.assert_awaited_once()

    def test_unresolvable_image_raises_provision_error(self):
        client = MagicMock()
        client.container.return_value.from_.return_value.sync = AsyncMock(
            side_effect=dagger.DaggerError("manifest unknown")
        )

        with pytest.raises(ProvisionError) as exc_info:
            asyncio.run(DaggerEnvironmentProvider(client=client).resolve_image("node:99"))

        assert exc_info.value.image_ref == "node:99"


class TestExecutionSession:

    def test_successful_command(self):
        container = _container(stdout="v18.19.0\n")
        session = DaggerExecutionSession(container, "18")

        output = asyncio.run(session.exec(["node", "--version"]))

        container.with_exec.assert_called_once_with(["node", "--version"])
        assert output.exit_code == 0
        assert output.stdout == "v18.19.0\n"

    def test_next_command_builds_on_successful_state(self):
        container = _container()
        chained = container.with_exec.return_value.with_exec.return_value
        chained.stdout = AsyncMock(return_value="")
        chained.stderr = AsyncMock(return_value="")
        session = DaggerExecutionSession(container, "18")

        async def scenario():
            await session.exec(["npm", "ci"])
            await session.exec(["npm", "run", "build"])

        asyncio.run(scenario())

        candidate = container.with_exec.return_value
        candidate.with_exec.assert_called_once_with(["npm", "run", "build"])

    def test_non_zero_exit_is_returned(self, monkeypatch):
        monkeypatch.setattr(dagger, "ExecError", FakeExecError)
        container = _container(error=FakeExecError(1, stdout="partial\n", stderr="npm ERR!\n"))
        session = DaggerExecutionSession(container, "18")

        output = asyncio.run(session.exec(["npm", "ci"]))

        assert output.exit_code == 1
        assert output.stdout == "partial\n"
        assert output.stderr == "npm ERR!\n"

    def test_engine_error_raises_provision_error(self):
        container = _container(error=dagger.DaggerError("engine connection lost"))
        session = DaggerExecutionSession(container, "20")

        with pytest.raises(ProvisionError) as exc_info:
            asyncio.run(session.exec(["npm", "ci"]))

        assert exc_info.value.runtime_version == "20"
