import sys
from contextlib import AsyncExitStack
from typing import Optional, Sequence, Any, TextIO

import dagger

from matrix_runner.builder.providers.base import EnvironmentProvider, ExecutionSession
from matrix_runner.common.dto.environment import Environment, EnvironmentOp
from matrix_runner.common.dto.pipeline import CommandOutput
from matrix_runner.common.exceptions.build_exceptions import ProvisionError
from matrix_runner.common.config.logging_config import get_logger


logger = get_logger(__name__)


class DaggerExecutionSession(ExecutionSession):
    def __init__(self, container: Any, runtime_version: str):
        self._container = container
        self._runtime_version = runtime_version

    async def exec(self, argv: Sequence[str]) -> CommandOutput:
        candidate = self._container.with_exec(list(argv))
        try:
            stdout = await candidate.stdout()
            stderr = await candidate.stderr()
        except dagger.ExecError as e:
            logger.debug(f"Command {argv[0]} exited with {e.exit_code}")
            return CommandOutput(
                exit_code=e.exit_code,
                stdout=e.stdout or "",
                stderr=e.stderr or "",
            )
        except dagger.DaggerError as e:
            raise ProvisionError(
                message=f"Engine failed while running {argv[0]}: {e}",
                runtime_version=self._runtime_version,
                cause=e,
            ) from e

        # later steps build on the successful container state
        self._container = candidate
        return CommandOutput(exit_code=0, stdout=stdout, stderr=stderr)


class DaggerEnvironmentProvider(EnvironmentProvider):
    name = "dagger"

    def __init__(
        self,
        log_output: Optional[TextIO] = None,
        client: Optional[Any] = None,
    ):
        self._config = dagger.Config(log_output=log_output or sys.stderr)
        self._client = client
        self._stack: Optional[AsyncExitStack] = None

    async def __aenter__(self) -> "DaggerEnvironmentProvider":
        if self._client is None:
            self._stack = AsyncExitStack()
            logger.info("Connecting to Dagger engine")
            self._client = await self._stack.enter_async_context(
                dagger.Connection(self._config)
            )
        return self

    async def __aexit__(self, *args) -> None:
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None
            self._client = None
            logger.info("Dagger engine connection closed")

    @property
    def client(self) -> Any:
        if self._client is None:
            raise ProvisionError("Dagger provider used outside of its connection context")
        return self._client

    async def resolve_image(self, image_ref: str) -> None:
        try:
            await self.client.container().from_(image_ref).sync()
        except dagger.DaggerError as e:
            raise ProvisionError(
                message=f"Cannot resolve base image {image_ref}: {e}",
                image_ref=image_ref,
                cause=e,
            ) from e

    async def open_session(self, environment: Environment) -> ExecutionSession:
        container = self._build_container(environment)
        return DaggerExecutionSession(container, environment.target.runtime_version)

    def _build_container(self, environment: Environment) -> Any:
        client = self.client
        container = client.container()

        for step in environment.steps:
            if step.op == EnvironmentOp.FROM_IMAGE:
                container = container.from_(step.value)
            elif step.op == EnvironmentOp.WITH_DIRECTORY:
                directory = client.host().directory(step.value, exclude=list(step.exclude))
                container = container.with_directory(step.path, directory)
            elif step.op == EnvironmentOp.WITH_WORKDIR:
                container = container.with_workdir(step.path)
            elif step.op == EnvironmentOp.WITH_MOUNTED_CACHE:
                container = container.with_mounted_cache(
                    step.path, client.cache_volume(step.value)
                )
            elif step.op == EnvironmentOp.WITH_ENV_VARIABLE:
                container = container.with_env_variable(step.name, step.value or "")

        return container
