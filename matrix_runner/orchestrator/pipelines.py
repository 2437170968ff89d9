"""Pipeline factories.

A pipeline factory maps a :class:`BuildTarget` to the
:class:`PipelineDefinition` run for it. ``node_ci_pipeline`` reproduces the
Node build job: print tool versions, install with a socket cap, build, lint.
"""
from typing import Callable, Dict, Mapping, Optional

from matrix_runner.common.dto.environment import BuildTarget, CacheSpec
from matrix_runner.common.dto.pipeline import CommandStep, PipelineDefinition
from matrix_runner.common.config.constants import (
    CachePurpose,
    BUILD_ENV_PLACEHOLDERS,
    DEFAULT_NPM_MAX_SOCKETS,
    DEFAULT_SOURCE_MOUNT_PATH,
    NPM_CACHE_PATH,
    NODE_MODULES_SUBPATH,
    TURBO_CACHE_SUBPATH,
)
from matrix_runner.common.config.settings import Settings


PipelineFactory = Callable[[BuildTarget], PipelineDefinition]


def node_cache_specs(source_mount_path: str = DEFAULT_SOURCE_MOUNT_PATH):
    root = source_mount_path.rstrip("/")
    return (
        CacheSpec(purpose=CachePurpose.NPM.value, mount_path=NPM_CACHE_PATH),
        CacheSpec(
            purpose=CachePurpose.NODE_MODULES.value,
            mount_path=f"{root}/{NODE_MODULES_SUBPATH}",
        ),
        CacheSpec(
            purpose=CachePurpose.TURBO.value,
            mount_path=f"{root}/{TURBO_CACHE_SUBPATH}",
        ),
    )


def node_ci_steps(run_lint: bool = True, npm_max_sockets: int = DEFAULT_NPM_MAX_SOCKETS):
    steps = [
        CommandStep.shell("echo node version: $(node --version)", name="node version"),
        CommandStep.shell("echo npm version: $(npm --version)", name="npm version"),
        CommandStep(argv=("npm", "ci", "--maxsockets", str(npm_max_sockets)), name="install"),
        CommandStep(argv=("npm", "run", "build"), name="build"),
    ]
    if run_lint:
        steps.append(CommandStep(argv=("npm", "run", "lint"), name="lint"))
    return tuple(steps)


def node_ci_pipeline(
    run_lint: bool = True,
    npm_max_sockets: int = DEFAULT_NPM_MAX_SOCKETS,
    env_variables: Optional[Mapping[str, str]] = None,
    source_mount_path: str = DEFAULT_SOURCE_MOUNT_PATH,
    redirect_output: bool = False,
) -> PipelineFactory:
    variables: Dict[str, str] = dict(
        BUILD_ENV_PLACEHOLDERS if env_variables is None else env_variables
    )
    definition = PipelineDefinition(
        steps=node_ci_steps(run_lint=run_lint, npm_max_sockets=npm_max_sockets),
        cache_specs=node_cache_specs(source_mount_path),
        env_variables=variables,
    )
    if redirect_output:
        definition = definition.with_output_redirection()

    def factory(target: BuildTarget) -> PipelineDefinition:
        return definition

    return factory


def node_ci_pipeline_from_settings(
    settings: Settings,
    redirect_output: bool = False,
) -> PipelineFactory:
    return node_ci_pipeline(
        run_lint=settings.run_lint,
        npm_max_sockets=settings.npm_max_sockets,
        env_variables=settings.build_env_variables(),
        source_mount_path=settings.source_mount_path,
        redirect_output=redirect_output,
    )
