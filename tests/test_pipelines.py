from matrix_runner.common.config.constants import BUILD_ENV_PLACEHOLDERS
from matrix_runner.common.config.settings import Settings
from matrix_runner.common.dto.environment import BuildTarget
from matrix_runner.orchestrator.pipelines import (
    node_cache_specs,
    node_ci_pipeline,
    node_ci_pipeline_from_settings,
    node_ci_steps,
)


TARGET = BuildTarget(runtime_version="18", base_image="node:18")


class TestNodePipeline:

    def test_step_order(self):
        names = [step.name for step in node_ci_steps()]

        assert names == ["node version", "npm version", "install", "build", "lint"]

    def test_lint_can_be_skipped(self):
        assert "lint" not in [step.name for step in node_ci_steps(run_lint=False)]

    def test_install_caps_sockets(self):
        install = node_ci_steps(npm_max_sockets=3)[2]

        assert install.argv == ("npm", "ci", "--maxsockets", "3")

    def test_cache_specs_follow_source_mount(self):
        mounts = {spec.purpose: spec.mount_path for spec in node_cache_specs("/workspace/")}

        assert mounts == {
            "npm": "/root/.npm",
            "node-modules": "/workspace/node_modules",
            "turbo": "/workspace/.turbo/cache",
        }

    def test_placeholders_are_default_env(self):
        definition = node_ci_pipeline()(TARGET)

        assert definition.env_variables == BUILD_ENV_PLACEHOLDERS
        assert not definition.uses_file_sinks

    def test_env_mapping_is_passed_through(self):
        definition = node_ci_pipeline(env_variables={"MEDPLUM_BASE_URL": "https://api.example.org"})(TARGET)

        assert definition.env_variables == {"MEDPLUM_BASE_URL": "https://api.example.org"}

    def test_redirected_output_paths(self):
        definition = node_ci_pipeline(redirect_output=True)(TARGET)

        first = definition.steps[0]
        assert definition.uses_file_sinks
        assert first.stdout_sink.path == "steps/00.stdout.log"
        assert first.stderr_sink.path == "steps/00.stderr.log"

    def test_from_settings(self):
        settings = Settings(_env_file=None, run_lint=False, medplum_client_id="client-1")

        definition = node_ci_pipeline_from_settings(settings)(TARGET)

        assert len(definition.steps) == 4
        assert definition.env_variables["MEDPLUM_CLIENT_ID"] == "client-1"
