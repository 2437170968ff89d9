"""
test_environment: environment plans and provisioning.
"""
import asyncio

import pytest

from matrix_runner.builder.environment_manager import EnvironmentProvisioner, render_image_ref
from matrix_runner.common.dto.environment import BuildTarget, EnvironmentOp
from matrix_runner.common.exceptions.base_exceptions import ErrorCode
from matrix_runner.common.exceptions.build_exceptions import ProvisionError


class TestImageReference:

    @pytest.mark.parametrize(
        "template, version, expected",
        [
            ("node:{version}", "18", "node:18"),
            ("node:{version}-alpine", "20", "node:20-alpine"),
            ("node", "18", "node:18"),
            ("localhost:5000/node", "18", "localhost:5000/node:18"),
            ("node:lts", "18", "node:lts"),
        ],
    )
    def test_render_image_ref(self, template, version, expected):
        assert render_image_ref(template, version) == expected


class TestEnvironmentPlan:

    def test_base_plan_orders_image_directory_workdir(self, provisioner, source_dir):
        environment = provisioner.base("18")

        assert [step.op for step in environment.steps] == [
            EnvironmentOp.FROM_IMAGE,
            EnvironmentOp.WITH_DIRECTORY,
            EnvironmentOp.WITH_WORKDIR,
        ]
        assert environment.image_ref == "node:18"
        assert environment.workdir == "/src"
        assert environment.mounts == {"/src": f"dir:{source_dir}"}

    def test_base_defaults_to_latest(self, provisioner):
        assert provisioner.base().image_ref == "node:latest"

    def test_builder_returns_new_values(self, provisioner):
        base = provisioner.base("18")
        extended = base.with_env_variable("CI", "true")

        assert base.env_variables == {}
        assert extended.env_variables == {"CI": "true"}
        assert extended.steps[:3] == base.steps

    def test_later_env_value_wins(self, provisioner):
        environment = provisioner.base("18").with_env_variables({"A": "1"}).with_env_variable("A", "2")

        assert environment.env_variables == {"A": "2"}

    def test_describe(self, provisioner, source_dir):
        environment = provisioner.base("20").with_env_variable("CI", "1")

        assert environment.describe().splitlines() == [
            "FROM node:20",
            f"DIRECTORY {source_dir} -> /src",
            "WORKDIR /src",
            "ENV CI=1",
        ]

    def test_source_exclusions_are_kept(self, provider, source_dir):
        provisioner = EnvironmentProvisioner(provider, source_dir, source_exclude=["node_modules"])

        directory_step = provisioner.base("18").steps[1]

        assert directory_step.exclude == ("node_modules",)


class TestProvisioning:

    def test_provision_resolves_image(self, provisioner, provider):
        environment = asyncio.run(provisioner.provision("node:{version}", "18"))

        assert provider.resolved_images == ["node:18"]
        assert environment.target == BuildTarget(runtime_version="18", base_image="node:18")

    def test_unresolvable_image_raises_with_version(self, provisioner, provider):
        provider.missing_images.add("node:99")

        with pytest.raises(ProvisionError) as exc_info:
            asyncio.run(provisioner.provision("node:{version}", "99"))

        assert exc_info.value.runtime_version == "99"
        assert exc_info.value.error_code == ErrorCode.BUILD_PROVISION_ERROR
        assert exc_info.value.details["image_ref"] == "node:99"

    def test_missing_source_directory_raises(self, provider, tmp_path):
        provisioner = EnvironmentProvisioner(provider, tmp_path / "missing")

        with pytest.raises(ProvisionError):
            asyncio.run(provisioner.provision("node:{version}", "18"))

        assert provider.resolved_images == []

    @pytest.mark.parametrize("version", ["", "18 lts", "../18", "-18"])
    def test_invalid_version_selector_rejected(self, provisioner, version):
        with pytest.raises(ProvisionError):
            provisioner.make_target(version)

    def test_verification_can_be_skipped(self, provider, source_dir):
        provider.missing_images.add("node:18")
        provisioner = EnvironmentProvisioner(provider, source_dir, verify_images=False)

        environment = asyncio.run(provisioner.provision("node:{version}", "18"))

        assert environment.image_ref == "node:18"


class TestBuildTargetLabel:

    def test_valid_selector_is_its_own_label(self):
        assert BuildTarget(runtime_version="18.19.0", base_image="node:18.19.0").label == "18.19.0"

    def test_label_never_escapes_output_directory(self):
        label = BuildTarget(runtime_version="../etc", base_image="node").label

        assert "/" not in label
        assert not label.startswith(".")
