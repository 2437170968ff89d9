import re
from functools import lru_cache
from typing import Optional, List, Dict

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from matrix_runner.common.config.constants import (
    FailPolicy,
    BUILD_ENV_PLACEHOLDERS,
    CACHE_NAME_PATTERN,
    DEFAULT_NODE_VERSIONS,
    DEFAULT_BASE_IMAGE_TEMPLATE,
    DEFAULT_SOURCE_MOUNT_PATH,
    DEFAULT_CACHE_NAMESPACE,
    DEFAULT_NPM_MAX_SOCKETS,
    DEFAULT_MAX_PARALLEL,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MATRIX_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = Field(default=False, description="DEBUG logging plus console span export")
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False)
    log_dir: Optional[str] = Field(default=None)

    node_versions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_NODE_VERSIONS),
        description="Runtime versions built by default"
    )
    base_image_template: str = Field(
        default=DEFAULT_BASE_IMAGE_TEMPLATE,
        description="Base image reference with a {version} placeholder"
    )
    source_mount_path: str = Field(default=DEFAULT_SOURCE_MOUNT_PATH)
    source_exclude: List[str] = Field(
        default_factory=lambda: ["node_modules", ".turbo", ".git"]
    )
    cache_namespace: str = Field(default=DEFAULT_CACHE_NAMESPACE)

    fail_policy: FailPolicy = Field(default=FailPolicy.FAIL_AT_END)
    max_parallel: int = Field(default=DEFAULT_MAX_PARALLEL, ge=1, le=64)
    run_lint: bool = Field(default=True)
    npm_max_sockets: int = Field(default=DEFAULT_NPM_MAX_SOCKETS, ge=1)

    output_dir: Optional[str] = Field(default=None)

    tracing_enabled: bool = Field(default=False)
    tracing_service_name: str = Field(default="matrix-runner")

    medplum_base_url: str = Field(default=BUILD_ENV_PLACEHOLDERS["MEDPLUM_BASE_URL"])
    medplum_client_id: str = Field(default=BUILD_ENV_PLACEHOLDERS["MEDPLUM_CLIENT_ID"])
    medplum_register_enabled: str = Field(
        default=BUILD_ENV_PLACEHOLDERS["MEDPLUM_REGISTER_ENABLED"]
    )
    google_client_id: str = Field(default=BUILD_ENV_PLACEHOLDERS["GOOGLE_CLIENT_ID"])
    recaptcha_site_key: str = Field(default=BUILD_ENV_PLACEHOLDERS["RECAPTCHA_SITE_KEY"])

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("base_image_template")
    @classmethod
    def validate_base_image_template(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Base image template must not be empty")
        return v.strip()

    @field_validator("cache_namespace")
    @classmethod
    def validate_cache_namespace(cls, v: str) -> str:
        if not re.match(CACHE_NAME_PATTERN, v):
            raise ValueError(f"Cache namespace must match {CACHE_NAME_PATTERN}: {v!r}")
        return v

    @field_validator("source_mount_path")
    @classmethod
    def validate_source_mount_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Source mount path must be absolute: {v}")
        return v.rstrip("/") or "/"

    def build_env_variables(self) -> Dict[str, str]:
        return {
            "MEDPLUM_BASE_URL": self.medplum_base_url,
            "MEDPLUM_CLIENT_ID": self.medplum_client_id,
            "MEDPLUM_REGISTER_ENABLED": self.medplum_register_enabled,
            "GOOGLE_CLIENT_ID": self.google_client_id,
            "RECAPTCHA_SITE_KEY": self.recaptcha_site_key,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
