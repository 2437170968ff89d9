from enum import Enum
from typing import Final


class EntryState(str, Enum):
    PENDING = "pending"
    PROVISIONING = "provisioning"
    CACHE_BINDING = "cache_binding"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (EntryState.SUCCEEDED, EntryState.FAILED)


class PipelineStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailPolicy(str, Enum):
    FAIL_FAST = "fail_fast"
    FAIL_AT_END = "fail_at_end"


class SinkKind(str, Enum):
    BUFFER = "buffer"
    FILE = "file"


class CachePurpose(str, Enum):
    NPM = "npm"
    NODE_MODULES = "node-modules"
    TURBO = "turbo"


class ReportFormat(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"


DEFAULT_NODE_VERSIONS: Final[tuple] = ("18", "20")
DEFAULT_BASE_IMAGE_TEMPLATE: Final[str] = "node:{version}"
DEFAULT_SOURCE_MOUNT_PATH: Final[str] = "/src"
DEFAULT_CACHE_NAMESPACE: Final[str] = "cache"
DEFAULT_NPM_MAX_SOCKETS: Final[int] = 1
DEFAULT_MAX_PARALLEL: Final[int] = 4

NPM_CACHE_PATH: Final[str] = "/root/.npm"
NODE_MODULES_SUBPATH: Final[str] = "node_modules"
TURBO_CACHE_SUBPATH: Final[str] = ".turbo/cache"

# Values substituted by a later deployment stage.
BUILD_ENV_PLACEHOLDERS: Final[dict] = {
    "MEDPLUM_BASE_URL": "__MEDPLUM_BASE_URL__",
    "MEDPLUM_CLIENT_ID": "__MEDPLUM_CLIENT_ID__",
    "MEDPLUM_REGISTER_ENABLED": "__MEDPLUM_REGISTER_ENABLED__",
    "GOOGLE_CLIENT_ID": "__GOOGLE_CLIENT_ID__",
    "RECAPTCHA_SITE_KEY": "__RECAPTCHA_SITE_KEY__",
}

VERSION_SELECTOR_PATTERN: Final[str] = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"

# cache purposes and namespaces share the selector alphabet, which never
# contains the key separator
CACHE_NAME_PATTERN: Final[str] = VERSION_SELECTOR_PATTERN
CACHE_KEY_SEPARATOR: Final[str] = ":"

STDERR_EXCERPT_CHARS: Final[int] = 4000
