"""Configuration objects for app-catalog."""

from dataclasses import dataclass
from pathlib import Path

from mashumaro import DataClassDictMixin
from mashumaro.codecs.yaml import yaml_decode

from .exceptions import InvalidArgumentError

APP_STORE_REPO_ID = "repo-helm"
APP_STORE_SUFFIX = "-store"
AUDIT_MAX_LEN = 20
MESSAGE_MAX_LEN = 512


@dataclass
class CatalogConfig(DataClassDictMixin):
    """Configuration shared by the cache, lifecycle and release components."""

    app_store_repo_id: str = APP_STORE_REPO_ID
    """Id of the built-in store repository whose content lives in the catalog store."""

    app_store_suffix: str = APP_STORE_SUFFIX
    """Suffix appended to an application id to name its app-store copy."""

    audit_max_len: int = AUDIT_MAX_LEN
    """Maximum number of entries kept in a version's audit history."""

    message_max_len: int = MESSAGE_MAX_LEN
    """Descriptions and audit messages are shortened to this length."""

    validate_transitions: bool = False
    """Reject lifecycle actions whose precondition state does not match."""

    helm_binary: str = "helm"
    """Command used to query installed releases."""

    installer_timeout: float = 60.0
    """Seconds before an installer command is abandoned."""

    def __post_init__(self) -> None:
        if self.audit_max_len < 1:
            raise InvalidArgumentError(
                f"audit_max_len must be positive, was {self.audit_max_len}"
            )

    def is_app_store_repo(self, repo_id: str | None) -> bool:
        """Return True if the repo id refers to the built-in store."""
        return not repo_id or repo_id == self.app_store_repo_id

    def app_store_id(self, app_id: str) -> str:
        """Return the id of the app-store copy of an application."""
        return f"{app_id}{self.app_store_suffix}"

    def strip_app_store_suffix(self, app_id: str) -> str:
        """Return the canonical application id for an app-store id."""
        return app_id.removesuffix(self.app_store_suffix)

    @classmethod
    def parse_yaml(cls, content: str) -> "CatalogConfig":
        """Parse a serialized configuration."""
        return yaml_decode(content, cls)

    @classmethod
    def read(cls, path: Path) -> "CatalogConfig":
        """Read a configuration file."""
        return cls.parse_yaml(path.read_text())
