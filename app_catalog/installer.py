"""Queries against the installer that deploys releases onto the cluster.

Installing, upgrading and uninstalling the workloads of a release is done by an
external controller reacting to changes of Release records. This module only
reads back what the installer rendered for a release, which is used to enrich
release descriptions.

```python
from app_catalog.installer import HelmInstaller, parse_manifest

installer = HelmInstaller()
resources = parse_manifest(await installer.manifest("default", "my-wp"))
for resource in resources:
    print(f"Found object {resource['apiVersion']} {resource['kind']}")
```
"""

from abc import ABC, abstractmethod
import logging
from pathlib import Path
from typing import Any

import yaml

from . import command
from .config import CatalogConfig
from .exceptions import HelmException, InternalError

__all__ = [
    "Installer",
    "HelmInstaller",
    "parse_manifest",
]

_LOGGER = logging.getLogger(__name__)

HELM_BIN = "helm"


class Installer(ABC):
    """Reads the rendered state of installed releases."""

    @abstractmethod
    async def manifest(self, namespace: str, release_name: str) -> str:
        """Return the rendered manifest of the release as multi-document YAML."""


class HelmInstaller(Installer):
    """Installer backed by the helm command line tool."""

    def __init__(
        self,
        helm_binary: str = HELM_BIN,
        kubeconfig: Path | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize HelmInstaller.

        Args:
            helm_binary: The helm command to run.
            kubeconfig: Optional kubeconfig of the cluster the releases run in.
            timeout: Seconds before a helm command is abandoned.
        """
        self._helm_binary = helm_binary
        self._kubeconfig = kubeconfig
        self._timeout = timeout

    @classmethod
    def from_config(
        cls, config: CatalogConfig, kubeconfig: Path | None = None
    ) -> "HelmInstaller":
        """Create an installer using the configured helm command and timeout."""
        return cls(
            helm_binary=config.helm_binary,
            kubeconfig=kubeconfig,
            timeout=config.installer_timeout,
        )

    def _flags(self, namespace: str) -> list[str]:
        flags = ["--namespace", namespace]
        if self._kubeconfig:
            flags.extend(["--kubeconfig", str(self._kubeconfig)])
        return flags

    async def manifest(self, namespace: str, release_name: str) -> str:
        """Return the manifest helm rendered for the release."""
        args = [
            self._helm_binary,
            "get",
            "manifest",
            release_name,
            *self._flags(namespace),
        ]
        return await command.run(
            command.Command(args, exc=HelmException, timeout=self._timeout)
        )


def parse_manifest(content: str) -> list[dict[str, Any]]:
    """Parse a multi-document manifest into its resource objects.

    Empty documents are skipped.
    """
    try:
        docs = list(yaml.safe_load_all(content))
    except yaml.YAMLError as err:
        raise InternalError(f"Unable to parse release manifest: {err}") from err
    resources = []
    for doc in docs:
        if not doc:
            continue
        if not isinstance(doc, dict) or "kind" not in doc:
            _LOGGER.debug("Skipping manifest document without kind: %s", doc)
            continue
        resources.append(doc)
    return resources
