"""Chart package parsing.

A chart package is a gzipped tarball with a single top level directory named
after the chart which holds a `Chart.yaml` describing it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import io
import logging
import tarfile
from typing import Any

import yaml

from .exceptions import ChartParseError

__all__ = [
    "ChartMetadata",
    "ChartParser",
    "TarballChartParser",
]

_LOGGER = logging.getLogger(__name__)

CHART_FILE = "Chart.yaml"


@dataclass
class ChartMetadata:
    """Version metadata read from a chart package."""

    name: str
    version: str
    app_version: str = ""
    description: str = ""
    icon: str = ""
    home: str = ""
    keywords: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ChartMetadata":
        """Parse the contents of a Chart.yaml file."""
        if not isinstance(doc, dict):
            raise ChartParseError(f"invalid chart ({CHART_FILE}): not a mapping")
        if not (name := doc.get("name")):
            raise ChartParseError(
                f"invalid chart ({CHART_FILE}): name must not be empty"
            )
        if not (version := doc.get("version")):
            raise ChartParseError(
                f"invalid chart ({CHART_FILE}): version must not be empty"
            )
        return cls(
            name=str(name),
            version=str(version),
            app_version=str(doc.get("appVersion") or ""),
            description=doc.get("description") or "",
            icon=doc.get("icon") or "",
            home=doc.get("home") or "",
            keywords=list(doc.get("keywords") or []),
            sources=list(doc.get("sources") or []),
        )


class ChartParser(ABC):
    """Reads version metadata and files from chart packages."""

    @abstractmethod
    def parse(self, package: bytes) -> ChartMetadata:
        """Return the metadata of the chart package.

        Raises:
            ChartParseError: If the package is malformed.
        """

    @abstractmethod
    def files(self, package: bytes) -> dict[str, bytes]:
        """Return the regular files of the package keyed by path in the chart."""


class TarballChartParser(ChartParser):
    """Parser for gzipped tarball chart packages."""

    def _members(self, package: bytes) -> dict[str, bytes]:
        if not package:
            raise ChartParseError("no files in chart archive")
        files: dict[str, bytes] = {}
        try:
            with tarfile.open(fileobj=io.BytesIO(package), mode="r:gz") as archive:
                for member in archive:
                    if not member.isfile():
                        _LOGGER.debug("Skipping non-file member %s", member.name)
                        continue
                    if (extracted := archive.extractfile(member)) is None:
                        continue
                    files[member.name] = extracted.read()
        except (tarfile.TarError, OSError, EOFError) as err:
            raise ChartParseError(f"failed to load chart archive: {err}") from err
        if not files:
            raise ChartParseError("no files in chart archive")
        return files

    def _chart_root(self, files: dict[str, bytes]) -> str:
        roots = {path.split("/", 1)[0] for path in files if "/" in path}
        for root in sorted(roots):
            if f"{root}/{CHART_FILE}" in files:
                return root
        raise ChartParseError(f"chart metadata ({CHART_FILE}) missing")

    def parse(self, package: bytes) -> ChartMetadata:
        files = self._members(package)
        root = self._chart_root(files)
        try:
            doc = yaml.safe_load(files[f"{root}/{CHART_FILE}"])
        except yaml.YAMLError as err:
            raise ChartParseError(f"failed to parse {CHART_FILE}: {err}") from err
        return ChartMetadata.parse_doc(doc)

    def files(self, package: bytes) -> dict[str, bytes]:
        files = self._members(package)
        root = self._chart_root(files)
        prefix = f"{root}/"
        return {
            path.removeprefix(prefix): content
            for path, content in files.items()
            if path.startswith(prefix)
        }
