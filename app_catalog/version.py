"""Semantic version parsing and ordering of application versions."""

from collections.abc import Iterable
import datetime
from typing import Any

from packaging.version import InvalidVersion, Version

from .manifest import ApplicationVersion

__all__ = [
    "parse_version",
    "version_sort_key",
    "sort_versions",
    "parse_version_name",
]


def parse_version(value: str) -> Version | None:
    """Parse a version string, returning None on failure."""
    try:
        return Version(value)
    except InvalidVersion:
        if value.startswith("v"):
            try:
                return Version(value[1:])
            except InvalidVersion:
                pass
    return None


def version_sort_key(version: ApplicationVersion) -> tuple[Any, ...]:
    """Sort key ordering versions numerically, then by creation time.

    Versions that can't be parsed sort before all parseable versions.
    """
    created: datetime.datetime = version.created
    if (parsed := parse_version(version.version)) is None:
        return (0, version.version, created)
    return (1, parsed, created)


def sort_versions(
    versions: Iterable[ApplicationVersion], reverse: bool = False
) -> list[ApplicationVersion]:
    """Return the versions in ascending semantic version order."""
    return sorted(versions, key=version_sort_key, reverse=reverse)


def parse_version_name(name: str) -> tuple[str, str]:
    """Split a version name of the form `1.0.0 [2.3.4]` into its parts."""
    name = name.strip()
    if not name:
        return "", ""
    version, sep, rest = name.partition("[")
    if not sep:
        return version, ""
    return version.strip(), rest.strip().rstrip("]").strip()
