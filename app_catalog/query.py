"""Query conditions and paged results shared by the list operations."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

__all__ = [
    "Conditions",
    "PageableResponse",
    "paginate",
]

T = TypeVar("T")

APP_ID = "app_id"
VERSION_ID = "version_id"
REPO_ID = "repo_id"
KEYWORD = "keyword"
STATUS = "status"

DEFAULT_LIMIT = 10


@dataclass
class Conditions:
    """Exact match conditions parsed from a list request."""

    match: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str:
        """Return the condition value, or an empty string if unset."""
        return self.match.get(key, "")

    @property
    def keyword(self) -> str:
        return self.get(KEYWORD).lower()

    @property
    def states(self) -> list[str]:
        """The `|` separated list of accepted states, empty for any state."""
        if not (status := self.get(STATUS)):
            return []
        return [state for state in status.split("|") if state]


@dataclass
class PageableResponse(Generic[T]):
    """A page of results along with the total number of matches."""

    items: list[T]
    total_count: int


def paginate(items: Sequence[T], limit: int, offset: int) -> list[T]:
    """Return the page of items starting at offset."""
    if offset < 0 or limit < 0:
        return []
    return list(items[offset : offset + limit])
