"""Exceptions related to app-catalog.

Every exception carries a `kind` naming the error category so that a transport
layer can map it to a status code without inspecting the concrete class.
"""

__all__ = [
    "CatalogException",
    "NotFoundError",
    "AlreadyExistsError",
    "InvalidArgumentError",
    "ActionNotPermittedError",
    "ConflictError",
    "UnavailableError",
    "InternalError",
    "SnapshotDecodeError",
    "ChartParseError",
    "CommandException",
    "HelmException",
]


class CatalogException(Exception):
    """Generic base exception used for this library."""

    kind = "Internal"


class NotFoundError(CatalogException):
    """Raised when an entity is absent from both the cache and the store."""

    kind = "NotFound"


class AlreadyExistsError(CatalogException):
    """Raised when creating an entity whose name or id is already taken."""

    kind = "AlreadyExists"


class InvalidArgumentError(CatalogException):
    """Raised when a request is malformed or names an unknown action."""

    kind = "InvalidArgument"


class ActionNotPermittedError(InvalidArgumentError):
    """Raised when an operation is not allowed in the entity's current state."""

    def __init__(self, entity_id: str, message: str) -> None:
        super().__init__(f"{entity_id}: {message}")
        self.entity_id = entity_id
        self.message = message


class ConflictError(CatalogException):
    """Raised when the store detects a concurrent modification."""

    kind = "Conflict"


class UnavailableError(CatalogException):
    """Raised on a store, blob or subprocess transport failure."""

    kind = "Unavailable"


class InternalError(CatalogException):
    """Raised when stored content can't be decoded."""

    kind = "Internal"


class SnapshotDecodeError(InternalError):
    """Raised when a Repo index snapshot is malformed."""

    def __init__(self, repo_id: str, message: str) -> None:
        super().__init__(f"Repo {repo_id} index snapshot invalid: {message}")
        self.repo_id = repo_id


class ChartParseError(InternalError):
    """Raised when a chart package is malformed."""


class CommandException(UnavailableError):
    """Raised when there is a failure running a subcommand."""


class HelmException(CommandException):
    """Raised when there is a failure running a helm command."""
