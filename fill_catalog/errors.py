"""Error taxonomy for catalog queries."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for query-side failures."""


class InvalidFilter(CatalogError, ValueError):
    """Raised when filter or pagination input is malformed."""


class ArtifactUnavailable(CatalogError):
    """Raised when a download's storage key cannot be resolved to a URL."""

    def __init__(self, storage_key: str, reason: str) -> None:
        super().__init__(f"Artifact '{storage_key}' unavailable: {reason}")
        self.storage_key = storage_key
        self.reason = reason


class CollaboratorFailure(CatalogError):
    """Raised when a repository or storage collaborator fails unexpectedly."""

    def __init__(self, collaborator: str, operation: str, message: str) -> None:
        super().__init__(f"{collaborator}.{operation} failed: {message}")
        self.collaborator = collaborator
        self.operation = operation
