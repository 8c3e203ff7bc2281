"""Common repository errors used across storage adapters."""

from __future__ import annotations


class RepositoryError(RuntimeError):
    """Base class for storage layer failures."""


class ValidationError(RepositoryError):
    """Raised when stored data violates catalog invariants."""


class SnapshotError(RepositoryError):
    """Raised when a catalog snapshot cannot be read."""
