"""Translate unexpected collaborator faults into CollaboratorFailure."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fill_catalog.errors import CatalogError, CollaboratorFailure

_LOGGER = logging.getLogger(__name__)


@contextmanager
def collaborator_call(collaborator: str, operation: str) -> Iterator[None]:
    """
    Wrap a repository or storage call.

    Catalog errors pass through untouched and so does anything that is not an
    ``Exception`` (KeyboardInterrupt, cancellation), which is never caught.
    """
    try:
        yield
    except CatalogError:
        raise
    except Exception as exc:  # noqa: BLE001 - re-raised as CollaboratorFailure
        _LOGGER.exception("%s.%s failed: %s", collaborator, operation, exc)
        raise CollaboratorFailure(collaborator, operation, str(exc)) from exc
