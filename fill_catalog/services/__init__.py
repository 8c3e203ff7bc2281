"""Catalog query services and the environment-driven factory."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from fill_catalog.config import CatalogSettings
from fill_catalog.logging_config import configure_logging
from fill_catalog.storage import (InMemoryCatalog, build_url_provider_from_env,
                                  load_snapshot)

from .artifacts import ArtifactResolver, UrlCache
from .catalog import CatalogService
from .listing import BuildListing, ListingEngine, VersionListing
from .support import SupportResolver, resolve_support

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "ArtifactResolver",
    "BuildListing",
    "CatalogService",
    "ListingEngine",
    "SupportResolver",
    "UrlCache",
    "VersionListing",
    "build_catalog_service",
    "build_catalog_service_from_env",
    "resolve_support",
]


def build_catalog_service(
    catalog: InMemoryCatalog,
    resolver: ArtifactResolver,
    *,
    support: Optional[SupportResolver] = None,
) -> CatalogService:
    """Wire a service over the repositories of an in-memory catalog."""
    return CatalogService(
        catalog.projects,
        catalog.families,
        catalog.versions,
        catalog.builds,
        resolver,
        support=support,
    )


def build_catalog_service_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> CatalogService:
    """Factory used by transport layers; mirrors the handler bootstrap."""
    configure_logging()
    settings = CatalogSettings.from_env(environ)
    if settings.snapshot_path is not None:
        catalog = load_snapshot(
            settings.snapshot_path, path_template=settings.path_template
        )
    else:
        _LOGGER.warning("FILL_SNAPSHOT_PATH not set; serving an empty catalog")
        catalog = InMemoryCatalog()
    cache = (
        UrlCache(settings.url_cache_ttl, max_entries=settings.url_cache_size)
        if settings.url_cache_ttl > 0
        else None
    )
    resolver = ArtifactResolver(
        build_url_provider_from_env(settings),
        expires_in=settings.url_expires_in,
        cache=cache,
    )
    return build_catalog_service(catalog, resolver)
