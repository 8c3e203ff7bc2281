"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Central configuration for the catalog service.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from fill_catalog.utils.env import load_dotenv, read_int, truthy

# Storage defaults ----------------------------------------------------------

DEFAULT_STORAGE_DIR = "/tmp/fill-artifacts"
"""Local directory used when no bucket or base URL is configured."""

DEFAULT_PATH_TEMPLATE = (
    "{project_name}/{version_name}/{build_number}/{download_filename}"
)
"""Storage key layout used when seeding downloads."""

DEFAULT_URL_EXPIRES_IN = 900
"""Lifetime requested for presigned URLs, in seconds."""

# URL cache defaults --------------------------------------------------------

DEFAULT_URL_CACHE_TTL = 60
"""Upper bound on how long a resolved URL is reused; 0 disables caching."""

DEFAULT_URL_CACHE_SIZE = 1024


@dataclass(frozen=True)
class CatalogSettings:
    """Runtime settings read from ``FILL_*`` environment variables."""

    storage_bucket: Optional[str] = None
    storage_prefix: str = ""
    storage_region: Optional[str] = None
    storage_endpoint: Optional[str] = None
    storage_base_url: Optional[str] = None
    storage_verify: bool = False
    storage_dir: Path = Path(DEFAULT_STORAGE_DIR)
    path_template: str = DEFAULT_PATH_TEMPLATE
    url_expires_in: int = DEFAULT_URL_EXPIRES_IN
    url_cache_ttl: int = DEFAULT_URL_CACHE_TTL
    url_cache_size: int = DEFAULT_URL_CACHE_SIZE
    snapshot_path: Optional[Path] = None

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "CatalogSettings":
        """Read settings; ``.env`` is consulted only for the real environment."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        def _text(name: str) -> Optional[str]:
            value = environ.get(name, "").strip()
            return value or None

        region = (
            _text("FILL_STORAGE_REGION")
            or _text("AWS_REGION")
            or _text("AWS_DEFAULT_REGION")
        )
        snapshot = _text("FILL_SNAPSHOT_PATH")
        return cls(
            storage_bucket=_text("FILL_STORAGE_BUCKET"),
            storage_prefix=_text("FILL_STORAGE_PREFIX") or "",
            storage_region=region,
            storage_endpoint=_text("FILL_STORAGE_ENDPOINT"),
            storage_base_url=_text("FILL_STORAGE_BASE_URL"),
            storage_verify=truthy(environ.get("FILL_STORAGE_VERIFY")),
            storage_dir=Path(_text("FILL_STORAGE_DIR") or DEFAULT_STORAGE_DIR),
            path_template=(
                _text("FILL_STORAGE_PATH_TEMPLATE") or DEFAULT_PATH_TEMPLATE
            ),
            url_expires_in=read_int(
                environ, "FILL_URL_EXPIRES_IN", DEFAULT_URL_EXPIRES_IN,
                minimum=1,
            ),
            url_cache_ttl=read_int(
                environ, "FILL_URL_CACHE_TTL", DEFAULT_URL_CACHE_TTL
            ),
            url_cache_size=read_int(
                environ, "FILL_URL_CACHE_SIZE", DEFAULT_URL_CACHE_SIZE,
                minimum=1,
            ),
            snapshot_path=Path(snapshot) if snapshot else None,
        )
