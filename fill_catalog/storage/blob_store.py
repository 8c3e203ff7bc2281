"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Storage collaborators that turn opaque storage keys into download URLs.
"""

from __future__ import annotations

import logging
import string
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import quote, urljoin

import requests
from botocore.config import Config

from fill_catalog.config import CatalogSettings
from fill_catalog.models import Build, Download, Project, Version

from .errors import ValidationError

_LOGGER = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 900

PROJECT_NAME = "project_name"
VERSION_NAME = "version_name"
BUILD_NUMBER = "build_number"
DOWNLOAD_FILENAME = "download_filename"
DOWNLOAD_SHA256 = "download_sha256"
TEMPLATE_FIELDS = frozenset(
    {PROJECT_NAME, VERSION_NAME, BUILD_NUMBER, DOWNLOAD_FILENAME,
     DOWNLOAD_SHA256}
)


class BlobStoreError(RuntimeError):
    """Raised when binary storage fails."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a requested blob cannot be located."""


class BlobStoreUnavailableError(BlobStoreError):
    """Raised when blob storage is temporarily unavailable (e.g. S3 outage)."""


def _looks_like_transient_cloud_failure(exc: Exception) -> bool:
    """
    Classify boto/botocore failures that are worth surfacing as outages.
    :param exc: exception raised by the S3 client
    :returns: True for throttling, timeouts and connection failures
    """

    code = _error_code(exc)
    if code in {
        "SlowDown",
        "Throttling",
        "ThrottlingException",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "InternalError",
        "503",
    }:
        return True
    name = exc.__class__.__name__
    if name in {
        "EndpointConnectionError",
        "ConnectTimeoutError",
        "ReadTimeoutError",
        "ConnectionClosedError",
    }:
        return True
    message = str(exc).lower()
    return any(
        token in message
        for token in (
            "timed out",
            "timeout",
            "temporarily unavailable",
            "service unavailable",
            "connection reset",
            "connection aborted",
            "connection refused",
            "endpoint connection error",
        )
    )


def _error_code(exc: Exception) -> Optional[str]:
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    error = response.get("Error")
    if not isinstance(error, dict):
        return None
    code = error.get("Code")
    return code if isinstance(code, str) and code else None


def _is_not_found(exc: Exception) -> bool:
    return _error_code(exc) in {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class DownloadLink:
    """Download link metadata returned by URL providers."""

    storage_key: str
    url: str
    expires_in: Optional[int]


class DownloadUrlProvider(Protocol):
    """Interface implemented by concrete storage collaborators.

    ``generation`` changes whenever signing credentials or base paths rotate,
    which invalidates any URL cached under the previous generation.
    """

    generation: int

    def generate_download_url(
        self,
        storage_key: str,
        *,
        expires_in: int = DEFAULT_EXPIRES_IN,
    ) -> DownloadLink:
        """Return a fetchable URL (presigned for remote stores)."""


def render_storage_key(
    template: str,
    project: Project,
    version: Version,
    build: Build,
    download: Download,
) -> str:
    """
    Substitute catalog coordinates into a storage path template.
    :param template: e.g. ``{project_name}/{version_name}/{download_filename}``
    :param project:
    :param version:
    :param build:
    :param download:
    :returns: the storage key for ``download``
    """

    values = {
        PROJECT_NAME: project.name,
        VERSION_NAME: version.name,
        BUILD_NUMBER: str(build.number),
        DOWNLOAD_FILENAME: download.name,
        DOWNLOAD_SHA256: download.checksums.sha256,
    }
    fields = {
        name
        for _, name, _, _ in string.Formatter().parse(template)
        if name is not None
    }
    unknown = fields - TEMPLATE_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown storage template placeholder(s): {sorted(unknown)}"
        )
    return template.format_map(values)


class LocalDownloadUrlProvider:
    """Serve artifacts from a local directory (useful for dev/tests)."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self.generation = 0

    def generate_download_url(
        self, storage_key: str, *, expires_in: int = DEFAULT_EXPIRES_IN
    ) -> DownloadLink:
        """
        Return a ``file://`` URL for an existing local artifact.
        :param storage_key: path relative to the base directory
        :param expires_in: ignored; local URLs do not expire
        :returns: the link with ``expires_in`` set to None
        """

        destination = (self._base_dir / storage_key).resolve()
        base = self._base_dir.resolve()
        if base not in destination.parents and destination != base:
            raise BlobNotFoundError(
                f"Storage key '{storage_key}' escapes the storage directory"
            )
        if not destination.is_file():
            raise BlobNotFoundError(
                f"Artifact '{storage_key}' binary not found locally"
            )
        return DownloadLink(
            storage_key=storage_key,
            url=destination.as_uri(),
            expires_in=None,
        )


class TemplateDownloadUrlProvider:
    """
    Stable URLs under a public base URL, e.g. a CDN in front of a bucket.

    With ``verify`` enabled every resolution issues a HEAD request so missing
    objects surface as BlobNotFoundError instead of a dead link.
    """

    def __init__(
        self,
        base_url: str,
        *,
        verify: bool = False,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValidationError("base_url must be provided")
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._verify = verify
        self._timeout = timeout
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self.generation = 0

    def close(self) -> None:
        """Release the HTTP session if this provider created it."""
        if self._owns_session:
            self._session.close()

    def rebase(self, base_url: str) -> None:
        """Point at a new base URL and invalidate previously issued URLs."""
        with self._lock:
            self._base_url = (
                base_url if base_url.endswith("/") else f"{base_url}/"
            )
            self.generation += 1

    def generate_download_url(
        self, storage_key: str, *, expires_in: int = DEFAULT_EXPIRES_IN
    ) -> DownloadLink:
        url = urljoin(self._base_url, quote(storage_key.lstrip("/")))
        if self._verify:
            self._check_exists(storage_key, url)
        return DownloadLink(storage_key=storage_key, url=url, expires_in=None)

    def _check_exists(self, storage_key: str, url: str) -> None:
        try:
            response = self._session.head(
                url,
                timeout=self._timeout,
                allow_redirects=True,
                headers={"User-Agent": "fill-catalog (internal)"},
            )
        except requests.RequestException as exc:
            raise BlobStoreUnavailableError(
                f"HEAD check for '{storage_key}' failed: {exc}"
            ) from exc
        if response.status_code == 404:
            raise BlobNotFoundError(
                f"Artifact '{storage_key}' binary does not exist"
            )
        if response.status_code >= 500:
            raise BlobStoreUnavailableError(
                f"HEAD check for '{storage_key}' returned "
                f"{response.status_code}"
            )
        if response.status_code >= 400:
            raise BlobStoreError(
                f"HEAD check for '{storage_key}' returned "
                f"{response.status_code}"
            )


class S3DownloadUrlProvider:
    """Presigned GET URLs for objects in an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        *,
        object_prefix: str = "",
        client: Any | None = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> None:
        """
        __init__: Build the provider, creating a boto3 client if none is given.
        :param bucket: bucket holding the artifacts
        :param object_prefix: prefix prepended to every storage key
        :param client: pre-built S3 client (tests inject fakes here)
        :param region:
        :param endpoint_url: override for S3-compatible stores
        :returns:
        """

        if not bucket:
            raise ValidationError("bucket name must be provided")
        self._bucket = bucket
        self._object_prefix = object_prefix.strip("/")
        self._lock = threading.Lock()
        if client is None:
            client = _create_s3_client(
                region=region, endpoint_url=endpoint_url
            )
        self._s3 = client
        self.generation = 0

    def rotate_client(self, client: Any) -> None:
        """Swap in a client with fresh credentials."""
        with self._lock:
            self._s3 = client
            self.generation += 1
        _LOGGER.info(
            "Rotated S3 client for bucket %s (generation %d)",
            self._bucket,
            self.generation,
        )

    def _object_key(self, storage_key: str) -> str:
        prefix = f"{self._object_prefix}/" if self._object_prefix else ""
        return f"{prefix}{storage_key.lstrip('/')}"

    def generate_download_url(
        self, storage_key: str, *, expires_in: int = DEFAULT_EXPIRES_IN
    ) -> DownloadLink:
        """
        generate_download_url: Confirm the object exists, then presign it.
        :param storage_key:
        :param expires_in: lifetime of the presigned URL in seconds
        :returns:
        """

        key = self._object_key(storage_key)
        client = self._s3
        try:
            client.head_object(Bucket=self._bucket, Key=key)
        except Exception as exc:  # noqa: BLE001
            if _looks_like_transient_cloud_failure(exc):
                raise BlobStoreUnavailableError(
                    f"S3 temporarily unavailable: {exc}"
                ) from exc
            if _is_not_found(exc):
                raise BlobNotFoundError(
                    f"Artifact '{storage_key}' binary does not exist"
                ) from exc
            raise BlobStoreError(
                f"Failed to check artifact '{storage_key}': {exc}"
            ) from exc

        try:
            url = client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except Exception as exc:  # noqa: BLE001
            if _looks_like_transient_cloud_failure(exc):
                raise BlobStoreUnavailableError(
                    f"S3 temporarily unavailable: {exc}"
                ) from exc
            raise BlobStoreError(
                f"Failed to generate download URL: {exc}"
            ) from exc
        return DownloadLink(
            storage_key=storage_key,
            url=url,
            expires_in=expires_in,
        )


def _create_s3_client(
    *, region: Optional[str], endpoint_url: Optional[str]
) -> Any:
    try:
        import boto3 as _boto3
    except ImportError as exc:  # pragma: no cover
        raise BlobStoreError(
            "boto3 is required for S3 artifact storage"
        ) from exc
    client_kwargs: dict[str, Any] = {
        "config": Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "standard"},
        )
    }
    if region:
        client_kwargs["region_name"] = region
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    return _boto3.client("s3", **client_kwargs)


def build_url_provider_from_env(
    settings: Optional[CatalogSettings] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> DownloadUrlProvider:
    """
    Pick a storage collaborator from configuration.

    A bucket wins over a base URL, which wins over the local directory.
    """

    settings = settings or CatalogSettings.from_env(environ)
    if settings.storage_bucket:
        _LOGGER.info("Using S3 storage bucket %s", settings.storage_bucket)
        return S3DownloadUrlProvider(
            bucket=settings.storage_bucket,
            object_prefix=settings.storage_prefix,
            region=settings.storage_region,
            endpoint_url=settings.storage_endpoint,
        )
    if settings.storage_base_url:
        _LOGGER.info("Using storage base URL %s", settings.storage_base_url)
        return TemplateDownloadUrlProvider(
            settings.storage_base_url,
            verify=settings.storage_verify,
        )
    _LOGGER.info("Using local storage directory %s", settings.storage_dir)
    return LocalDownloadUrlProvider(settings.storage_dir)
