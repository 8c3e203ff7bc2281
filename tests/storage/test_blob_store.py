"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Unit tests for the storage URL providers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from fill_catalog.config import CatalogSettings
from fill_catalog.storage import (BlobNotFoundError, BlobStoreError,
                                  BlobStoreUnavailableError, InMemoryCatalog,
                                  LocalDownloadUrlProvider,
                                  S3DownloadUrlProvider,
                                  TemplateDownloadUrlProvider,
                                  ValidationError,
                                  build_url_provider_from_env,
                                  render_storage_key)


class _ClientError(Exception):
    def __init__(self, code: str, message: str = "boom") -> None:
        super().__init__(message)
        self.response = {"Error": {"Code": code}}


class _FakeS3Client:
    """
    _FakeS3Client: In-memory S3 stand-in for head and presign calls.
    """

    def __init__(self) -> None:
        self.objects: set[str] = set()
        self.presigned: List[Dict[str, Any]] = []
        self.head_error: Optional[Exception] = None

    def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        """
        head_object: Function description.
        :param Bucket:
        :param Key:
        :returns:
        """

        if self.head_error is not None:
            raise self.head_error
        if Key not in self.objects:
            raise _ClientError("404", "Not Found")
        return {"ContentLength": 3}

    def generate_presigned_url(
        self, operation: str, Params: Dict[str, str], ExpiresIn: int
    ) -> str:
        self.presigned.append(
            {"operation": operation, "params": Params, "expires": ExpiresIn}
        )
        return f"https://s3.example/{Params['Bucket']}/{Params['Key']}"


class _Response:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


class _FakeSession:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.error: Optional[Exception] = None
        self.urls: List[str] = []
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def head(self, url: str, **kwargs: Any) -> _Response:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return _Response(self.status_code)


def test_s3_provider_presigns_existing_object() -> None:
    """
    test_s3_provider_presigns_existing_object: Function description.
    :param:
    :returns:
    """

    client = _FakeS3Client()
    client.objects.add("builds/paper/1.0.0/app.jar")
    provider = S3DownloadUrlProvider(
        "artifacts", object_prefix="/builds/", client=client
    )

    link = provider.generate_download_url("paper/1.0.0/app.jar", expires_in=60)

    assert link.url == (
        "https://s3.example/artifacts/builds/paper/1.0.0/app.jar"
    )
    assert link.expires_in == 60
    assert link.storage_key == "paper/1.0.0/app.jar"
    assert client.presigned[0]["operation"] == "get_object"
    assert client.presigned[0]["expires"] == 60


def test_s3_provider_missing_object() -> None:
    provider = S3DownloadUrlProvider("artifacts", client=_FakeS3Client())

    with pytest.raises(BlobNotFoundError):
        provider.generate_download_url("nope.jar")


@pytest.mark.parametrize(
    "error",
    [
        _ClientError("SlowDown"),
        _ClientError("500", "Read timed out"),
    ],
)
def test_s3_provider_transient_failures(error: Exception) -> None:
    client = _FakeS3Client()
    client.head_error = error
    provider = S3DownloadUrlProvider("artifacts", client=client)

    with pytest.raises(BlobStoreUnavailableError):
        provider.generate_download_url("app.jar")


def test_s3_provider_other_failure_is_generic() -> None:
    client = _FakeS3Client()
    client.head_error = _ClientError("AccessDenied", "Forbidden")
    provider = S3DownloadUrlProvider("artifacts", client=client)

    with pytest.raises(BlobStoreError) as excinfo:
        provider.generate_download_url("app.jar")

    assert not isinstance(excinfo.value, BlobNotFoundError)
    assert not isinstance(excinfo.value, BlobStoreUnavailableError)


def test_s3_rotate_client_bumps_generation() -> None:
    provider = S3DownloadUrlProvider("artifacts", client=_FakeS3Client())

    provider.rotate_client(_FakeS3Client())

    assert provider.generation == 1


def test_s3_provider_requires_bucket() -> None:
    with pytest.raises(ValidationError):
        S3DownloadUrlProvider("", client=_FakeS3Client())


def test_local_provider_returns_file_uri(tmp_path: Path) -> None:
    """
    test_local_provider_returns_file_uri: Function description.
    :param tmp_path:
    :returns:
    """

    artifact = tmp_path / "paper" / "app.jar"
    artifact.parent.mkdir()
    artifact.write_bytes(b"jar")
    provider = LocalDownloadUrlProvider(tmp_path)

    link = provider.generate_download_url("paper/app.jar")

    assert link.url == artifact.resolve().as_uri()
    assert link.expires_in is None


def test_local_provider_missing_and_escaping_keys(tmp_path: Path) -> None:
    provider = LocalDownloadUrlProvider(tmp_path / "root")
    (tmp_path / "secret.txt").write_text("x")

    with pytest.raises(BlobNotFoundError):
        provider.generate_download_url("missing.jar")
    with pytest.raises(BlobNotFoundError):
        provider.generate_download_url("../secret.txt")


def test_template_provider_without_head_check() -> None:
    session = _FakeSession()
    provider = TemplateDownloadUrlProvider(
        "https://cdn.example/files", session=session  # type: ignore[arg-type]
    )

    link = provider.generate_download_url("paper/1.0.0/app one.jar")

    assert link.url == "https://cdn.example/files/paper/1.0.0/app%20one.jar"
    assert link.expires_in is None
    assert session.urls == []


@pytest.mark.parametrize(
    "status,expected",
    [
        (404, BlobNotFoundError),
        (503, BlobStoreUnavailableError),
        (403, BlobStoreError),
    ],
)
def test_template_provider_head_check_statuses(
    status: int, expected: type
) -> None:
    provider = TemplateDownloadUrlProvider(
        "https://cdn.example/",
        verify=True,
        session=_FakeSession(status),  # type: ignore[arg-type]
    )

    with pytest.raises(expected):
        provider.generate_download_url("app.jar")


def test_template_provider_network_error_is_unavailable() -> None:
    session = _FakeSession()
    session.error = requests.ConnectionError("connection refused")
    provider = TemplateDownloadUrlProvider(
        "https://cdn.example/", verify=True, session=session  # type: ignore
    )

    with pytest.raises(BlobStoreUnavailableError):
        provider.generate_download_url("app.jar")


def test_template_provider_rebase() -> None:
    provider = TemplateDownloadUrlProvider(
        "https://old.example/", session=_FakeSession()  # type: ignore
    )

    provider.rebase("https://new.example")

    assert provider.generation == 1
    assert provider.generate_download_url("a.jar").url == (
        "https://new.example/a.jar"
    )


def test_template_provider_leaves_injected_session_open() -> None:
    session = _FakeSession()
    provider = TemplateDownloadUrlProvider(
        "https://cdn.example/", session=session  # type: ignore
    )

    provider.close()

    assert session.closed is False


def test_template_provider_closes_its_own_session(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    test_template_provider_closes_its_own_session: Function description.
    :param monkeypatch:
    :returns:
    """

    created: List[_FakeSession] = []

    def fake_session() -> _FakeSession:
        session = _FakeSession()
        created.append(session)
        return session

    monkeypatch.setattr(
        "fill_catalog.storage.blob_store.requests.Session", fake_session
    )
    provider = TemplateDownloadUrlProvider("https://cdn.example/")

    provider.close()

    assert len(created) == 1
    assert created[0].closed is True


def test_render_storage_key(catalog: InMemoryCatalog) -> None:
    """
    test_render_storage_key: Function description.
    :param catalog:
    :returns:
    """

    project = catalog.projects.find_by_name("test-project")
    version = catalog.versions.find_by_name(project, "1.0.0")
    build = catalog.builds.find_by_number(version, 5)
    download = build.downloads["server"]

    key = render_storage_key(
        "{project_name}/{version_name}/{build_number}/{download_sha256}",
        project,
        version,
        build,
        download,
    )

    assert key == f"test-project/1.0.0/5/{download.checksums.sha256}"
    with pytest.raises(ValidationError):
        render_storage_key("{bucket}/x", project, version, build, download)


def test_build_url_provider_prefers_bucket(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    created: List[Dict[str, Any]] = []

    def fake_create(**kwargs: Any) -> _FakeS3Client:
        created.append(kwargs)
        return _FakeS3Client()

    monkeypatch.setattr(
        "fill_catalog.storage.blob_store._create_s3_client", fake_create
    )

    provider = build_url_provider_from_env(
        environ={
            "FILL_STORAGE_BUCKET": "artifacts",
            "FILL_STORAGE_BASE_URL": "https://cdn.example/",
            "FILL_STORAGE_REGION": "us-east-2",
        }
    )

    assert isinstance(provider, S3DownloadUrlProvider)
    assert created == [{"region": "us-east-2", "endpoint_url": None}]


def test_build_url_provider_base_url_then_local(tmp_path: Path) -> None:
    template = build_url_provider_from_env(
        environ={"FILL_STORAGE_BASE_URL": "https://cdn.example/"}
    )
    local = build_url_provider_from_env(
        CatalogSettings(storage_dir=tmp_path / "files")
    )

    assert isinstance(template, TemplateDownloadUrlProvider)
    assert isinstance(local, LocalDownloadUrlProvider)
    assert (tmp_path / "files").is_dir()
