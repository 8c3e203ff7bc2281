"""
Fill Catalog Repository
Introductory remarks: This module is part of the Fill Catalog codebase.

Load a JSON catalog snapshot into the in-memory repositories.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from fill_catalog.config import DEFAULT_PATH_TEMPLATE
from fill_catalog.models import (Build, BuildChannel, Checksums, Commit,
                                 Download, Family, JavaRequirement, Project,
                                 StoredSupport, SupportStatus, Version,
                                 check_commit_order)

from .blob_store import render_storage_key
from .errors import SnapshotError, ValidationError
from .memory import InMemoryCatalog

_LOGGER = logging.getLogger(__name__)


def load_snapshot(
    path: Union[str, Path],
    *,
    path_template: str = DEFAULT_PATH_TEMPLATE,
) -> InMemoryCatalog:
    """
    load_snapshot: Read ``path`` and build an in-memory catalog from it.
    :param path: JSON file with ``projects``, ``families``, ``versions`` and
        ``builds`` arrays
    :param path_template: storage key layout for downloads without an explicit
        ``storage_key``
    :returns: the populated catalog
    """

    snapshot_path = Path(path)
    try:
        with snapshot_path.open(encoding="utf-8") as handle:
            payload = json.load(handle)
    except OSError as exc:
        raise SnapshotError(
            f"Snapshot '{snapshot_path}' could not be read: {exc}"
        ) from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(
            f"Snapshot '{snapshot_path}' is not valid JSON: {exc}"
        ) from exc
    catalog = catalog_from_payload(payload, path_template=path_template)
    _LOGGER.info("Loaded catalog snapshot from %s", snapshot_path)
    return catalog


def catalog_from_payload(
    payload: Any,
    *,
    path_template: str = DEFAULT_PATH_TEMPLATE,
) -> InMemoryCatalog:
    """
    catalog_from_payload: Convert a decoded snapshot document.
    :param payload: mapping of entity arrays
    :param path_template:
    :returns:
    """

    if not isinstance(payload, dict):
        raise ValidationError("Snapshot must be a JSON object")
    catalog = InMemoryCatalog()
    projects: Dict[str, Project] = {}
    versions: Dict[str, Version] = {}
    try:
        for raw in _entries(payload, "projects"):
            project = _payload_to_project(raw)
            projects[project.id] = catalog.add_project(project)
        for raw in _entries(payload, "families"):
            catalog.add_family(_payload_to_family(raw))
        for raw in _entries(payload, "versions"):
            version = _payload_to_version(raw)
            versions[version.id] = catalog.add_version(version)
        for raw in _entries(payload, "builds"):
            version = versions.get(str(raw.get("version", "")))
            if version is None:
                raise ValidationError(
                    f"Build '{raw.get('id')}' references unknown version "
                    f"'{raw.get('version')}'"
                )
            project = projects[version.project_id]
            catalog.add_build(
                _payload_to_build(raw, project, version, path_template)
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed snapshot entry: {exc}") from exc
    return catalog


def _entries(payload: Mapping[str, Any], name: str) -> list[Dict[str, Any]]:
    entries = payload.get(name) or []
    if not isinstance(entries, list) or not all(
        isinstance(entry, dict) for entry in entries
    ):
        raise ValidationError(f"Snapshot field '{name}' must be an array")
    return entries


def _timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str):
        raise ValueError(f"Timestamp {raw!r} must be an ISO-8601 string")
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _java(raw: Optional[Dict[str, Any]]) -> Optional[JavaRequirement]:
    if not raw:
        return None
    minimum = (raw.get("version") or {}).get("minimum")
    flags = (raw.get("flags") or {}).get("recommended") or []
    return JavaRequirement(minimum=minimum, recommended_flags=tuple(flags))


def _payload_to_project(raw: Dict[str, Any]) -> Project:
    created = raw.get("createdAt")
    return Project(
        id=raw["id"],
        name=raw["name"],
        display_name=raw.get("displayName", ""),
        created_at=_timestamp(created) if created else None,
    )


def _payload_to_family(raw: Dict[str, Any]) -> Family:
    return Family(
        id=raw["id"],
        project_id=raw["project"],
        name=raw["name"],
        created_at=_timestamp(raw["createdAt"]),
        java=_java(raw.get("java")),
    )


def _payload_to_version(raw: Dict[str, Any]) -> Version:
    support_raw = raw.get("support") or {}
    end_raw = support_raw.get("end")
    created_at = _timestamp(raw["createdAt"])
    return Version(
        id=raw["id"],
        project_id=raw["project"],
        family_id=raw["family"],
        name=raw["name"],
        created_at=created_at,
        updated_at=_timestamp(raw.get("updatedAt") or raw["createdAt"]),
        support=StoredSupport(
            status=SupportStatus(support_raw.get("status", "SUPPORTED")),
            end=date.fromisoformat(end_raw) if end_raw else None,
        ),
        java=_java(raw.get("java")),
    )


def _payload_to_build(
    raw: Dict[str, Any],
    project: Project,
    version: Version,
    path_template: str,
) -> Build:
    commits = tuple(
        Commit(
            sha=commit["sha"],
            time=_timestamp(commit["time"]),
            message=commit.get("message", ""),
        )
        for commit in raw.get("commits") or []
    )
    check_commit_order(commits)
    shell = Build(
        id=raw["id"],
        version_id=version.id,
        number=int(raw["number"]),
        created_at=_timestamp(raw["createdAt"]),
        channel=BuildChannel(raw.get("channel", "STABLE")),
        commits=commits,
    )
    downloads: Dict[str, Download] = {}
    for role, entry in (raw.get("downloads") or {}).items():
        download = Download(
            name=entry["name"],
            checksums=Checksums(sha256=entry["checksums"]["sha256"]),
            size=int(entry.get("size", 0)),
            storage_key=entry.get("storage_key") or entry["name"],
        )
        if not entry.get("storage_key"):
            download = replace(
                download,
                storage_key=render_storage_key(
                    path_template, project, version, shell, download
                ),
            )
        downloads[role] = download
    return replace(shell, downloads=downloads)
