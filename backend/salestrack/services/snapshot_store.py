# Overview: File-backed collection of named snapshot artifacts; append-only except the latest alias.

"""
Snapshot Store

Artifacts are pretty-printed JSON documents (and whole-database copies made
by file_backup_service) kept in one directory:

    database-backups/
        database-backup-2025-08-05T14-24-07-202123Z.json
        latest-backup.json          <- "latest" alias, always replaceable
        database-backup-2025-08-05T14-24-07-202123Z.db   <- whole database copies
        latest-backup.db

INVARIANTS:
- write() never overwrites a named artifact; only the alias is replaced.
- The alias is exempt from prune().
- A written artifact is never modified afterwards, so reads need no locking.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from flask import current_app


LATEST_ALIAS = "latest"
LATEST_STEM = "latest-backup"
ARTIFACT_SUFFIX = ".json"
DATABASE_SUFFIX = ".db"
LATEST_FILENAME = LATEST_STEM + ARTIFACT_SUFFIX


class SnapshotError(Exception):
    """Base class for snapshot store failures."""


class SnapshotNotFoundError(SnapshotError):
    """Raised when a named artifact does not exist."""


class SnapshotExistsError(SnapshotError):
    """Raised when write() would overwrite an existing named artifact."""


class SnapshotFormatError(SnapshotError):
    """Raised when an artifact is not a snapshot document."""


@dataclass(frozen=True)
class SnapshotInfo:
    name: str
    size: int
    created_at: datetime
    is_alias: bool = False


def _json_default(value: Any):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class SnapshotStore:
    """Named, timestamped snapshot artifacts under one directory."""

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)

    def _filename(self, name: str, suffix: str = ARTIFACT_SUFFIX) -> str:
        if not name or name in {".", ".."} or "/" in name or "\\" in name or os.sep in name:
            raise ValueError(f"Invalid snapshot name: {name!r}")
        if name == LATEST_ALIAS:
            return LATEST_STEM + suffix
        if not name.endswith(suffix):
            name = name + suffix
        return name

    def path_for(self, name: str, suffix: str = ARTIFACT_SUFFIX) -> Path:
        return self.directory / self._filename(name, suffix)

    def ensure_directory(self) -> None:
        if not self.directory.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            current_app.logger.info("Created snapshot directory %s", self.directory)

    def write(self, name: str, payload: dict) -> Path:
        """
        Persist payload as a new artifact.

        Named artifacts are created exclusively; the alias is written to a
        temp file and moved into place so readers never see a partial file.
        """
        filename = self._filename(name)
        self.ensure_directory()
        path = self.directory / filename
        body = json.dumps(payload, indent=2, ensure_ascii=False, default=_json_default)

        if filename == LATEST_FILENAME:
            tmp = path.with_name(path.name + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(body)
            os.replace(tmp, path)
            return path

        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(body)
        except FileExistsError:
            raise SnapshotExistsError(f"Snapshot already exists: {filename}")
        return path

    def read(self, name: str) -> dict:
        path = self.path_for(name)
        if not path.is_file():
            raise SnapshotNotFoundError(f"Snapshot not found: {path.name}")
        with open(path, "r", encoding="utf-8") as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError as exc:
                raise SnapshotFormatError(f"Snapshot {path.name} is not valid JSON: {exc}")
        if not isinstance(payload, dict):
            raise SnapshotFormatError(f"Snapshot {path.name} is not a snapshot document")
        return payload

    def latest(self) -> dict:
        return self.read(LATEST_ALIAS)

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def list(self, suffix: str = ARTIFACT_SUFFIX) -> list[SnapshotInfo]:
        """
        All artifacts with the given suffix, newest first (mtime, ties broken by name).

        JSON snapshots by default; pass DATABASE_SUFFIX for database file copies.
        """
        if not self.directory.is_dir():
            return []

        entries = []
        for path in self.directory.iterdir():
            if not path.is_file() or path.suffix != suffix:
                continue
            stat = path.stat()
            entries.append((stat.st_mtime_ns, path.name, stat.st_size))

        entries.sort(reverse=True)
        return [
            SnapshotInfo(
                name=filename,
                size=size,
                created_at=datetime.fromtimestamp(mtime_ns / 1e9, tz=timezone.utc),
                is_alias=filename == LATEST_STEM + suffix,
            )
            for mtime_ns, filename, size in entries
        ]

    def prune(self, keep_count: int, suffix: str = ARTIFACT_SUFFIX) -> list[str]:
        """
        Delete all but the newest keep_count named artifacts.

        Returns the deleted names. The latest alias is never deleted.
        """
        if keep_count < 0:
            raise ValueError("keep_count must be >= 0")

        candidates = [info for info in self.list(suffix) if not info.is_alias]
        deleted = []
        for info in candidates[keep_count:]:
            (self.directory / info.name).unlink()
            current_app.logger.info("Pruned snapshot %s", info.name)
            deleted.append(info.name)
        return deleted
