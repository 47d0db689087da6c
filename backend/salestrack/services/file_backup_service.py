# Overview: Service-layer operations for whole-database backups; copies the SQLite file and restores it in place.

"""
Database file backups.

WHY: A JSON snapshot restores sales only. A file backup is a complete copy
of the SQLite database for when the reference tables are lost too.

CREATE: VACUUM INTO writes a consistent, compacted copy while the database
stays online. The copy is written to the snapshot directory as
database-backup-<stamp>.db and then copied to latest-backup.db.

RESTORE: the live database is first copied to
<database file>.before-restore-<stamp>.db next to it. The backup is then
copied page by page into the live database with SQLite's online backup
API, so connections already open see the restored data.

Only file-backed SQLite databases are supported.
"""

from __future__ import annotations

import os
import shutil
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from flask import current_app
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..time_utils import snapshot_stamp, utcnow
from .snapshot_service import SAFETY_PREFIX, SNAPSHOT_PREFIX
from .snapshot_store import (
    DATABASE_SUFFIX,
    LATEST_ALIAS,
    SnapshotError,
    SnapshotExistsError,
    SnapshotNotFoundError,
    SnapshotStore,
)


class FileBackupError(SnapshotError):
    """Raised when the live database cannot be copied or restored as a file."""


@dataclass
class FileBackupResult:
    name: str
    path: Path
    size: int


@dataclass
class FileRestoreResult:
    source: Path
    database: Path
    safety_copy: Path


def database_path(url: URL) -> Path:
    """Location of the database file behind a SQLite URL."""
    database = url.database
    if url.get_backend_name() != "sqlite" or not database or database == ":memory:" or database.startswith("file:"):
        raise FileBackupError(
            f"File backups need a file-backed SQLite database, not {url.render_as_string(hide_password=True)}"
        )
    return Path(database).resolve()


def _vacuum_into(engine: Engine, target: Path) -> None:
    try:
        with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.exec_driver_sql("VACUUM INTO ?", (str(target),))
    except SQLAlchemyError as exc:
        raise FileBackupError(f"Could not copy the database to {target.name}: {exc}") from exc


def _replace_copy(source: Path, alias: Path) -> None:
    tmp = alias.with_name(alias.name + ".tmp")
    shutil.copyfile(source, tmp)
    os.replace(tmp, alias)


def create_file_backup(
    engine: Engine,
    snapshot_store: SnapshotStore,
    *,
    now: datetime | None = None,
) -> FileBackupResult:
    """Copy the live database into the snapshot directory and refresh latest-backup.db."""
    source = database_path(engine.url)
    now = now or utcnow()

    path = snapshot_store.path_for(f"{SNAPSHOT_PREFIX}{snapshot_stamp(now)}", DATABASE_SUFFIX)
    if path.exists():
        raise SnapshotExistsError(f"Database backup already exists: {path.name}")
    snapshot_store.ensure_directory()

    _vacuum_into(engine, path)
    _replace_copy(path, snapshot_store.path_for(LATEST_ALIAS, DATABASE_SUFFIX))

    size = path.stat().st_size
    current_app.logger.info("Database %s copied to %s (%d bytes)", source.name, path, size)
    return FileBackupResult(name=path.name, path=path, size=size)


def _check_sqlite_file(path: Path) -> None:
    conn = sqlite3.connect(str(path))
    try:
        conn.execute("PRAGMA schema_version").fetchone()
    except sqlite3.DatabaseError as exc:
        raise FileBackupError(f"{path.name} is not a SQLite database: {exc}") from exc
    finally:
        conn.close()


def restore_file_backup(
    engine: Engine,
    snapshot_store: SnapshotStore,
    name: str = LATEST_ALIAS,
    *,
    now: datetime | None = None,
) -> FileRestoreResult:
    """
    Replace the whole live database with a file backup.

    The current database is saved as <file>.before-restore-<stamp>.db
    before anything is overwritten.
    """
    database = database_path(engine.url)
    backup = snapshot_store.path_for(name, DATABASE_SUFFIX)
    if not backup.is_file():
        raise SnapshotNotFoundError(f"Database backup not found: {backup.name}")
    _check_sqlite_file(backup)

    now = now or utcnow()
    safety_copy = database.with_name(
        f"{database.name}.{SAFETY_PREFIX}{snapshot_stamp(now)}{DATABASE_SUFFIX}"
    )
    _vacuum_into(engine, safety_copy)
    current_app.logger.info("Current database saved to %s", safety_copy)

    source = sqlite3.connect(str(backup))
    raw = engine.raw_connection()
    try:
        source.backup(raw.driver_connection)
    except sqlite3.Error as exc:
        raise FileBackupError(f"Could not restore {backup.name}: {exc}") from exc
    finally:
        raw.close()
        source.close()

    current_app.logger.info("Database %s restored from %s", database.name, backup)
    return FileRestoreResult(source=backup, database=database, safety_copy=safety_copy)
