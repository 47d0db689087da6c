# Overview: Service-layer operations for snapshots; exports every entity table and restores sales from an artifact.

"""
Snapshot export and restore.

EXPORT: every table in the entity registry is read in full and written as
one artifact, then copied to the latest alias. A table that fails to read
is exported as an empty list and reported in incomplete_tables; the other
tables are still saved.

RESTORE: only the sales table is restored. Reference tables (clients,
representatives, packs, catalog) are regenerated by their own import jobs,
so a restore may leave sales pointing at rows that are gone. Those show up
in integrity_service.audit() and are fixed by integrity_service.repair().

Writes are applied one row at a time, each with its own commit, so a failed
row never takes earlier rows with it and the counts are exact.
Before the first write the current tables are exported to
before-restore-<stamp>.json, so a bad restore can be undone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..models import Sale
from ..time_utils import snapshot_stamp, to_utc_z, utcnow
from ..validation import validate_row
from .live_store import ENTITY_TABLES, ConstraintViolationError, LiveStore
from .snapshot_store import LATEST_ALIAS, SnapshotFormatError, SnapshotStore


SNAPSHOT_PREFIX = "database-backup-"
SAFETY_PREFIX = "before-restore-"


@dataclass
class SnapshotResult:
    name: str
    path: Path
    timestamp: str
    counts: dict[str, int]
    incomplete_tables: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.incomplete_tables


@dataclass
class RestoreResult:
    restored: int = 0
    total: int = 0
    inserted: int = 0
    updated: int = 0
    failures: list[dict] = field(default_factory=list)
    safety_snapshot: str | None = None

    @property
    def failed(self) -> int:
        return len(self.failures)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc_z(value)
    return value


def _serialize_row(row: dict) -> dict:
    return {key: _serialize_value(value) for key, value in row.items()}


def export_tables(store: LiveStore) -> tuple[dict[str, list[dict]], list[str]]:
    """
    Read every registered table.

    Returns (tables, incomplete_tables). A failed read yields an empty list
    for that table rather than aborting the export.
    """
    tables: dict[str, list[dict]] = {}
    incomplete: list[str] = []

    for table_name in ENTITY_TABLES:
        try:
            rows = store.read_all(table_name)
        except SQLAlchemyError:
            store.rollback()
            current_app.logger.exception("Failed to export table %s", table_name)
            tables[table_name] = []
            incomplete.append(table_name)
            continue
        tables[table_name] = [_serialize_row(row) for row in rows]
        current_app.logger.info("Exported %s: %d records", table_name, len(rows))

    return tables, incomplete


def create_snapshot(
    store: LiveStore,
    snapshot_store: SnapshotStore,
    *,
    now: datetime | None = None,
) -> SnapshotResult:
    """
    Export all entity tables into a new artifact and point the latest alias at it.

    Does not modify the live store.
    """
    now = now or utcnow()
    result, payload = _export_artifact(store, snapshot_store, f"{SNAPSHOT_PREFIX}{snapshot_stamp(now)}", now)
    snapshot_store.write(LATEST_ALIAS, payload)
    return result


def _export_artifact(
    store: LiveStore,
    snapshot_store: SnapshotStore,
    name: str,
    now: datetime,
) -> tuple[SnapshotResult, dict]:
    tables, incomplete = export_tables(store)
    payload = {
        "timestamp": to_utc_z(now),
        "tables": tables,
    }
    path = snapshot_store.write(name, payload)

    if incomplete:
        current_app.logger.warning(
            "Snapshot %s is missing data for: %s", path.name, ", ".join(incomplete)
        )
    current_app.logger.info("Snapshot saved: %s", path)

    return SnapshotResult(
        name=path.name,
        path=path,
        timestamp=payload["timestamp"],
        counts={table_name: len(rows) for table_name, rows in tables.items()},
        incomplete_tables=incomplete,
    ), payload


def _tables_of(payload: dict, name: str) -> dict:
    tables = payload.get("tables")
    if not isinstance(tables, dict):
        raise SnapshotFormatError(f"Snapshot {name} has no tables mapping")
    return tables


def restore_snapshot(
    store: LiveStore,
    snapshot_store: SnapshotStore,
    name: str = LATEST_ALIAS,
    *,
    safety_snapshot: bool = True,
    now: datetime | None = None,
) -> RestoreResult:
    """
    Upsert every sale of the artifact into the live store.

    Each row is inserted if its id is absent and overwritten otherwise.
    A failing row is rolled back, logged and listed in failures; the
    remaining rows are still attempted.

    Unless safety_snapshot is False, the current tables are first exported
    to a before-restore-<stamp> artifact (the latest alias is left alone).
    """
    payload = snapshot_store.read(name)
    sales = _tables_of(payload, name).get("sales") or []
    if not isinstance(sales, list):
        raise SnapshotFormatError(f"Snapshot {name}: sales must be a list of rows")

    result = RestoreResult(total=len(sales))
    if not sales:
        current_app.logger.info("No sales data to restore in %s", name)
        return result

    if safety_snapshot:
        now = now or utcnow()
        safety, _ = _export_artifact(store, snapshot_store, f"{SAFETY_PREFIX}{snapshot_stamp(now)}", now)
        result.safety_snapshot = safety.name

    current_app.logger.info(
        "Restoring %d sales from %s (taken %s)", len(sales), name, payload.get("timestamp")
    )

    for row in sales:
        sale_id = row.get("id") if isinstance(row, dict) else None
        try:
            values = validate_row(model=Sale, row=row)
            outcome = store.upsert("sales", values)
            store.commit()
        except (ValueError, ConstraintViolationError, SQLAlchemyError) as exc:
            store.rollback()
            current_app.logger.warning("Failed to restore sale %s: %s", sale_id, exc)
            result.failures.append({"sale_id": sale_id, "error": str(exc)})
            continue

        result.restored += 1
        if outcome == "inserted":
            result.inserted += 1
        else:
            result.updated += 1

    current_app.logger.info("Restored %d of %d sales", result.restored, result.total)
    return result


@dataclass
class SnapshotComparison:
    old_name: str
    new_name: str
    old_timestamp: str | None
    new_timestamp: str | None
    tables: dict[str, dict[str, int]]

    def to_dict(self) -> dict:
        return {
            "old": {"name": self.old_name, "timestamp": self.old_timestamp},
            "new": {"name": self.new_name, "timestamp": self.new_timestamp},
            "tables": {k: dict(v) for k, v in self.tables.items()},
        }


def compare_snapshots(snapshot_store: SnapshotStore, old_name: str, new_name: str) -> SnapshotComparison:
    """Row counts per table in two artifacts, with new - old deltas."""
    old = snapshot_store.read(old_name)
    new = snapshot_store.read(new_name)
    old_tables = _tables_of(old, old_name)
    new_tables = _tables_of(new, new_name)

    table_names = list(ENTITY_TABLES)
    for extra in list(old_tables) + list(new_tables):
        if extra not in table_names:
            table_names.append(extra)

    tables = {}
    for table_name in table_names:
        old_count = len(old_tables.get(table_name) or [])
        new_count = len(new_tables.get(table_name) or [])
        tables[table_name] = {"old": old_count, "new": new_count, "delta": new_count - old_count}

    return SnapshotComparison(
        old_name=old_name,
        new_name=new_name,
        old_timestamp=old.get("timestamp"),
        new_timestamp=new.get("timestamp"),
        tables=tables,
    )
