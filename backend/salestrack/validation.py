from __future__ import annotations
from datetime import datetime
from salestrack.time_utils import parse_iso_datetime

from typing import Any

from sqlalchemy import DateTime, Float, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


class RowValidationError(ValueError):
    """A snapshot row cannot be written back into its table."""


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_value(col, value: Any):
    """Normalize one value to the Python type of col; None passes through."""
    coltype = col.type

    if value is None:
        return None

    # Integers - reject floats with a fraction and anything non-numeric
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            stripped = value.strip()
            try:
                return int(stripped)
            except ValueError:
                raise RowValidationError(f"{col.key} must be an integer")
        raise RowValidationError(f"{col.key} must be an integer")

    # Prices are stored as REAL
    if isinstance(coltype, (Float, Numeric)):
        if isinstance(value, bool):
            raise RowValidationError(f"{col.key} must be a number")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise RowValidationError(f"{col.key} must be a number")
        raise RowValidationError(f"{col.key} must be a number")

    # Datetimes (snapshots store ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise RowValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise RowValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise RowValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value)

    # Default: leave as-is
    return value


def validate_row(*, model: DeclarativeMeta, row: dict) -> dict:
    """
    Validates + normalizes one snapshot row against SQLAlchemy column metadata.

    - keys that are not columns of the model are dropped (older snapshots
      may carry columns the schema no longer has)
    - the primary key is required, since restores are keyed by identity
    - NULL in a non-nullable column without a server default is rejected
    - strings are checked against String(n) lengths

    Returns a cleaned dict holding only known columns.
    """
    if not isinstance(row, dict):
        raise RowValidationError("Snapshot row must be an object")

    cols = _columns_by_key(model)
    cleaned: dict = {}

    for key, col in cols.items():
        if col.primary_key and row.get(key) is None:
            raise RowValidationError(f"{key} is required")

    for key, raw in row.items():
        col = cols.get(key)
        if col is None:
            continue

        if raw is None:
            if not col.nullable and col.server_default is None:
                raise RowValidationError(f"{key} cannot be null")
            if col.server_default is not None:
                # Let the database fill it in
                continue
            cleaned[key] = None
            continue

        val = coerce_value(col, raw)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise RowValidationError(f"{key} exceeds max length {col.type.length}")

        cleaned[key] = val

    return cleaned
