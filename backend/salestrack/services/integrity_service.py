# Overview: Service-layer operations for referential integrity; audits and repairs dangling sale references.

"""
Integrity audit and repair for the sales table.

WHY: Reference tables (clients, representatives, packs) are bulk-replaced
by import jobs independently of sales. Each replacement can leave sales
pointing at ids that no longer exist. Sales are revenue history, so they are
repaired in place and never deleted.

REPAIR POLICY (per broken field):
- client: relink to a client whose external client_id equals the broken
  value; otherwise point the sale at a placeholder client
  PLACEHOLDER_<value>, created once and reused on every later run.
- pack: reassign to the first pack by id. Packs are catalog data, so no
  placeholder pack is ever created.
- representative: no strategy. Reported as unresolved.

Every defect is re-checked against the current sale row before writing, so
running repair() twice with the same defect list changes nothing the
second time.
A placeholder inserted earlier in the same run never counts as the row a
later broken value resolves to, even when its new id equals that value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..validation import RowValidationError, coerce_value
from .live_store import ENTITY_TABLES, ConstraintViolationError, LiveStore


# broken_field -> (column on sales, referenced table)
SALE_REFERENCES = {
    "client": ("client_id", "clients"),
    "representative": ("representative_id", "representatives"),
    "pack": ("pack_id", "packs"),
}

PLACEHOLDER_PREFIX = "PLACEHOLDER_"


class RepairError(Exception):
    """Raised for a single defect that could not be repaired."""


class UnresolvableDefectError(RepairError):
    """The broken field has no repair strategy, or the strategy has nothing to work with."""


class RepairTargetNotFoundError(RepairError):
    """The sale named by a defect no longer exists."""


@dataclass(frozen=True)
class Defect:
    sale_id: int
    broken_field: str
    broken_value: Any

    @classmethod
    def from_dict(cls, data: dict) -> "Defect":
        return cls(
            sale_id=data["sale_id"],
            broken_field=data["broken_field"],
            broken_value=data.get("broken_value"),
        )

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "broken_field": self.broken_field,
            "broken_value": self.broken_value,
        }


@dataclass
class RepairResult:
    resolved: int = 0
    placeholders_created: int = 0
    placeholders_reused: int = 0
    relinked: int = 0
    reassigned: int = 0
    skipped: int = 0
    unresolved: list[dict] = field(default_factory=list)
    remaining_defects: int = 0

    def record(self, outcome: str) -> None:
        if outcome == "skipped":
            self.skipped += 1
            return
        self.resolved += 1
        if outcome == "placeholder_created":
            self.placeholders_created += 1
        elif outcome == "placeholder_reused":
            self.placeholders_reused += 1
        elif outcome == "relinked":
            self.relinked += 1
        elif outcome == "reassigned":
            self.reassigned += 1


# =============================================================================
# AUDIT
# =============================================================================

def audit(store: LiveStore) -> list[Defect]:
    """
    Every sale reference that does not resolve to an existing row.

    A sale appears once per broken field. Ordered by sale id, then
    client, representative, pack. Read-only.
    """
    sales = store.table("sales")
    field_order = {name: idx for idx, name in enumerate(SALE_REFERENCES)}
    defects: list[Defect] = []

    for broken_field, (column, target_name) in SALE_REFERENCES.items():
        target = store.table(target_name)
        stmt = (
            select(sales.c.id, sales.c[column])
            .select_from(sales.outerjoin(target, sales.c[column] == target.c.id))
            .where(target.c.id.is_(None))
        )
        for sale_id, value in store.session.execute(stmt):
            defects.append(Defect(sale_id=sale_id, broken_field=broken_field, broken_value=value))

    defects.sort(key=lambda d: (d.sale_id, field_order[d.broken_field]))
    return defects


def is_consistent(store: LiveStore) -> bool:
    return not audit(store)


@dataclass
class IntegritySummary:
    counts: dict[str, int]
    defects_by_field: dict[str, int]
    defects: list[Defect]

    @property
    def total_defects(self) -> int:
        return len(self.defects)

    @property
    def affected_sales(self) -> int:
        return len({d.sale_id for d in self.defects})


def summarize(store: LiveStore) -> IntegritySummary:
    """Row counts for every table plus the current defect list."""
    defects = audit(store)
    by_field = {name: 0 for name in SALE_REFERENCES}
    for defect in defects:
        by_field[defect.broken_field] += 1
    return IntegritySummary(
        counts={table_name: store.count(table_name) for table_name in ENTITY_TABLES},
        defects_by_field=by_field,
        defects=defects,
    )


# =============================================================================
# REPAIR
# =============================================================================

def placeholder_client_id(broken_value: Any) -> str:
    return f"{PLACEHOLDER_PREFIX}{broken_value}"


def _repair_client(store: LiveStore, defect: Defect) -> tuple[int, str]:
    if defect.broken_value is None:
        raise UnresolvableDefectError("sale has no client reference")

    matches = store.find("clients", client_id=str(defect.broken_value))
    if matches:
        return matches[0]["id"], "relinked"

    external_id = placeholder_client_id(defect.broken_value)
    existing = store.find("clients", client_id=external_id)
    if existing:
        return existing[0]["id"], "placeholder_reused"

    client_pk = store.insert("clients", {
        "client_id": external_id,
        "full_name": f"Client {defect.broken_value} (Historical)",
        "city": "Unknown",
        "wilaya": "Unknown",
        "phone": "",
        "location": None,
    })
    current_app.logger.info(
        "Created placeholder client %s (id %s) for sale %s", external_id, client_pk, defect.sale_id
    )
    return client_pk, "placeholder_created"


def _repair_pack(store: LiveStore, defect: Defect) -> tuple[int, str]:
    fallback = store.first("packs")
    if fallback is None:
        raise UnresolvableDefectError("no pack available to reassign to")
    return fallback["id"], "reassigned"


REPAIR_STRATEGIES = {
    "client": _repair_client,
    "pack": _repair_pack,
}


def _normalized(store: LiveStore, defect: Defect) -> Defect:
    """Defect with broken_value coerced to the sales column type ("999" -> 999)."""
    if defect.broken_field not in SALE_REFERENCES:
        raise UnresolvableDefectError(f"unknown field: {defect.broken_field}")
    column, _ = SALE_REFERENCES[defect.broken_field]
    try:
        value = coerce_value(store.table("sales").c[column], defect.broken_value)
    except RowValidationError as exc:
        raise UnresolvableDefectError(str(exc)) from exc
    return Defect(sale_id=defect.sale_id, broken_field=defect.broken_field, broken_value=value)


def _repair_one(store: LiveStore, defect: Defect, created: set[tuple[str, Any]]) -> tuple[str, Any]:
    """
    Apply the strategy for one defect; returns (outcome, target id).

    created holds the (table, id) rows inserted earlier in the same run. A
    sale whose broken value happens to equal one of those ids still counts
    as broken: it resolves only by accident of autoincrement.
    """
    column, target_name = SALE_REFERENCES[defect.broken_field]

    sale = store.get("sales", defect.sale_id)
    if sale is None:
        raise RepairTargetNotFoundError("sale not found")

    current = sale[column]
    if current != defect.broken_value:
        return "skipped", None
    if (
        current is not None
        and (target_name, current) not in created
        and store.get(target_name, current) is not None
    ):
        return "skipped", None

    strategy = REPAIR_STRATEGIES.get(defect.broken_field)
    if strategy is None:
        raise UnresolvableDefectError(
            f"no repair strategy for broken {defect.broken_field} references"
        )

    target_id, outcome = strategy(store, defect)
    store.update("sales", defect.sale_id, {column: target_id})
    current_app.logger.info(
        "Sale %s: %s %s -> %s (%s)", defect.sale_id, column, defect.broken_value, target_id, outcome
    )
    return outcome, target_id


def repair(store: LiveStore, defects: Iterable[Defect | dict]) -> RepairResult:
    """
    Resolve each defect with the strategy for its field.

    Defects are processed in the given order, one commit each. Anything
    that cannot be fixed is listed in unresolved with a reason; no sale is
    ever deleted. remaining_defects is a fresh audit count taken afterwards.
    """
    result = RepairResult()
    created: set[tuple[str, Any]] = set()

    for item in defects:
        defect = item if isinstance(item, Defect) else Defect.from_dict(item)
        try:
            defect = _normalized(store, defect)
            outcome, target_id = _repair_one(store, defect, created)
            if outcome != "skipped":
                store.commit()
        except RepairError as exc:
            store.rollback()
            result.unresolved.append({**defect.to_dict(), "reason": str(exc)})
            continue
        except (ConstraintViolationError, SQLAlchemyError) as exc:
            store.rollback()
            current_app.logger.warning("Failed to repair sale %s: %s", defect.sale_id, exc)
            result.unresolved.append({**defect.to_dict(), "reason": str(exc)})
            continue
        if outcome == "placeholder_created":
            created.add(("clients", target_id))
        result.record(outcome)

    result.remaining_defects = len(audit(store))
    if result.unresolved:
        current_app.logger.warning("%d defects left unresolved", len(result.unresolved))
    return result
