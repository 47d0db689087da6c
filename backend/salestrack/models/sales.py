from __future__ import annotations

from ..extensions import db


class Sale(db.Model):
    """
    Sale of one pack to one client by one representative.

    WHY: Sales are the revenue history and cannot be regenerated from any
    import job. They are restored from snapshots and repaired in place,
    never deleted to fix a broken reference.

    INVARIANT: client_id, representative_id and pack_id must each resolve to
    an existing row. SQLite does not enforce the foreign keys below unless
    PRAGMA foreign_keys is on, so bulk replacement of a reference table can
    leave them dangling.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_representative_created", "representative_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    representative_id = db.Column(db.Integer, db.ForeignKey("representatives.id"), nullable=False, index=True)
    pack_id = db.Column(db.Integer, db.ForeignKey("packs.id"), nullable=False, index=True)

    total_price = db.Column(db.Float, nullable=False)

    # Timestamps
    sale_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    client = db.relationship("Client")
    representative = db.relationship("Representative")
    pack = db.relationship("Pack")
