from __future__ import annotations

from ..extensions import db


class Representative(db.Model):
    """
    Sales representative ("delegate") assigned to a single wilaya.

    WHY: Every sale is attributed to the representative who recorded it.
    Representatives are never hard-deleted in normal operation; only the
    territory fields change over time.
    """
    __tablename__ = "representatives"
    __table_args__ = (
        db.UniqueConstraint("rep_code", name="uq_representatives_rep_code"),
        db.UniqueConstraint("username", name="uq_representatives_username"),
        db.Index("ix_representatives_wilaya", "wilaya"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    rep_code = db.Column(db.String(32), nullable=False)
    rep_name = db.Column(db.String(128), nullable=False)
    username = db.Column(db.String(64), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    city = db.Column(db.String(64), nullable=True)

    # Territory
    wilaya = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class Client(db.Model):
    """
    Client (point of sale) within a wilaya.

    Clients have historically been bulk-replaced by import jobs (delete all,
    reinsert), which leaves sales pointing at row ids that no longer exist.
    Placeholder clients created by the integrity repair carry an external
    client_id of the form PLACEHOLDER_<old id>.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("client_id", name="uq_clients_client_id"),
        db.Index("ix_clients_wilaya", "wilaya"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # External identifier (from the client import file)
    client_id = db.Column(db.String(64), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)

    # Territory
    city = db.Column(db.String(64), nullable=True)
    wilaya = db.Column(db.String(64), nullable=False)

    phone = db.Column(db.String(32), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
