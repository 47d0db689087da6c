# backend/salestrack/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/sales_management.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///sales_management.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Snapshot artifacts (JSON exports of every entity table)
    SNAPSHOT_DIR = os.environ.get("SNAPSHOT_DIR", "database-backups")
    SNAPSHOT_KEEP_COUNT = int(os.environ.get("SNAPSHOT_KEEP_COUNT", "10"))
