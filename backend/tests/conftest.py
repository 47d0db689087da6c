"""
Pytest fixtures for the sales maintenance tests.

Provides a file-backed SQLite app (separate sessions opened by the CLI see
committed fixture data), a per-test cleared database, reference data, and a
temporary snapshot directory.
"""

from datetime import datetime

import pytest
from salestrack import create_app
from salestrack.extensions import db
from salestrack.models import Representative, Client, Article, Gift, Pack, PackArticle, Sale
from salestrack.services.live_store import LiveStore
from salestrack.services.snapshot_store import SnapshotStore


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "sales_test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SNAPSHOT_DIR': str(tmp_path_factory.mktemp("snapshots")),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.expire_all()


@pytest.fixture(scope='function')
def store(db_session):
    """LiveStore bound to the test session."""
    return LiveStore(db_session)


@pytest.fixture(scope='function')
def snapshots(app, tmp_path, monkeypatch):
    """Per-test snapshot directory, also used by the CLI."""
    directory = tmp_path / "database-backups"
    monkeypatch.setitem(app.config, "SNAPSHOT_DIR", str(directory))
    return SnapshotStore(directory)


@pytest.fixture(scope='function')
def reference_data(db_session):
    """One representative, two clients, two packs with a gift and an article."""
    db_session.add(Representative(
        id=1, rep_code="REP001", rep_name="Ahmed Benali", username="ahmed",
        password_hash="x", city="Setif", wilaya="Setif",
    ))
    db_session.add_all([
        Client(id=1, client_id="C001", full_name="Amina Boukerche", city="Setif", wilaya="Setif"),
        Client(id=2, client_id="C002", full_name="Mohamed Rami", city="Algiers", wilaya="Algiers"),
    ])
    db_session.add(Gift(id=1, gift_name="Travel Kit"))
    db_session.add(Article(id=1, name="Premium Face Cream", price=25.99))
    db_session.add_all([
        Pack(id=1, pack_name="Pack A", total_price=45.99, gift_id=1),
        Pack(id=2, pack_name="Pack B", total_price=65.50),
    ])
    db_session.flush()
    db_session.add(PackArticle(pack_id=1, article_id=1, quantity=30))
    db_session.commit()


def make_sale(db_session, sale_id, *, client_id=1, representative_id=1, pack_id=1,
              total_price=45.99, sale_date=None):
    """Helper to insert one committed sale."""
    sale = Sale(
        id=sale_id,
        client_id=client_id,
        representative_id=representative_id,
        pack_id=pack_id,
        total_price=total_price,
        sale_date=sale_date or datetime(2025, 8, 5, 14, 24, 7),
    )
    db_session.add(sale)
    db_session.commit()
    return sale


@pytest.fixture(scope='function')
def sales(db_session, reference_data):
    """Three consistent sales."""
    return [
        make_sale(db_session, 1, client_id=1, pack_id=1, total_price=45.99),
        make_sale(db_session, 2, client_id=2, pack_id=2, total_price=65.50),
        make_sale(db_session, 3, client_id=1, pack_id=2, total_price=65.50,
                  sale_date=datetime(2025, 8, 6, 9, 0, 0, 123456)),
    ]
