"""
Pytest fixtures for retailcore backend tests.

Provides test database setup, catalog fixtures, a transaction factory and
the test client.
"""

from datetime import datetime

import pytest

from retailcore import create_app
from retailcore.extensions import db
from retailcore.models import Product, SaleTransaction, Staff, TransactionStatus
from retailcore.time_utils import business_date


@pytest.fixture(scope='session')
def app():
    """Create application for testing (in-memory SQLite, UTC business calendar)."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'AGGREGATE_RETRY_BACKOFF': 0,
        'RECONCILE_PAGE_SIZE': 2,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


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


@pytest.fixture(scope='function')
def product(db_session):
    """PRD1 at 100.00 per kg (450 g -> 45.00)."""
    product = Product(
        product_code="PRD1",
        name="Paneer",
        selling_rate_per_kg_cents=10000,
        purchase_price_per_kg_cents=7000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(
        product_code="PRD2",
        name="Butter",
        selling_rate_per_kg_cents=20000,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def staff(db_session):
    members = [Staff(staff_id="S1", name="Asha"), Staff(staff_id="S2", name="Ravi")]
    db_session.add_all(members)
    db_session.commit()
    return members


@pytest.fixture(scope='function')
def make_tx(db_session):
    """
    Insert a raw transaction without touching aggregates (imported history).

    Usage: make_tx(value_cents=4500, hour=14, sale_date="2024-04-03", ...)
    """
    def _make(
        *,
        sale_date="2024-04-03",
        hour=14,
        minute=0,
        value_cents=4500,
        weight_grams=450,
        staff_id="S1",
        product_code="PRD1",
        product_name="Paneer",
        status=TransactionStatus.SOLD,
    ):
        occurred_at = datetime.fromisoformat(f"{sale_date}T{hour:02d}:{minute:02d}:00")
        tx = SaleTransaction(
            product_code=product_code,
            weight_grams=weight_grams,
            line_value_cents=value_cents,
            staff_id=staff_id,
            status=status.value,
            occurred_at=occurred_at,
            sale_date=business_date(occurred_at),
            product_name=product_name,
            selling_rate_per_kg_cents=10000,
        )
        db_session.add(tx)
        db_session.commit()
        return tx

    return _make
