"""
Pytest fixtures for MobilePOS backend tests.

Provides an in-memory database, catalog/customer fixtures and a test client
that sends the acting user's id.
"""

from datetime import timedelta

import pytest
from mobilepos import create_app
from mobilepos.config import Config, PricingSettings
from mobilepos.extensions import db
from mobilepos.models import Product, ProductImei, Offer, Customer
from mobilepos.time_utils import utcnow


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False


ACTOR_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def actor_headers():
    return {'X-User-Id': str(ACTOR_ID)}


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
def settings():
    return PricingSettings()


@pytest.fixture(scope='function')
def phone(db_session):
    """Dual SIM handset: 3 units on hand, 6 serials."""
    product = Product(
        name="Galaxy M34",
        brand="Samsung",
        category="Mobile Phones",
        purchase_price=17000,
        selling_price=20000,
        gst_percent=18,
        stock_quantity=3,
        track_imei=True,
        sim_type="Dual SIM",
        imeis=[ProductImei(imei=f"35000000000000{n}") for n in range(6)],
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def charger(db_session):
    """Untracked accessory: 10 units on hand."""
    product = Product(
        name="Fast Charger 25W",
        brand="Samsung",
        category="Chargers",
        purchase_price=250,
        selling_price=500,
        gst_percent=18,
        stock_quantity=10,
        track_imei=False,
        sim_type="None",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Ravi Kumar", mobile="9876543210", outstanding_balance=0)
    db_session.add(customer)
    db_session.commit()
    return customer


def phone_imeis(count: int, start: int = 0) -> list[str]:
    """Serials seeded by the phone fixture."""
    return [f"35000000000000{n}" for n in range(start, start + count)]


def make_offer(db_session, **kwargs) -> Offer:
    """Persist an offer that started yesterday unless told otherwise."""
    values = {
        "name": "Offer",
        "offer_type": "Product",
        "discount_type": "Percentage",
        "discount_value": 10,
        "min_quantity": 1,
        "start_date": utcnow() - timedelta(days=1),
        "end_date": None,
        "is_active": True,
    }
    values.update(kwargs)
    offer = Offer(**values)
    db_session.add(offer)
    db_session.commit()
    return offer
