"""
Pytest fixtures for FieldStock backend tests.

Provides the application, a clean database per test, a two-region sales
hierarchy and a device factory.
"""

from types import SimpleNamespace

import pytest
from fieldstock import create_app
from fieldstock.config import TestConfig
from fieldstock.constants import (
    ROLE_ADMIN,
    ROLE_REGIONAL_MANAGER,
    ROLE_TEAM_LEADER,
    ROLE_FIELD_OFFICER,
)
from fieldstock.extensions import db
from fieldstock.services import device_service, directory_service


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
def org(db_session):
    """
    Two regions, each with a regional manager, a team leader and a field officer.

    Nairobi: rm -> tl -> fo (fo has no regional_manager_id; found by region)
    Coast:   coast_rm -> coast_tl -> coast_fo (coast_fo names coast_rm explicitly)
    """
    admin = directory_service.create_user(name="Admin", email="admin@fs.test", role=ROLE_ADMIN)

    rm = directory_service.create_user(
        name="Nairobi RM", email="rm@fs.test", role=ROLE_REGIONAL_MANAGER, region="Nairobi"
    )
    tl = directory_service.create_user(
        name="Nairobi TL", email="tl@fs.test", role=ROLE_TEAM_LEADER, region="Nairobi"
    )
    fo = directory_service.create_user(
        name="Nairobi FO", email="fo@fs.test", role=ROLE_FIELD_OFFICER,
        region="Nairobi", team_leader_id=tl.id,
    )

    coast_rm = directory_service.create_user(
        name="Coast RM", email="coast.rm@fs.test", role=ROLE_REGIONAL_MANAGER, region="Coast"
    )
    coast_tl = directory_service.create_user(
        name="Coast TL", email="coast.tl@fs.test", role=ROLE_TEAM_LEADER, region="Coast"
    )
    coast_fo = directory_service.create_user(
        name="Coast FO", email="coast.fo@fs.test", role=ROLE_FIELD_OFFICER,
        region="Coast", team_leader_id=coast_tl.id, regional_manager_id=coast_rm.id,
    )

    db_session.commit()
    return SimpleNamespace(
        admin=admin, rm=rm, tl=tl, fo=fo,
        coast_rm=coast_rm, coast_tl=coast_tl, coast_fo=coast_fo,
    )


@pytest.fixture(scope='function')
def product(db_session):
    """Phone with default commissions FO 500, TL 200, RM 100 (cents)."""
    product = directory_service.create_product(
        name="Phone X",
        category="phone",
        brand="Acme",
        price_cents=1_500_000,
        fo_commission_cents=500,
        team_leader_commission_cents=200,
        regional_manager_commission_cents=100,
    )
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def make_device(db_session, org, product):
    """Factory registering IN_STOCK devices with sequential IMEIs."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        kwargs = {
            "imei": f"35693803564{counter['n']:04d}",
            "product_id": product.id,
            "registered_by_user_id": org.admin.id,
        }
        kwargs.update(overrides)
        device = device_service.register_device(**kwargs)
        db_session.commit()
        return device

    return _make


@pytest.fixture(scope='function')
def fo_device(db_session, org, make_device):
    """A device walked down admin -> rm -> tl -> fo in Nairobi."""
    from fieldstock.services import custody_service

    device = make_device()
    custody_service.allocate_device(device.id, org.admin.id, org.rm.id)
    custody_service.allocate_device(device.id, org.rm.id, org.tl.id)
    custody_service.allocate_device(device.id, org.tl.id, org.fo.id)
    db_session.commit()
    return device


def actor_headers(user) -> dict:
    """Helper to create the upstream identity header for a user."""
    return {'X-User-Id': str(user.id)}
