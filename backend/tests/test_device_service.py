"""
Device record store tests.

Verifies:
- Bulk intake registers each entry on its own and reports per-entry failures
- Device status is restricted to the known vocabulary at the database level
"""

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from fieldstock.constants import DEVICE_STATUS_IN_STOCK
from fieldstock.extensions import db
from fieldstock.models import Device
from fieldstock.services import device_service
from fieldstock.services.errors import NotFoundError


class TestBulkIntake:

    def test_partial_success(self, db_session, org, product, make_device):
        existing = make_device()
        items = [
            {"imei": "356938035649001", "product_id": product.id},
            {"imei": existing.imei, "product_id": product.id},
            {"imei": "356938035649002", "product_id": 888888},
            {"imei": "12345", "product_id": product.id},
            {"imei": "356938035649003", "product_id": product.id, "price_cents": 1_200_000},
            {"imei": "356938035649001", "product_id": product.id},
        ]

        result = device_service.bulk_register_devices(items, org.admin.id)

        assert result.succeeded == ["356938035649001", "356938035649003"]
        assert [(f["imei"], f["error"]) for f in result.failed] == [
            (existing.imei, "CONFLICT"),
            ("356938035649002", "NOT_FOUND"),
            ("12345", "VALIDATION_ERROR"),
            ("356938035649001", "CONFLICT"),
        ]

        db.session.expire_all()
        registered = db.session.query(Device).filter(
            Device.imei.in_(result.succeeded)
        ).all()
        assert len(registered) == 2
        for device in registered:
            assert device.status == DEVICE_STATUS_IN_STOCK
            assert device.current_holder_id is None
            assert device.registered_by_user_id == org.admin.id
        assert db.session.query(Device).filter_by(imei="356938035649002").count() == 0

    def test_malformed_entry_is_reported(self, db_session, org, product):
        result = device_service.bulk_register_devices(
            ["not-an-object", {"product_id": product.id}], org.admin.id
        )

        assert result.succeeded == []
        assert [(f["imei"], f["error"]) for f in result.failed] == [
            (None, "VALIDATION_ERROR"),
            (None, "VALIDATION_ERROR"),
        ]

    def test_unknown_registering_user(self, db_session, org, product):
        with pytest.raises(NotFoundError):
            device_service.bulk_register_devices(
                [{"imei": "356938035649009", "product_id": product.id}], 424242
            )
        assert db.session.query(Device).count() == 0


class TestStatusConstraint:

    def test_unknown_status_rejected(self, db_session, make_device):
        device = make_device()

        with pytest.raises(IntegrityError):
            db.session.execute(
                update(Device).where(Device.id == device.id).values(status="MISPLACED")
            )
        db.session.rollback()

        db.session.expire_all()
        assert db.session.get(Device, device.id).status == DEVICE_STATUS_IN_STOCK
