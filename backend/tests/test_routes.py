"""
HTTP API tests.

Verifies:
- Actor resolution (401) and admin gates (403)
- Error taxonomy maps to status codes
- Allocation, bulk, recall, sale and commission endpoints end to end
"""

import pytest

from conftest import actor_headers
from fieldstock.constants import DEVICE_STATUS_IN_STOCK, DEVICE_STATUS_SOLD, ROLE_REGIONAL_MANAGER
from fieldstock.extensions import db
from fieldstock.models import AllocationRecord, Commission, Device
from fieldstock.services import directory_service


def _device(device_id):
    db.session.expire_all()
    return db.session.get(Device, device_id)


# =============================================================================
# ACTOR RESOLUTION
# =============================================================================


class TestActorRequired:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/stock-allocations"),
            ("POST", "/api/stock-allocations/bulk"),
            ("POST", "/api/stock-allocations/recall"),
            ("GET", "/api/stock-allocations/available-stock"),
            ("POST", "/api/devices"),
            ("POST", "/api/devices/bulk"),
            ("POST", "/api/sales"),
            ("PUT", "/api/commissions/bulk-pay"),
        ],
    )
    def test_missing_header(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user(self, client, db_session):
        resp = client.get("/api/stock-allocations/available-stock", headers={"X-User-Id": "99999"})
        assert resp.status_code == 401

    def test_non_admin_cannot_register(self, client, org, product):
        resp = client.post(
            "/api/devices",
            json={"imei": "356938035640001", "product_id": product.id},
            headers=actor_headers(org.rm),
        )
        assert resp.status_code == 403


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# DEVICES
# =============================================================================


class TestDevices:

    def test_register_and_fetch(self, client, org, product):
        resp = client.post(
            "/api/devices",
            json={
                "imei": "356938035640001",
                "product_id": product.id,
                "commission_config": {"fo_commission_cents": 100},
            },
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 201
        device = resp.json["device"]
        assert device["status"] == DEVICE_STATUS_IN_STOCK
        assert device["current_holder_id"] is None
        assert device["commission_config"]["fo_commission_cents"] == 100

        resp = client.get(f"/api/devices/{device['id']}", headers=actor_headers(org.fo))
        assert resp.status_code == 200
        assert resp.json["device"]["imei"] == "356938035640001"

    def test_duplicate_imei(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/devices",
            json={"imei": device.imei, "product_id": device.product_id},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 409

    def test_bad_imei(self, client, org, product):
        resp = client.post(
            "/api/devices",
            json={"imei": "12345", "product_id": product.id},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_bulk_register(self, client, org, product, make_device):
        existing = make_device()
        resp = client.post(
            "/api/devices/bulk",
            json={"devices": [
                {"imei": "356938035648001", "product_id": product.id},
                {"imei": existing.imei, "product_id": product.id},
                {"imei": "356938035648002", "product_id": 888888},
                {"imei": "35693803564800X", "product_id": product.id},
                {"imei": "356938035648003", "product_id": product.id, "source": "mogo"},
            ]},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 201
        assert resp.json["succeeded"] == ["356938035648001", "356938035648003"]
        failed = {f["imei"]: f["error"] for f in resp.json["failed"]}
        assert failed == {
            existing.imei: "CONFLICT",
            "356938035648002": "NOT_FOUND",
            "35693803564800X": "VALIDATION_ERROR",
        }

        db.session.expire_all()
        device = db.session.query(Device).filter_by(imei="356938035648003").one()
        assert device.source == "mogo"
        assert device.status == DEVICE_STATUS_IN_STOCK

    def test_bulk_register_admin_only(self, client, org, product):
        resp = client.post(
            "/api/devices/bulk",
            json={"devices": [{"imei": "356938035648001", "product_id": product.id}]},
            headers=actor_headers(org.rm),
        )
        assert resp.status_code == 403
        assert db.session.query(Device).count() == 0

    def test_bulk_register_needs_list(self, client, org):
        resp = client.post(
            "/api/devices/bulk",
            json={"devices": []},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "VALIDATION_ERROR"

    def test_missing_device(self, client, org):
        resp = client.get("/api/devices/777777", headers=actor_headers(org.admin))
        assert resp.status_code == 404


# =============================================================================
# ALLOCATIONS
# =============================================================================


class TestAllocations:

    def test_allocate_by_id(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": device.id, "to_user_id": org.rm.id, "notes": "batch 1"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 201
        assert resp.json["allocation"]["to_user_id"] == org.rm.id
        assert _device(device.id).current_holder_id == org.rm.id

    def test_allocate_by_name(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": device.id, "to_user_name": "Coast RM"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 201
        assert _device(device.id).region == "Coast"

    def test_recipient_must_be_given_once(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": device.id, "to_user_id": org.rm.id, "to_user_name": "Nairobi RM"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 400

    def test_unknown_recipient_name(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": device.id, "to_user_name": "Nobody"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 404

    def test_ambiguous_recipient_name(self, client, org, make_device):
        device = make_device()
        directory_service.create_user(
            name="Nairobi RM", email="rm2@fs.test", role=ROLE_REGIONAL_MANAGER, region="Nairobi"
        )
        db.session.commit()

        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": device.id, "to_user_name": "Nairobi RM"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 404
        assert resp.json["code"] == "NOT_FOUND"
        assert db.session.query(AllocationRecord).count() == 0
        assert _device(device.id).current_holder_id is None

    def test_hierarchy_violation_is_403(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": device.id, "to_user_id": org.fo.id},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 403
        assert resp.json["code"] == "UNAUTHORIZED"

    def test_sold_device_is_400(self, client, org, fo_device):
        client.post(
            "/api/sales",
            json={"device_id": fo_device.id, "payment_method": "cash"},
            headers=actor_headers(org.fo),
        )
        resp = client.post(
            "/api/stock-allocations",
            json={"device_id": fo_device.id, "to_user_id": org.rm.id},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_STATE"

    def test_bulk_allocate(self, client, org, make_device):
        devices = [make_device() for _ in range(3)]
        resp = client.post(
            "/api/stock-allocations/bulk",
            json={"device_ids": [d.id for d in devices] + [616161], "to_user_id": org.rm.id},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 200
        assert len(resp.json["succeeded"]) == 3
        assert resp.json["failed"][0]["device_id"] == 616161
        assert resp.json["failed"][0]["error"] == "NOT_FOUND"

    def test_bulk_unknown_recipient(self, client, org, make_device):
        device = make_device()
        resp = client.post(
            "/api/stock-allocations/bulk",
            json={"device_ids": [device.id], "to_user_name": "Nobody"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 404
        assert _device(device.id).current_holder_id is None

    def test_recall_and_bulk_recall(self, client, org, fo_device, make_device):
        resp = client.post(
            "/api/stock-allocations/recall",
            json={"device_id": fo_device.id, "reason": "customer returned"},
            headers=actor_headers(org.tl),
        )
        assert resp.status_code == 200
        assert resp.json["recall"]["recall_reason"] == "customer returned"

        resp = client.post(
            "/api/stock-allocations/bulk-recall",
            json={"device_ids": [fo_device.id]},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 200
        assert resp.json["succeeded"] == [fo_device.imei]
        assert _device(fo_device.id).status == DEVICE_STATUS_IN_STOCK

    def test_read_side(self, client, org, fo_device):
        resp = client.get("/api/stock-allocations/allocatable-users", headers=actor_headers(org.tl))
        assert [u["id"] for u in resp.json["users"]] == [org.fo.id]

        resp = client.get("/api/stock-allocations/available-stock", headers=actor_headers(org.fo))
        assert [d["id"] for d in resp.json["devices"]] == [fo_device.id]

        resp = client.get("/api/stock-allocations/recallable-stock", headers=actor_headers(org.rm))
        assert [d["id"] for d in resp.json["devices"]] == [fo_device.id]

        resp = client.get(f"/api/stock-allocations/journey/{fo_device.id}", headers=actor_headers(org.admin))
        assert resp.status_code == 200
        assert len(resp.json["timeline"]) == 4


# =============================================================================
# SALES AND COMMISSIONS
# =============================================================================


class TestSalesAndCommissions:

    def test_sale_then_commission_lifecycle(self, client, org, fo_device):
        resp = client.post(
            "/api/sales",
            json={"device_id": fo_device.id, "payment_method": "m-pesa", "customer_name": "Otieno"},
            headers=actor_headers(org.fo),
        )
        assert resp.status_code == 201
        sale = resp.json["sale"]
        assert sale["receipt_number"] == "RCP-002001"
        assert len(sale["commissions"]) == 3
        assert _device(fo_device.id).status == DEVICE_STATUS_SOLD

        resp = client.get(f"/api/sales/{sale['id']}", headers=actor_headers(org.fo))
        assert resp.status_code == 200

        ids = [c["id"] for c in sale["commissions"]]

        resp = client.put(f"/api/commissions/{ids[0]}/approve", headers=actor_headers(org.fo))
        assert resp.status_code == 403

        resp = client.put(f"/api/commissions/{ids[0]}/approve", headers=actor_headers(org.admin))
        assert resp.status_code == 200
        assert resp.json["commission"]["status"] == "APPROVED"

        resp = client.put(f"/api/commissions/{ids[0]}/approve", headers=actor_headers(org.admin))
        assert resp.status_code == 400

        resp = client.put(
            f"/api/commissions/{ids[1]}/reject", json={"notes": "wrong team"}, headers=actor_headers(org.admin)
        )
        assert resp.status_code == 200

        resp = client.put(
            "/api/commissions/bulk-pay",
            json={"commission_ids": ids, "payment_reference": "BATCH-9"},
            headers=actor_headers(org.admin),
        )
        assert resp.status_code == 200
        assert resp.json["count"] == 2

        resp = client.put(f"/api/commissions/{ids[0]}/pay", headers=actor_headers(org.admin))
        assert resp.status_code == 400

        db.session.expire_all()
        statuses = sorted(db.session.get(Commission, i).status for i in ids)
        assert statuses == ["PAID", "PAID", "REJECTED"]

    def test_bulk_approve(self, client, org, fo_device):
        resp = client.post(
            "/api/sales",
            json={"device_id": fo_device.id, "payment_method": "cash"},
            headers=actor_headers(org.fo),
        )
        ids = [c["id"] for c in resp.json["sale"]["commissions"]]

        resp = client.put(
            "/api/commissions/bulk-approve", json={"commission_ids": ids}, headers=actor_headers(org.admin)
        )
        assert resp.status_code == 200
        assert resp.json["count"] == 3

    def test_summary_self_or_admin(self, client, org, fo_device):
        client.post(
            "/api/sales",
            json={"device_id": fo_device.id, "payment_method": "cash"},
            headers=actor_headers(org.fo),
        )

        resp = client.get(f"/api/commissions/summary/{org.fo.id}", headers=actor_headers(org.fo))
        assert resp.status_code == 200
        assert resp.json["by_status"]["PENDING"] == {"total_cents": 500, "count": 1}

        resp = client.get(f"/api/commissions/summary/{org.fo.id}", headers=actor_headers(org.tl))
        assert resp.status_code == 403

        resp = client.get(f"/api/commissions/summary/{org.fo.id}", headers=actor_headers(org.admin))
        assert resp.status_code == 200

    def test_wrong_seller_is_403(self, client, org, fo_device):
        resp = client.post(
            "/api/sales",
            json={"device_id": fo_device.id, "payment_method": "cash"},
            headers=actor_headers(org.coast_fo),
        )
        assert resp.status_code == 403

    def test_unknown_payment_method(self, client, org, fo_device):
        resp = client.post(
            "/api/sales",
            json={"device_id": fo_device.id, "payment_method": "credit"},
            headers=actor_headers(org.fo),
        )
        assert resp.status_code == 400
