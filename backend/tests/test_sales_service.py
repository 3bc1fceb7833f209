"""
Sale recorder tests.

Verifies:
- Device sale moves the device to SOLD and links it to the sale
- Seller rules per role
- Accessory sales and payment method handling
- Sale, device transition and commissions commit together or not at all
"""

import pytest

from fieldstock.constants import DEVICE_STATUS_SOLD, DEVICE_STATUS_ALLOCATED
from fieldstock.extensions import db
from fieldstock.models import Commission, Device, Sale
from fieldstock.services import commission_service, custody_service, sales_service
from fieldstock.services.errors import InvalidStateError, NotFoundError, UnauthorizedError
from fieldstock.validation import ValidationError


def _reload(device_id):
    db.session.expire_all()
    return db.session.get(Device, device_id)


class TestDeviceSale:

    def test_field_officer_sells_own_device(self, db_session, org, fo_device):
        sale = sales_service.record_sale(
            org.fo.id,
            device_id=fo_device.id,
            payment_method="M-Pesa",
            payment_reference="QW123",
            customer_name="Wanjiku",
            customer_phone="0700000000",
        )

        assert sale.receipt_number == "RCP-002001"
        assert sale.payment_method == "mpesa"
        assert sale.imei == fo_device.imei
        assert sale.quantity == 1
        assert sale.unit_price_cents == 1_500_000
        assert sale.sale_amount_cents == 1_500_000
        assert sale.region == "Nairobi"

        device = _reload(fo_device.id)
        assert device.status == DEVICE_STATUS_SOLD
        assert device.sale_id == sale.id
        assert device.sold_at is not None
        assert device.current_holder_id == org.fo.id

    def test_receipt_numbers_increase(self, db_session, org, product, fo_device):
        first = sales_service.record_sale(org.fo.id, device_id=fo_device.id, payment_method="cash")
        second = sales_service.record_sale(org.fo.id, product_id=product.id, quantity=1, payment_method="cash")
        assert (first.receipt_number, second.receipt_number) == ("RCP-002001", "RCP-002002")

    def test_device_price_override(self, db_session, org, make_device):
        device = make_device(price_cents=1_200_000)
        custody_service.allocate_device(device.id, org.admin.id, org.rm.id)
        db_session.commit()

        sale = sales_service.record_sale(org.rm.id, device_id=device.id, payment_method="cash")
        assert sale.sale_amount_cents == 1_200_000

    def test_sold_twice_rejected(self, db_session, org, fo_device):
        sales_service.record_sale(org.fo.id, device_id=fo_device.id, payment_method="cash")
        with pytest.raises(InvalidStateError, match="already been sold"):
            sales_service.record_sale(org.fo.id, device_id=fo_device.id, payment_method="cash")
        assert db_session.query(Sale).count() == 1

    def test_field_officer_cannot_sell_others_device(self, db_session, org, fo_device):
        with pytest.raises(UnauthorizedError):
            sales_service.record_sale(org.coast_fo.id, device_id=fo_device.id, payment_method="cash")
        assert _reload(fo_device.id).status == DEVICE_STATUS_ALLOCATED

    def test_team_leader_sells_team_members_device(self, db_session, org, fo_device):
        sale = sales_service.record_sale(org.tl.id, device_id=fo_device.id, payment_method="cash")
        assert sale.sold_by_user_id == org.tl.id

    def test_team_leader_cannot_sell_other_team(self, db_session, org, fo_device):
        with pytest.raises(UnauthorizedError):
            sales_service.record_sale(org.coast_tl.id, device_id=fo_device.id, payment_method="cash")

    def test_regional_manager_region_rule(self, db_session, org, fo_device):
        with pytest.raises(UnauthorizedError):
            sales_service.record_sale(org.coast_rm.id, device_id=fo_device.id, payment_method="cash")
        sale = sales_service.record_sale(org.rm.id, device_id=fo_device.id, payment_method="cash")
        assert sale.sold_by_user_id == org.rm.id

    def test_regional_manager_stamps_unset_region(self, db_session, org, make_device):
        device = make_device()
        sales_service.record_sale(org.coast_rm.id, device_id=device.id, payment_method="cash")
        assert _reload(device.id).region == "Coast"

    def test_admin_sells_depot_device(self, db_session, org, make_device):
        device = make_device()
        sale = sales_service.record_sale(org.admin.id, device_id=device.id, payment_method="cash")

        device = _reload(device.id)
        assert device.status == DEVICE_STATUS_SOLD
        assert device.current_holder_id is None
        assert sale.region is None

    def test_commission_failure_rolls_back_everything(self, db_session, org, fo_device, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("commission store unavailable")

        monkeypatch.setattr(sales_service, "compute_commissions", boom)

        with pytest.raises(RuntimeError):
            sales_service.record_sale(org.fo.id, device_id=fo_device.id, payment_method="cash")

        device = _reload(fo_device.id)
        assert device.status == DEVICE_STATUS_ALLOCATED
        assert device.sale_id is None
        assert db_session.query(Sale).count() == 0
        assert db_session.query(Commission).count() == 0

    def test_unknown_device(self, db_session, org):
        with pytest.raises(NotFoundError):
            sales_service.record_sale(org.fo.id, device_id=8080, payment_method="cash")


class TestAccessorySale:

    def test_quantity_times_price(self, db_session, org, product):
        sale = sales_service.record_sale(
            org.fo.id, product_id=product.id, quantity=3, payment_method="cash", source="mogo"
        )
        assert sale.device_id is None
        assert sale.sale_amount_cents == 3 * product.price_cents
        assert sale.source == "mogo"
        assert db_session.query(Commission).filter_by(sale_id=sale.id).count() == 0

    def test_unknown_product(self, db_session, org):
        with pytest.raises(NotFoundError):
            sales_service.record_sale(org.fo.id, product_id=4040, quantity=1, payment_method="cash")


class TestInputValidation:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"product_id": 1},
            {"quantity": 2},
            {"device_id": 1, "product_id": 1, "quantity": 1},
            {"product_id": 1, "quantity": 0},
        ],
    )
    def test_bad_combinations(self, db_session, org, kwargs):
        with pytest.raises(ValidationError):
            sales_service.record_sale(org.fo.id, payment_method="cash", **kwargs)

    @pytest.mark.parametrize("method", ["cash", "CASH", "mpesa", "m-pesa", "M-PESA"])
    def test_payment_aliases(self, method):
        assert sales_service.normalize_payment_method(method) in ("cash", "mpesa")

    @pytest.mark.parametrize("method", ["credit", "bank transfer", "", None])
    def test_unknown_payment_method(self, method):
        with pytest.raises(ValidationError):
            sales_service.normalize_payment_method(method)

    def test_unknown_source(self, db_session, org, product):
        with pytest.raises(ValidationError):
            sales_service.record_sale(
                org.fo.id, product_id=product.id, quantity=1, payment_method="cash", source="acme"
            )


class TestSaleLookup:

    def test_get_sale_with_commissions(self, db_session, org, fo_device):
        sale = sales_service.record_sale(org.fo.id, device_id=fo_device.id, payment_method="cash")
        loaded = sales_service.get_sale(sale.id)
        assert len(loaded.commissions) == 3

    def test_get_sale_missing(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_sale(1)

    def test_summary_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            commission_service.commission_summary(1)
