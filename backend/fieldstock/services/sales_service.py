"""
Sale recorder.

WHY: Selling a device is the end of its custody journey. The sale row, the
device's move to SOLD and the commission rows are written in one unit of
work, so a failure at any step leaves no sold device without a sale and no
sale without its commissions.

Accessory sales (product + quantity) have no device and earn no commission.
"""
from __future__ import annotations

from flask import current_app

from ..constants import (
    ROLE_ADMIN,
    ROLE_REGIONAL_MANAGER,
    ROLE_TEAM_LEADER,
    ROLE_FIELD_OFFICER,
    DEVICE_SOURCES,
    DEVICE_STATUS_SOLD,
    PAYMENT_METHOD_ALIASES,
)
from ..extensions import db
from ..models import Device, Sale, User
from ..time_utils import utcnow
from ..validation import ValidationError
from .commission_service import compute_commissions
from .concurrency import run_with_retry
from .device_service import get_device, transition_device
from .directory_service import get_active_user, get_product
from .errors import InvalidStateError, NotFoundError, UnauthorizedError
from .receipt_service import next_receipt_number


def normalize_payment_method(value) -> str:
    """Map accepted spellings (cash, mpesa, m-pesa; any case) to the stored value."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("payment_method is required")
    method = PAYMENT_METHOD_ALIASES.get(value.strip().lower())
    if method is None:
        raise ValidationError(
            f"Unknown payment_method {value!r}; expected one of: {', '.join(sorted(PAYMENT_METHOD_ALIASES))}"
        )
    return method


def _check_seller_may_sell(seller: User, device: Device) -> str | None:
    """
    Raise UnauthorizedError unless `seller` may sell `device`.

    Returns the region to stamp on the device (regional manager selling an
    unassigned device), or None.
    """
    if seller.role == ROLE_ADMIN:
        return None

    if seller.role == ROLE_REGIONAL_MANAGER:
        if device.region and device.region != seller.region:
            raise UnauthorizedError("You can only sell devices from your region")
        return seller.region if not device.region else None

    if seller.role == ROLE_TEAM_LEADER:
        if device.current_holder_id == seller.id:
            return None
        holder = db.session.get(User, device.current_holder_id) if device.current_holder_id else None
        if holder is None or holder.team_leader_id != seller.id:
            raise UnauthorizedError("You can only sell devices allocated to you or your team members")
        return None

    if seller.role == ROLE_FIELD_OFFICER:
        if device.current_holder_id != seller.id:
            raise UnauthorizedError("You do not have this device in your stock")
        return None

    raise UnauthorizedError(f"Role {seller.role} cannot record sales")


def record_sale(
    seller_id: int,
    *,
    device_id: int | None = None,
    product_id: int | None = None,
    quantity: int | None = None,
    payment_method: str,
    payment_reference: str | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    customer_id_number: str | None = None,
    source: str | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Record a device sale (device_id) or an accessory sale (product_id + quantity).

    Commits on success and rolls back everything on failure.

    Raises:
        ValidationError: bad combination of inputs, payment method or source
        NotFoundError: seller, device or product missing
        InvalidStateError: device already sold
        UnauthorizedError: seller may not sell this device
        ConflictError: device changed while the sale was being recorded
    """
    if device_id is not None and (product_id is not None or quantity is not None):
        raise ValidationError("Provide either device_id or product_id with quantity, not both")
    if device_id is None and (product_id is None or quantity is None):
        raise ValidationError("Either device_id or product_id with quantity is required")
    if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1):
        raise ValidationError("quantity must be a positive integer")

    method = normalize_payment_method(payment_method)
    source = source or "watu"
    if source not in DEVICE_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(DEVICE_SOURCES)}")

    customer = {
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "customer_email": customer_email,
        "customer_id_number": customer_id_number,
    }

    def _device_sale(seller: User) -> Sale:
        device = get_device(device_id, for_update=True)
        if device.status == DEVICE_STATUS_SOLD:
            raise InvalidStateError(
                "This device has already been sold",
                details={"device_id": device.id, "sale_id": device.sale_id},
            )

        stamp_region = _check_seller_may_sell(seller, device)
        product = device.product
        unit_price = device.price_cents if device.price_cents is not None else product.price_cents

        sale = Sale(
            receipt_number=next_receipt_number(),
            product_id=product.id,
            device_id=device.id,
            imei=device.imei,
            quantity=1,
            unit_price_cents=unit_price,
            sale_amount_cents=unit_price,
            payment_method=method,
            payment_reference=payment_reference,
            sold_by_user_id=seller.id,
            source=source,
            region=seller.region,
            notes=notes,
            **customer,
        )
        db.session.add(sale)
        db.session.flush()

        transition_device(
            device,
            status=DEVICE_STATUS_SOLD,
            holder_id=device.current_holder_id,
            region=stamp_region,
            sold_at=utcnow(),
            sale_id=sale.id,
        )

        commissions = compute_commissions(sale, device, seller)
        current_app.logger.info(
            "Sale %s: device %s sold by %s %s, %s commission(s)",
            sale.receipt_number, device.imei, seller.role, seller.id, len(commissions),
        )
        return sale

    def _accessory_sale(seller: User) -> Sale:
        product = get_product(product_id)
        if not product.is_active:
            raise NotFoundError(f"Product {product_id} not found")

        sale = Sale(
            receipt_number=next_receipt_number(),
            product_id=product.id,
            quantity=quantity,
            unit_price_cents=product.price_cents,
            sale_amount_cents=product.price_cents * quantity,
            payment_method=method,
            payment_reference=payment_reference,
            sold_by_user_id=seller.id,
            source=source,
            region=seller.region,
            notes=notes,
            **customer,
        )
        db.session.add(sale)
        db.session.flush()
        current_app.logger.info(
            "Sale %s: %s x product %s sold by %s %s",
            sale.receipt_number, quantity, product.id, seller.role, seller.id,
        )
        return sale

    def _op() -> Sale:
        try:
            seller = get_active_user(seller_id, label="Seller")
            sale = _device_sale(seller) if device_id is not None else _accessory_sale(seller)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale
