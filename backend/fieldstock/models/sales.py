from __future__ import annotations

from ..constants import COMMISSION_STATUS_PENDING, PAYMENT_METHOD_CASH
from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    A completed sale to an end customer.

    Device sales reference exactly one Device (quantity 1); accessory sales
    reference only a product and a quantity. All amounts are in cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_sold_by_created", "sold_by_user_id", "created_at"),
        db.Index("ix_sales_region_created", "region", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "RCP-002001")
    receipt_number = db.Column(db.String(32), nullable=False, unique=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    device_id = db.Column(db.Integer, db.ForeignKey("devices.id"), nullable=True)
    imei = db.Column(db.String(15), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    sale_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_CASH)
    payment_reference = db.Column(db.String(128), nullable=True)

    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_id_number = db.Column(db.String(64), nullable=True)

    source = db.Column(db.String(16), nullable=False, default="watu")
    region = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    sold_by = db.relationship("User", foreign_keys=[sold_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "product_id": self.product_id,
            "device_id": self.device_id,
            "imei": self.imei,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "sale_amount_cents": self.sale_amount_cents,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "sold_by_user_id": self.sold_by_user_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_id_number": self.customer_id_number,
            "source": self.source,
            "region": self.region,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Commission(db.Model):
    """
    One beneficiary's share of a sale.

    Rows are created only by the fan-out calculator at sale time, one per
    qualifying beneficiary; a single sale can have up to three.

    LIFECYCLE:
    1. PENDING: Created with the sale
    2. APPROVED: Admin approved
    3. PAID: Payment recorded (from PENDING or APPROVED)
    4. REJECTED: Terminal, from PENDING only
    """
    __tablename__ = "commissions"
    __table_args__ = (
        db.Index("ix_commissions_user_status", "user_id", "status"),
        db.Index("ix_commissions_sale", "sale_id"),
        db.Index("ix_commissions_status", "status"),
        db.CheckConstraint("amount_cents >= 0", name="ck_commissions_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Beneficiary's role at the time of the sale
    role = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=COMMISSION_STATUS_PENDING)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale = db.relationship("Sale", backref=db.backref("commissions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "role": self.role,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "payment_reference": self.payment_reference,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class ReceiptSequence(db.Model):
    """
    Monotonic counter backing receipt numbers.

    One row per sequence name; advanced with a single UPDATE so two
    concurrent sales never share a number.
    """
    __tablename__ = "receipt_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False)
