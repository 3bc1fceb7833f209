from __future__ import annotations

from ..constants import (
    DEVICE_STATUS_IN_STOCK,
    DEVICE_STATUSES,
    ALLOCATION_STATUS_COMPLETED,
    ALLOCATION_TYPE_ALLOCATION,
)
from ..extensions import db
from ..time_utils import to_utc_z


class Device(db.Model):
    """
    A single serialized handset.

    CUSTODY INVARIANTS:
    - status IN_STOCK  => current_holder_id is NULL (the depot)
    - status ALLOCATED => current_holder_id is NOT NULL
    - status SOLD is terminal; custody operations never touch a sold device

    region is stamped only when a regional manager receives the device and is
    not propagated further down the hierarchy.

    CONCURRENCY: version is bumped by every custody/sale transition. Writers
    issue a conditional UPDATE keyed on (id, status, current_holder_id,
    version) and treat a zero row count as a conflict.
    """
    __tablename__ = "devices"
    __table_args__ = (
        db.Index("ix_devices_status", "status"),
        db.Index("ix_devices_holder_status", "current_holder_id", "status"),
        db.Index("ix_devices_product", "product_id"),
        db.CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in DEVICE_STATUSES)),
            name="ck_devices_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    imei = db.Column(db.String(15), nullable=False, unique=True)
    imei2 = db.Column(db.String(15), nullable=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Overrides Product.price_cents when set
    price_cents = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DEVICE_STATUS_IN_STOCK)
    current_holder_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    region = db.Column(db.String(64), nullable=True)

    # Per-device commission override; all NULL means "use the product defaults"
    fo_commission_cents = db.Column(db.Integer, nullable=True)
    team_leader_commission_cents = db.Column(db.Integer, nullable=True)
    regional_manager_commission_cents = db.Column(db.Integer, nullable=True)

    source = db.Column(db.String(16), nullable=False, default="watu")
    notes = db.Column(db.Text, nullable=True)

    registered_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    registered_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    sale_id = db.Column(db.Integer, nullable=True, index=True)

    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("devices", lazy=True))
    current_holder = db.relationship("User", foreign_keys=[current_holder_id])
    registered_by = db.relationship("User", foreign_keys=[registered_by_user_id])

    def __repr__(self) -> str:
        return f"<Device id={self.id} imei={self.imei} status={self.status} holder={self.current_holder_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "imei": self.imei,
            "imei2": self.imei2,
            "product_id": self.product_id,
            "price_cents": self.price_cents,
            "status": self.status,
            "current_holder_id": self.current_holder_id,
            "region": self.region,
            "commission_config": {
                "fo_commission_cents": self.fo_commission_cents,
                "team_leader_commission_cents": self.team_leader_commission_cents,
                "regional_manager_commission_cents": self.regional_manager_commission_cents,
            },
            "source": self.source,
            "notes": self.notes,
            "registered_by_user_id": self.registered_by_user_id,
            "registered_at": to_utc_z(self.registered_at),
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "sale_id": self.sale_id,
            "version": self.version,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AllocationRecord(db.Model):
    """
    Append-only custody ledger.

    One row per allocation or recall. from_level/to_level snapshot each
    party's role at transfer time so the journey stays readable after role
    changes. Rows are never updated or deleted.

    Statuses PENDING and RETURNED are reserved for approval/return workflows;
    the custody engine writes only COMPLETED (allocations) and RECALLED
    (recalls).
    """
    __tablename__ = "allocation_records"
    __table_args__ = (
        db.Index("ix_alloc_from_created", "from_user_id", "created_at"),
        db.Index("ix_alloc_to_created", "to_user_id", "created_at"),
        db.Index("ix_alloc_device_created", "device_id", "created_at"),
        db.Index("ix_alloc_type_status", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    device_id = db.Column(db.Integer, db.ForeignKey("devices.id"), nullable=False)
    imei = db.Column(db.String(15), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    from_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    from_level = db.Column(db.String(32), nullable=False)
    to_level = db.Column(db.String(32), nullable=False)

    type = db.Column(db.String(16), nullable=False, default=ALLOCATION_TYPE_ALLOCATION)
    status = db.Column(db.String(16), nullable=False, default=ALLOCATION_STATUS_COMPLETED)

    notes = db.Column(db.Text, nullable=True)

    recall_reason = db.Column(db.String(255), nullable=True)
    recalled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    recalled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    device = db.relationship("Device", backref=db.backref("allocation_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "imei": self.imei,
            "product_id": self.product_id,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "from_level": self.from_level,
            "to_level": self.to_level,
            "type": self.type,
            "status": self.status,
            "notes": self.notes,
            "recall_reason": self.recall_reason,
            "recalled_at": to_utc_z(self.recalled_at) if self.recalled_at else None,
            "recalled_by_user_id": self.recalled_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
