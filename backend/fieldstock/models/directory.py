from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    Members of the sales hierarchy.

    HIERARCHY: role is one of admin, regional_manager, team_leader,
    field_officer. Field officers report to a team leader (team_leader_id)
    and optionally name a regional manager (regional_manager_id). Both are
    weak lookups, not ownership: deleting or deactivating a manager does not
    cascade to reports.

    Credentials live with the upstream authentication service; this table
    only carries what custody and commission rules need.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_region", "role", "region"),
        db.Index("ix_users_team_leader", "team_leader_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    phone = db.Column(db.String(64), nullable=True)

    role = db.Column(db.String(32), nullable=False, index=True)
    region = db.Column(db.String(64), nullable=True)

    team_leader_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    regional_manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r} role={self.role} region={self.region!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "region": self.region,
            "team_leader_id": self.team_leader_id,
            "regional_manager_id": self.regional_manager_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Catalog entry a device belongs to.

    Carries the list price and the default commission amounts used when a
    device has no commission override of its own. All money is in cents.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    brand = db.Column(db.String(64), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)

    fo_commission_cents = db.Column(db.Integer, nullable=True)
    team_leader_commission_cents = db.Column(db.Integer, nullable=True)
    regional_manager_commission_cents = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "price_cents": self.price_cents,
            "commission_config": {
                "fo_commission_cents": self.fo_commission_cents,
                "team_leader_commission_cents": self.team_leader_commission_cents,
                "regional_manager_commission_cents": self.regional_manager_commission_cents,
            },
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
