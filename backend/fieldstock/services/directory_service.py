# Overview: Service-layer lookups for users and products; resolves references before they reach the custody core.

from __future__ import annotations

from ..constants import ROLES, ROLE_REGIONAL_MANAGER, ROLE_FIELD_OFFICER
from ..extensions import db
from ..models import User, Product
from ..validation import ValidationError
from .errors import NotFoundError, ConflictError


def get_active_user(user_id: int, label: str = "User") -> User:
    """Load an active user or raise NotFoundError."""
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise NotFoundError(f"{label} {user_id} not found")
    return user


def resolve_user_by_id(user_id: int) -> User:
    return get_active_user(user_id, label="Recipient user")


def resolve_user_by_name(name: str) -> User:
    """
    Resolve an active user by exact display name.

    Zero or several matches are both NotFound: the caller must disambiguate
    with an id rather than have one picked for them.
    """
    if not name or not name.strip():
        raise ValidationError("Recipient name is required")

    matches = (
        db.session.query(User)
        .filter(User.name == name.strip(), User.is_active.is_(True))
        .limit(2)
        .all()
    )
    if not matches:
        raise NotFoundError(f"Recipient user not found (searched for: {name})")
    if len(matches) > 1:
        raise NotFoundError(f"Recipient name {name!r} is ambiguous; use a user id")
    return matches[0]


def find_regional_manager(region: str | None) -> User | None:
    """First active regional manager for a region, by id for stable results."""
    if not region:
        return None
    return (
        db.session.query(User)
        .filter(
            User.role == ROLE_REGIONAL_MANAGER,
            User.region == region,
            User.is_active.is_(True),
        )
        .order_by(User.id)
        .first()
    )


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_user(
    *,
    name: str,
    email: str,
    role: str,
    region: str | None = None,
    team_leader_id: int | None = None,
    regional_manager_id: int | None = None,
    phone: str | None = None,
) -> User:
    """
    Create a hierarchy member (used by the CLI and fixtures).

    Only field officers carry a team_leader_id.
    """
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")
    if team_leader_id is not None and role != ROLE_FIELD_OFFICER:
        raise ValidationError("team_leader_id can only be set for field officers")

    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError(f"User with email {email} already exists")

    user = User(
        name=name.strip(),
        email=email,
        role=role,
        region=region,
        team_leader_id=team_leader_id,
        regional_manager_id=regional_manager_id,
        phone=phone,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def create_product(
    *,
    name: str,
    category: str,
    price_cents: int,
    brand: str | None = None,
    fo_commission_cents: int | None = None,
    team_leader_commission_cents: int | None = None,
    regional_manager_commission_cents: int | None = None,
) -> Product:
    if price_cents is None or price_cents < 0:
        raise ValidationError("price_cents must be a non-negative integer")

    product = Product(
        name=name.strip(),
        category=category,
        brand=brand,
        price_cents=price_cents,
        fo_commission_cents=fo_commission_cents,
        team_leader_commission_cents=team_leader_commission_cents,
        regional_manager_commission_cents=regional_manager_commission_cents,
        is_active=True,
    )
    db.session.add(product)
    db.session.flush()
    return product
