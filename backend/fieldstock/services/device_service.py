# Overview: Service-layer operations for the device record store; registration and atomic state transitions.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..constants import DEVICE_SOURCES, DEVICE_STATUS_IN_STOCK
from ..extensions import db
from ..models import Device
from ..validation import (
    ValidationError,
    coerce_id,
    coerce_non_negative_cents,
    normalize_imei,
    require_fields,
)
from .bulk import BulkResult, run_bulk
from .concurrency import conditional_update, lock_for_update
from .directory_service import get_active_user, get_product
from .errors import NotFoundError, ConflictError


def get_device(device_id: int, *, for_update: bool = False) -> Device:
    query = db.session.query(Device).filter_by(id=device_id)
    if for_update:
        # Re-read the row even if an instance is already in the identity map
        query = lock_for_update(query).populate_existing()
    device = query.first()
    if not device:
        raise NotFoundError(f"Device {device_id} not found")
    return device


def register_device(
    *,
    imei: str,
    product_id: int,
    registered_by_user_id: int,
    imei2: str | None = None,
    price_cents: int | None = None,
    source: str = "watu",
    commission_config: dict | None = None,
    notes: str | None = None,
) -> Device:
    """
    Register a new handset into the depot (status IN_STOCK, no holder).

    Raises:
        ValidationError: malformed IMEI, source or amounts
        NotFoundError: unknown product or registering user
        ConflictError: IMEI already registered
    """
    imei = normalize_imei(imei)
    if imei2 is not None:
        imei2 = normalize_imei(imei2, field="imei2")
    if source not in DEVICE_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(DEVICE_SOURCES)}")

    config = commission_config or {}
    fo = coerce_non_negative_cents(config.get("fo_commission_cents"), "fo_commission_cents")
    tl = coerce_non_negative_cents(config.get("team_leader_commission_cents"), "team_leader_commission_cents")
    rm = coerce_non_negative_cents(
        config.get("regional_manager_commission_cents"), "regional_manager_commission_cents"
    )
    price_cents = coerce_non_negative_cents(price_cents, "price_cents")

    get_product(product_id)
    get_active_user(registered_by_user_id)

    if db.session.query(Device.id).filter_by(imei=imei).first():
        raise ConflictError(f"IMEI {imei} is already registered")

    device = Device(
        imei=imei,
        imei2=imei2,
        product_id=product_id,
        price_cents=price_cents,
        status=DEVICE_STATUS_IN_STOCK,
        current_holder_id=None,
        fo_commission_cents=fo,
        team_leader_commission_cents=tl,
        regional_manager_commission_cents=rm,
        source=source,
        notes=notes,
        registered_by_user_id=registered_by_user_id,
        version=1,
    )
    db.session.add(device)
    db.session.flush()
    return device


def transition_device(
    device: Device,
    *,
    status: str,
    holder_id: int | None,
    region: str | None = None,
    sold_at: datetime | None = None,
    sale_id: int | None = None,
) -> Device:
    """
    Move a device to a new status/holder in one conditional UPDATE.

    The write only lands if the row still has the status, holder and version
    this session read. Otherwise another writer got there first and
    ConflictError is raised; nothing is changed.
    """
    values = {
        "status": status,
        "current_holder_id": holder_id,
        "version": Device.version + 1,
    }
    if region is not None:
        values["region"] = region
    if sold_at is not None:
        values["sold_at"] = sold_at
    if sale_id is not None:
        values["sale_id"] = sale_id

    swapped = conditional_update(
        Device,
        ident=device.id,
        expected={
            "status": device.status,
            "current_holder_id": device.current_holder_id,
            "version": device.version,
        },
        values=values,
    )
    if not swapped:
        raise ConflictError(
            f"Device {device.imei} was modified concurrently; reload and retry",
            details={"device_id": device.id},
        )

    db.session.refresh(device)
    return device


def _register_intake_item(item, registered_by_user_id: int) -> Device:
    if not isinstance(item, dict):
        raise ValidationError("Each device entry must be an object")
    require_fields(item, "imei", "product_id")

    commission_config = item.get("commission_config")
    if commission_config is not None and not isinstance(commission_config, dict):
        raise ValidationError("commission_config must be an object")

    return register_device(
        imei=item["imei"],
        imei2=item.get("imei2"),
        product_id=coerce_id(item["product_id"], "product_id"),
        registered_by_user_id=registered_by_user_id,
        price_cents=item.get("price_cents"),
        source=item.get("source") or "watu",
        commission_config=commission_config,
        notes=item.get("notes"),
    )


def bulk_register_devices(items: list, registered_by_user_id: int) -> BulkResult:
    """
    Register a batch of handsets; each entry is committed or rolled back on its own.

    Entries take the same fields as register_device. A duplicate IMEI
    (including one repeated within the batch) fails as CONFLICT, an unknown
    product as NOT_FOUND and a malformed entry as VALIDATION_ERROR.

    Raises:
        NotFoundError: registering user missing or inactive (nothing runs)
    """
    get_active_user(registered_by_user_id, label="Registering user")

    result = run_bulk(
        items,
        lambda item: _register_intake_item(item, registered_by_user_id),
        key_field="imei",
        key_of=lambda item: item.get("imei") if isinstance(item, dict) else None,
    )
    current_app.logger.info(
        "Bulk device intake by user %s: %s registered, %s failed",
        registered_by_user_id, len(result.succeeded), len(result.failed),
    )
    return result
