# backend/fieldstock/services/custody_service.py
"""
Custody transfer engine.

WHY: A handset moves down the sales hierarchy one step at a time until a
field officer sells it, and can be pulled back up at any point before the
sale. Every move is validated against the hierarchy policy, applied to the
device with a conditional update, and recorded in the append-only custody
ledger.

TRANSITIONS:
1. IN_STOCK  -> ALLOCATED: admin allocates from the depot to a regional manager
2. ALLOCATED -> ALLOCATED: allocation one step down, or a non-admin recall
3. ALLOCATED -> IN_STOCK:  admin recall back to the depot
SOLD devices are never touched here.

Single-item operations flush but do not commit; the caller owns the
transaction. Bulk operations commit each successful item on its own.
"""
from __future__ import annotations

from flask import current_app

from ..constants import (
    ROLE_ADMIN,
    ROLE_REGIONAL_MANAGER,
    ROLE_TEAM_LEADER,
    ROLE_FIELD_OFFICER,
    DEVICE_STATUS_IN_STOCK,
    DEVICE_STATUS_ALLOCATED,
    DEVICE_STATUS_SOLD,
    ALLOCATION_TYPE_ALLOCATION,
    ALLOCATION_TYPE_RECALL,
    ALLOCATION_STATUS_COMPLETED,
    ALLOCATION_STATUS_RECALLED,
)
from ..extensions import db
from ..models import AllocationRecord, Device, User
from ..time_utils import utcnow
from .bulk import BulkResult, run_bulk
from .concurrency import run_with_retry
from .device_service import get_device, transition_device
from .directory_service import get_active_user, resolve_user_by_id
from .errors import InvalidStateError, NotFoundError
from .hierarchy import validate_allocation, validate_recall
from .ledger_service import append_allocation_record, device_history


def allocate_device(
    device_id: int,
    from_user_id: int,
    to_user_id: int,
    notes: str | None = None,
) -> AllocationRecord:
    """
    Hand a device one step down the hierarchy.

    Args:
        device_id: Device to allocate
        from_user_id: Acting user (must hold the device unless admin)
        to_user_id: Resolved recipient id
        notes: Optional free text stored on the ledger record

    Returns:
        AllocationRecord: The ALLOCATION/COMPLETED ledger entry

    Raises:
        NotFoundError: device, actor or recipient missing/inactive
        InvalidStateError: device already sold
        UnauthorizedError: hierarchy, holder, region or team check failed
        ConflictError: device changed between read and write
    """
    def _op():
        device = get_device(device_id, for_update=True)
        if device.status == DEVICE_STATUS_SOLD:
            raise InvalidStateError(f"Cannot allocate sold device {device.imei}")

        from_user = get_active_user(from_user_id, label="Allocating user")
        to_user = resolve_user_by_id(to_user_id)

        validate_allocation(from_user, to_user, device)

        # Region is stamped at the regional-manager tier only
        region = None
        if to_user.role == ROLE_REGIONAL_MANAGER and to_user.region:
            region = to_user.region

        transition_device(
            device,
            status=DEVICE_STATUS_ALLOCATED,
            holder_id=to_user.id,
            region=region,
        )

        record = append_allocation_record(
            device=device,
            from_user=from_user,
            to_user=to_user,
            type=ALLOCATION_TYPE_ALLOCATION,
            status=ALLOCATION_STATUS_COMPLETED,
            notes=notes,
        )

        current_app.logger.info(
            "Allocated device %s from %s %s to %s %s",
            device.imei, from_user.role, from_user.id, to_user.role, to_user.id,
        )
        return record

    return run_with_retry(_op)


def recall_device(
    device_id: int,
    recaller_id: int,
    reason: str | None = None,
) -> AllocationRecord:
    """
    Take custody of a device back from a lower-ranked holder.

    Admin recalls return the device to the depot (IN_STOCK, no holder).
    Any other recaller becomes the new holder and the device stays ALLOCATED.

    Raises:
        NotFoundError: device, recaller or holder missing
        InvalidStateError: device sold, or not held by anyone
        UnauthorizedError: rank, region or team check failed
        ConflictError: device changed between read and write
    """
    def _op():
        device = get_device(device_id, for_update=True)
        if device.status == DEVICE_STATUS_SOLD:
            raise InvalidStateError(f"Cannot recall sold device {device.imei}")
        if device.current_holder_id is None:
            raise InvalidStateError(f"Device {device.imei} is not allocated to anyone")

        recaller = get_active_user(recaller_id, label="Recalling user")
        holder = db.session.get(User, device.current_holder_id)
        if not holder:
            raise NotFoundError(f"Current holder {device.current_holder_id} not found")

        validate_recall(recaller, holder)

        if recaller.role == ROLE_ADMIN:
            transition_device(device, status=DEVICE_STATUS_IN_STOCK, holder_id=None)
        else:
            transition_device(device, status=DEVICE_STATUS_ALLOCATED, holder_id=recaller.id)

        record = append_allocation_record(
            device=device,
            from_user=holder,
            to_user=recaller,
            type=ALLOCATION_TYPE_RECALL,
            status=ALLOCATION_STATUS_RECALLED,
            recall_reason=reason,
            recalled_at=utcnow(),
            recalled_by=recaller,
        )

        current_app.logger.info(
            "Recalled device %s from %s %s by %s %s",
            device.imei, holder.role, holder.id, recaller.role, recaller.id,
        )
        return record

    return run_with_retry(_op)


def bulk_allocate(
    device_ids: list[int],
    from_user_id: int,
    to_user_id: int,
    notes: str | None = None,
) -> BulkResult:
    """
    Allocate each device independently; one failure never stops the batch.

    The actor and recipient are resolved once up front. If either does not
    resolve the whole command fails with NotFoundError before any item runs.
    """
    get_active_user(from_user_id, label="Allocating user")
    resolve_user_by_id(to_user_id)

    result = run_bulk(
        device_ids,
        lambda device_id: allocate_device(device_id, from_user_id, to_user_id, notes),
        key_field="device_id",
    )
    current_app.logger.info(
        "Bulk allocate to user %s: %s allocated, %s failed",
        to_user_id, len(result.succeeded), len(result.failed),
    )
    return result


def bulk_recall(
    device_ids: list[int],
    recaller_id: int,
    reason: str | None = None,
) -> BulkResult:
    """Recall each device independently; one failure never stops the batch."""
    get_active_user(recaller_id, label="Recalling user")

    result = run_bulk(
        device_ids,
        lambda device_id: recall_device(device_id, recaller_id, reason),
        key_field="device_id",
    )
    current_app.logger.info(
        "Bulk recall by user %s: %s recalled, %s failed",
        recaller_id, len(result.succeeded), len(result.failed),
    )
    return result


# =============================================================================
# Read side
# =============================================================================

def _subordinate_query(actor: User):
    """Active users below `actor` that custody rules let it reach, or None."""
    query = db.session.query(User).filter(User.is_active.is_(True))
    if actor.role == ROLE_ADMIN:
        return query.filter(User.role.in_([ROLE_REGIONAL_MANAGER, ROLE_TEAM_LEADER, ROLE_FIELD_OFFICER]))
    if actor.role == ROLE_REGIONAL_MANAGER:
        return query.filter(
            User.region == actor.region,
            User.role.in_([ROLE_TEAM_LEADER, ROLE_FIELD_OFFICER]),
        )
    if actor.role == ROLE_TEAM_LEADER:
        return query.filter(User.team_leader_id == actor.id, User.role == ROLE_FIELD_OFFICER)
    return None


def allocatable_users(actor: User) -> list[User]:
    """Users `actor` may allocate to right now."""
    query = db.session.query(User).filter(User.is_active.is_(True))
    if actor.role == ROLE_ADMIN:
        query = query.filter(User.role == ROLE_REGIONAL_MANAGER)
    elif actor.role == ROLE_REGIONAL_MANAGER:
        query = query.filter(User.role == ROLE_TEAM_LEADER, User.region == actor.region)
    elif actor.role == ROLE_TEAM_LEADER:
        query = query.filter(User.role == ROLE_FIELD_OFFICER, User.team_leader_id == actor.id)
    else:
        return []
    return query.order_by(User.name).all()


def available_stock(actor: User) -> list[Device]:
    """Admin sees the depot; everyone else sees what they hold."""
    query = db.session.query(Device)
    if actor.role == ROLE_ADMIN:
        query = query.filter(Device.status == DEVICE_STATUS_IN_STOCK, Device.current_holder_id.is_(None))
    else:
        query = query.filter(Device.status == DEVICE_STATUS_ALLOCATED, Device.current_holder_id == actor.id)
    return query.order_by(Device.id.desc()).all()


def recallable_stock(actor: User) -> list[Device]:
    """Allocated devices currently held by users below `actor`."""
    subordinates = _subordinate_query(actor)
    if subordinates is None:
        return []
    subordinate_ids = [u.id for u in subordinates.with_entities(User.id).all()]
    if not subordinate_ids:
        return []
    return (
        db.session.query(Device)
        .filter(
            Device.status == DEVICE_STATUS_ALLOCATED,
            Device.current_holder_id.in_(subordinate_ids),
        )
        .order_by(Device.id.desc())
        .all()
    )


def stock_journey(device_id: int) -> dict:
    """
    Timeline of a device from registration through custody moves to sale.

    Returns:
        dict: {"device": ..., "timeline": [...], "history": [...]}
    """
    device = get_device(device_id)
    history = device_history(device_id)

    timeline = [{
        "type": "registered",
        "date": device.to_dict()["registered_at"],
        "user_id": device.registered_by_user_id,
        "details": "Device registered in inventory",
    }]

    for record in history:
        entry = record.to_dict()
        if record.type == ALLOCATION_TYPE_ALLOCATION:
            timeline.append({
                "type": "allocation",
                "date": entry["created_at"],
                "from_user_id": record.from_user_id,
                "to_user_id": record.to_user_id,
                "notes": record.notes,
                "details": f"Allocated from {record.from_level} to {record.to_level}",
            })
        else:
            timeline.append({
                "type": "recall",
                "date": entry["recalled_at"] or entry["created_at"],
                "from_user_id": record.from_user_id,
                "to_user_id": record.to_user_id,
                "reason": record.recall_reason,
                "recalled_by_user_id": record.recalled_by_user_id,
                "details": f"Recalled from {record.from_level} by {record.to_level}",
            })

    if device.status == DEVICE_STATUS_SOLD and device.sold_at:
        timeline.append({
            "type": "sold",
            "date": device.to_dict()["sold_at"],
            "sale_id": device.sale_id,
            "details": "Device sold to customer",
        })

    return {
        "device": device.to_dict(),
        "timeline": timeline,
        "history": [r.to_dict() for r in history],
    }
