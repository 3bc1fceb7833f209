# Overview: Service-layer operations for the custody ledger; append-only allocation records.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import AllocationRecord, Device, User
"""
Custody Ledger Invariants (authoritative)

- Append-only: one AllocationRecord per allocation or recall.
- No domain/business logic in the ledger itself; callers validate first.
- Records are written inside the same DB transaction as the device transition they record.
- from_level/to_level are role snapshots taken at transfer time.
"""


def append_allocation_record(
    *,
    device: Device,
    from_user: User,
    to_user: User,
    type: str,
    status: str,
    notes: Optional[str] = None,
    recall_reason: Optional[str] = None,
    recalled_at: Optional[datetime] = None,
    recalled_by: Optional[User] = None,
) -> AllocationRecord:
    """
    Append-only custody record.

    - No domain logic here.
    - No deletes/updates of existing records.
    """
    record = AllocationRecord(
        device_id=device.id,
        imei=device.imei,
        product_id=device.product_id,
        from_user_id=from_user.id,
        to_user_id=to_user.id,
        from_level=from_user.role,
        to_level=to_user.role,
        type=type,
        status=status,
        notes=notes,
        recall_reason=recall_reason,
        recalled_at=recalled_at,
        recalled_by_user_id=recalled_by.id if recalled_by else None,
    )
    db.session.add(record)
    db.session.flush()  # ensures record.id is assigned without committing
    return record


def device_history(device_id: int) -> list[AllocationRecord]:
    """All custody records for a device, oldest first."""
    return (
        db.session.query(AllocationRecord)
        .filter_by(device_id=device_id)
        .order_by(AllocationRecord.created_at.asc(), AllocationRecord.id.asc())
        .all()
    )
