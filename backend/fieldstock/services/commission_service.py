# backend/fieldstock/services/commission_service.py
"""
Commission fan-out and lifecycle.

WHY: A device sale pays up to three people: the seller, the seller's team
leader (when a field officer sells) and the regional manager responsible
for the seller. Amounts come from the device's own commission override or,
when it has none, from the product defaults.

LIFECYCLE:
1. PENDING: created by compute_commissions inside the sale transaction
2. APPROVED: admin approval (PENDING only)
3. PAID: payment recorded (PENDING or APPROVED)
4. REJECTED: terminal (PENDING only)
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, update

from ..constants import (
    ROLE_FIELD_OFFICER,
    ROLE_TEAM_LEADER,
    ROLE_REGIONAL_MANAGER,
    COMMISSION_STATUS_PENDING,
    COMMISSION_STATUS_APPROVED,
    COMMISSION_STATUS_PAID,
    COMMISSION_STATUS_REJECTED,
    COMMISSION_STATUSES,
)
from ..extensions import db
from ..models import Commission, Device, Product, Sale, User
from ..time_utils import utcnow
from .concurrency import lock_for_update
from .directory_service import find_regional_manager, get_active_user
from .errors import InvalidStateError, NotFoundError


@dataclass(frozen=True)
class CommissionConfig:
    fo_cents: int = 0
    team_leader_cents: int = 0
    regional_manager_cents: int = 0

    def amount_for_role(self, role: str) -> int:
        if role == ROLE_FIELD_OFFICER:
            return self.fo_cents
        if role == ROLE_TEAM_LEADER:
            return self.team_leader_cents
        if role == ROLE_REGIONAL_MANAGER:
            return self.regional_manager_cents
        return 0


def _config_from(source) -> CommissionConfig:
    return CommissionConfig(
        fo_cents=source.fo_commission_cents or 0,
        team_leader_cents=source.team_leader_commission_cents or 0,
        regional_manager_cents=source.regional_manager_commission_cents or 0,
    )


def resolve_commission_config(device: Device, product: Product) -> CommissionConfig:
    """
    Device override when any of its three amounts is set, else product defaults.

    The two levels are never mixed: an override with only fo_commission_cents
    set pays nothing to team leaders or regional managers.
    """
    override = (
        device.fo_commission_cents,
        device.team_leader_commission_cents,
        device.regional_manager_commission_cents,
    )
    if any(amount is not None for amount in override):
        return _config_from(device)
    return _config_from(product)


def compute_commissions(sale: Sale, device: Device, seller: User) -> list[Commission]:
    """
    Create the PENDING commission rows for a device sale.

    Runs in the caller's transaction. Returns an empty list when nothing
    qualifies.
    """
    config = resolve_commission_config(device, device.product)
    entries: list[Commission] = []

    def _add(user_id: int, role: str, amount: int) -> None:
        entries.append(Commission(
            sale_id=sale.id,
            user_id=user_id,
            role=role,
            amount_cents=amount,
            status=COMMISSION_STATUS_PENDING,
        ))

    # 1. Seller's own share
    own_amount = config.amount_for_role(seller.role)
    if own_amount > 0:
        _add(seller.id, seller.role, own_amount)

    # 2. Team leader override on field officer sales
    if (
        seller.role == ROLE_FIELD_OFFICER
        and seller.team_leader_id
        and config.team_leader_cents > 0
    ):
        _add(seller.team_leader_id, ROLE_TEAM_LEADER, config.team_leader_cents)

    # 3. Regional manager: explicit link first, then by region
    rm_id = seller.regional_manager_id
    if not rm_id and seller.region and config.regional_manager_cents > 0:
        manager = find_regional_manager(seller.region)
        rm_id = manager.id if manager else None

    if rm_id and config.regional_manager_cents > 0 and rm_id != seller.id:
        _add(rm_id, ROLE_REGIONAL_MANAGER, config.regional_manager_cents)

    if entries:
        db.session.add_all(entries)
        db.session.flush()
    return entries


def get_commission(commission_id: int, *, for_update: bool = False) -> Commission:
    query = db.session.query(Commission).filter_by(id=commission_id)
    if for_update:
        query = lock_for_update(query)
    commission = query.first()
    if not commission:
        raise NotFoundError(f"Commission {commission_id} not found")
    return commission


def approve_commission(commission_id: int, approver_id: int) -> Commission:
    approver = get_active_user(approver_id, label="Approver")
    commission = get_commission(commission_id, for_update=True)

    if commission.status != COMMISSION_STATUS_PENDING:
        raise InvalidStateError(
            f"Commission is already {commission.status.lower()}",
            details={"commission_id": commission.id, "status": commission.status},
        )

    commission.status = COMMISSION_STATUS_APPROVED
    commission.approved_by_user_id = approver.id
    commission.approved_at = utcnow()
    db.session.flush()
    return commission


def reject_commission(commission_id: int, approver_id: int, notes: str | None = None) -> Commission:
    approver = get_active_user(approver_id, label="Approver")
    commission = get_commission(commission_id, for_update=True)

    if commission.status != COMMISSION_STATUS_PENDING:
        raise InvalidStateError(
            f"Only pending commissions can be rejected (status {commission.status})",
            details={"commission_id": commission.id, "status": commission.status},
        )

    commission.status = COMMISSION_STATUS_REJECTED
    commission.approved_by_user_id = approver.id
    commission.approved_at = utcnow()
    if notes:
        commission.notes = notes
    db.session.flush()
    return commission


def pay_commission(commission_id: int, payment_reference: str | None = None) -> Commission:
    commission = get_commission(commission_id, for_update=True)

    if commission.status == COMMISSION_STATUS_PAID:
        raise InvalidStateError("Commission already paid", details={"commission_id": commission.id})
    if commission.status == COMMISSION_STATUS_REJECTED:
        raise InvalidStateError("Rejected commissions cannot be paid", details={"commission_id": commission.id})

    commission.status = COMMISSION_STATUS_PAID
    commission.paid_at = utcnow()
    commission.payment_reference = payment_reference
    db.session.flush()
    return commission


def bulk_approve_commissions(commission_ids: list[int], approver_id: int) -> int:
    """Approve every PENDING commission in `commission_ids`; returns rows changed."""
    approver = get_active_user(approver_id, label="Approver")
    stmt = (
        update(Commission)
        .where(
            Commission.id.in_(commission_ids),
            Commission.status == COMMISSION_STATUS_PENDING,
        )
        .values(
            status=COMMISSION_STATUS_APPROVED,
            approved_by_user_id=approver.id,
            approved_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def bulk_pay_commissions(commission_ids: list[int], payment_reference: str | None = None) -> int:
    """Mark every PENDING or APPROVED commission in `commission_ids` paid."""
    stmt = (
        update(Commission)
        .where(
            Commission.id.in_(commission_ids),
            Commission.status.in_([COMMISSION_STATUS_PENDING, COMMISSION_STATUS_APPROVED]),
        )
        .values(
            status=COMMISSION_STATUS_PAID,
            paid_at=utcnow(),
            payment_reference=payment_reference,
        )
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def commission_summary(user_id: int) -> dict:
    """
    Per-user totals and counts by status.

    total_earned counts every commission that was not rejected.
    """
    if not db.session.get(User, user_id):
        raise NotFoundError(f"User {user_id} not found")

    rows = (
        db.session.query(
            Commission.status,
            func.coalesce(func.sum(Commission.amount_cents), 0),
            func.count(Commission.id),
        )
        .filter(Commission.user_id == user_id)
        .group_by(Commission.status)
        .all()
    )

    by_status = {status: {"total_cents": 0, "count": 0} for status in COMMISSION_STATUSES}
    for status, total, count in rows:
        by_status[status] = {"total_cents": int(total), "count": count}

    total_earned = sum(
        entry["total_cents"]
        for status, entry in by_status.items()
        if status != COMMISSION_STATUS_REJECTED
    )

    return {
        "user_id": user_id,
        "by_status": by_status,
        "total_earned_cents": total_earned,
    }
