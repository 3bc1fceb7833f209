"""
Hierarchy policy for custody transfers.

The organization has a fixed chain of command:

    admin -> regional_manager -> team_leader -> field_officer

Stock only moves one step down the chain on allocation. Recall moves it back
up to the recaller (or to the depot when an admin recalls). The pure rules
(`allowed_allocation_target`, `rank`, `can_recall`) depend only on roles.
`validate_allocation` and `validate_recall` add the structural checks that
need the parties' records: current holder, region and team membership.
"""
from __future__ import annotations

from ..constants import (
    ROLE_ADMIN,
    ROLE_REGIONAL_MANAGER,
    ROLE_TEAM_LEADER,
    ROLE_FIELD_OFFICER,
)
from ..validation import ValidationError
from .errors import UnauthorizedError


ALLOCATION_TARGETS = {
    ROLE_ADMIN: ROLE_REGIONAL_MANAGER,
    ROLE_REGIONAL_MANAGER: ROLE_TEAM_LEADER,
    ROLE_TEAM_LEADER: ROLE_FIELD_OFFICER,
}

# Lower number = higher authority
ROLE_RANKS = {
    ROLE_ADMIN: 0,
    ROLE_REGIONAL_MANAGER: 1,
    ROLE_TEAM_LEADER: 2,
    ROLE_FIELD_OFFICER: 3,
}


def allowed_allocation_target(from_role: str) -> str | None:
    """Role a holder of `from_role` may allocate to, or None."""
    return ALLOCATION_TARGETS.get(from_role)


def rank(role: str) -> int:
    try:
        return ROLE_RANKS[role]
    except KeyError:
        raise ValidationError(f"Unknown role: {role}")


def can_recall(recaller_role: str, holder_role: str) -> bool:
    if recaller_role == ROLE_ADMIN:
        return True
    return rank(recaller_role) < rank(holder_role)


def validate_allocation(from_user, to_user, device) -> None:
    """
    Raise UnauthorizedError unless `from_user` may hand `device` to `to_user`.

    Admin allocates from the depot or over any current holder; every other
    role must currently hold the device.
    """
    target = allowed_allocation_target(from_user.role)
    if target is None or to_user.role != target:
        raise UnauthorizedError(f"Cannot allocate from {from_user.role} to {to_user.role}")

    if from_user.role != ROLE_ADMIN and device.current_holder_id != from_user.id:
        raise UnauthorizedError(
            f"{from_user.role} {from_user.id} does not hold device {device.imei}"
        )

    if from_user.role == ROLE_REGIONAL_MANAGER and to_user.region != from_user.region:
        raise UnauthorizedError(
            f"Cannot allocate from regional_manager in region {from_user.region!r} "
            f"to team_leader in region {to_user.region!r}"
        )

    if from_user.role == ROLE_TEAM_LEADER and to_user.team_leader_id != from_user.id:
        raise UnauthorizedError(
            f"field_officer {to_user.id} is not on team_leader {from_user.id}'s team"
        )


def validate_recall(recaller, holder) -> None:
    """
    Raise UnauthorizedError unless `recaller` may take custody back from `holder`.

    Rank alone is not enough below admin: regional managers stay inside their
    region and team leaders may only recall from their own field officers.
    """
    if recaller.role == ROLE_ADMIN:
        return

    if not can_recall(recaller.role, holder.role):
        raise UnauthorizedError(
            f"Cannot recall from {holder.role} as {recaller.role}: holder is at same or higher level"
        )

    if recaller.role == ROLE_REGIONAL_MANAGER and holder.region != recaller.region:
        raise UnauthorizedError(
            f"Cannot recall from {holder.role} in region {holder.region!r} "
            f"as regional_manager of region {recaller.region!r}"
        )

    if recaller.role == ROLE_TEAM_LEADER and holder.team_leader_id != recaller.id:
        raise UnauthorizedError(
            f"{holder.role} {holder.id} is not on team_leader {recaller.id}'s team"
        )
