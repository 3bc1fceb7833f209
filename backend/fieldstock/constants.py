# Overview: Shared role and status vocabularies for devices, custody records, sales and commissions.

from __future__ import annotations


# -- ROLES (highest authority first) --

ROLE_ADMIN = "admin"
ROLE_REGIONAL_MANAGER = "regional_manager"
ROLE_TEAM_LEADER = "team_leader"
ROLE_FIELD_OFFICER = "field_officer"

ROLES = (
    ROLE_ADMIN,
    ROLE_REGIONAL_MANAGER,
    ROLE_TEAM_LEADER,
    ROLE_FIELD_OFFICER,
)


# -- DEVICE STATUS --

DEVICE_STATUS_IN_STOCK = "IN_STOCK"
DEVICE_STATUS_ALLOCATED = "ALLOCATED"
DEVICE_STATUS_SOLD = "SOLD"
# Maintained by inventory-maintenance features; the custody engine has no transitions for these
DEVICE_STATUS_RETURNED = "RETURNED"
DEVICE_STATUS_DEFECTIVE = "DEFECTIVE"
DEVICE_STATUS_LOCKED = "LOCKED"
DEVICE_STATUS_LOST = "LOST"

DEVICE_STATUSES = (
    DEVICE_STATUS_IN_STOCK,
    DEVICE_STATUS_ALLOCATED,
    DEVICE_STATUS_SOLD,
    DEVICE_STATUS_RETURNED,
    DEVICE_STATUS_DEFECTIVE,
    DEVICE_STATUS_LOCKED,
    DEVICE_STATUS_LOST,
)

DEVICE_SOURCES = ("watu", "mogo", "onfon")


# -- ALLOCATION LEDGER --

ALLOCATION_TYPE_ALLOCATION = "ALLOCATION"
ALLOCATION_TYPE_RECALL = "RECALL"

ALLOCATION_STATUS_PENDING = "PENDING"
ALLOCATION_STATUS_COMPLETED = "COMPLETED"
ALLOCATION_STATUS_RETURNED = "RETURNED"
ALLOCATION_STATUS_RECALLED = "RECALLED"


# -- COMMISSIONS --

COMMISSION_STATUS_PENDING = "PENDING"
COMMISSION_STATUS_APPROVED = "APPROVED"
COMMISSION_STATUS_PAID = "PAID"
COMMISSION_STATUS_REJECTED = "REJECTED"

COMMISSION_STATUSES = (
    COMMISSION_STATUS_PENDING,
    COMMISSION_STATUS_APPROVED,
    COMMISSION_STATUS_PAID,
    COMMISSION_STATUS_REJECTED,
)


# -- PAYMENTS --

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_MPESA = "mpesa"

PAYMENT_METHOD_ALIASES = {
    "cash": PAYMENT_METHOD_CASH,
    "mpesa": PAYMENT_METHOD_MPESA,
    "m-pesa": PAYMENT_METHOD_MPESA,
}
