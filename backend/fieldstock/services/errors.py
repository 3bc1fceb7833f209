# Overview: Error taxonomy shared by the custody, sale and commission services.

from __future__ import annotations


class CustodyError(Exception):
    """Base class for business-rule failures raised by the services."""
    code = "ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(CustodyError):
    """A device, user, product, sale or commission reference does not resolve."""
    code = "NOT_FOUND"
    status_code = 404


class InvalidStateError(CustodyError):
    """The record is in a state that does not allow the operation (e.g. SOLD)."""
    code = "INVALID_STATE"
    status_code = 400


class UnauthorizedError(CustodyError):
    """Hierarchy, region or team rule rejected the actor."""
    code = "UNAUTHORIZED"
    status_code = 403


class ConflictError(CustodyError):
    """The record changed between read and write, or a unique value is taken."""
    code = "CONFLICT"
    status_code = 409
