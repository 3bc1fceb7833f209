# Overview: Shared per-item commit/rollback loop for bulk custody and intake commands.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..validation import ValidationError
from .concurrency import commit_with_retry
from .errors import CustodyError


@dataclass
class BulkResult:
    """Per-item outcome of a bulk command."""
    succeeded: list[str] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
        }


def run_bulk(
    items: list,
    item_op: Callable[[Any], Any],
    *,
    key_field: str,
    key_of: Callable[[Any], Any] = lambda item: item,
) -> BulkResult:
    """
    Run `item_op` for each item, committing or rolling back each one on its own.

    `item_op` returns the device it touched; its IMEI is recorded on success.
    Failures are reported as {key_field: key_of(item), "reason", "error"}.
    """
    result = BulkResult()

    for item in items:
        key = key_of(item)
        try:
            imei = item_op(item).imei
            commit_with_retry()
            result.succeeded.append(imei)
        except (CustodyError, ValidationError) as exc:
            db.session.rollback()
            result.failed.append({key_field: key, "reason": str(exc), "error": exc.code})
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Bulk item %s=%s failed", key_field, key)
            result.failed.append({key_field: key, "reason": str(exc), "error": "DATABASE_ERROR"})

    return result
