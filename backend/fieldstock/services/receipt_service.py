# Overview: Service-layer operations for receipt numbers; atomic sequence allocation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ReceiptSequence


RECEIPT_SEQUENCE_NAME = "sales"


def next_receipt_number(*, name: str = RECEIPT_SEQUENCE_NAME, pad: int = 6) -> str:
    """
    Atomically allocate the next receipt number (e.g. "RCP-002001").

    The counter is advanced with a single UPDATE, so two concurrent sales
    never share a number. The first call seeds the row at RECEIPT_START.
    Runs inside the caller's transaction; a rolled-back sale gives its
    number back.
    """
    prefix = current_app.config.get("RECEIPT_PREFIX", "RCP")
    start = current_app.config.get("RECEIPT_START", 1)

    stmt = (
        update(ReceiptSequence)
        .where(ReceiptSequence.name == name)
        .values(next_number=ReceiptSequence.next_number + 1)
    )

    def _read_allocated() -> int:
        db.session.flush()
        current = (
            db.session.query(ReceiptSequence.next_number)
            .filter_by(name=name)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        number = _read_allocated()
    else:
        try:
            # Savepoint so a lost first-insert race does not undo the caller's work
            with db.session.begin_nested():
                db.session.add(ReceiptSequence(name=name, next_number=start + 1))
            number = start
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            number = _read_allocated()

    return f"{prefix}-{number:0{pad}d}"
