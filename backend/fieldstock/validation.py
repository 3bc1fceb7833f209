from __future__ import annotations

import re
from typing import Any


IMEI_PATTERN = re.compile(r"^\d{15}$")


class ValidationError(ValueError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    status_code = 400


def require_json_object(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def coerce_id(value: Any, field: str) -> int:
    """
    Accept positive integer ids as ints or digit strings.

    Rejects bools, floats and anything with a sign or decimal point.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id")
    if isinstance(value, int):
        if value <= 0:
            raise ValidationError(f"{field} must be a positive integer id")
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return coerce_id(int(value.strip()), field)
    raise ValidationError(f"{field} must be an integer id")


def coerce_id_list(value: Any, field: str) -> list[int]:
    if not isinstance(value, list) or not value:
        raise ValidationError(f"{field} must be a non-empty list of ids")
    return [coerce_id(v, field) for v in value]


def coerce_non_negative_cents(value: Any, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in cents")
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return value


def normalize_imei(value: Any, field: str = "imei") -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string of 15 digits")
    stripped = value.strip()
    if not IMEI_PATTERN.match(stripped):
        raise ValidationError(f"{field} must be exactly 15 digits")
    return stripped
