from __future__ import annotations
from datetime import datetime
from assetledger.errors import ValidationError
from assetledger.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Largest value an INTEGER column holds on every supported backend
MAX_INT = 2_147_483_647


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - aliases: wire (camelCase) key -> column key
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] = field(default_factory=dict)


OFFICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "parent_id"},
    required_on_create={"name", "code"},
    aliases={"parentId": "parent_id"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

UNIT_POLICY = CATEGORY_POLICY

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category_id", "unit_id"},
    required_on_create={"name"},
    aliases={"categoryId": "category_id", "unitId": "unit_id"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _in_column_range(value: int, name: str) -> int:
    if not -MAX_INT <= value <= MAX_INT:
        raise ValidationError(f"{name} is out of range (max {MAX_INT})")
    return value


def coerce_int(value: Any, name: str) -> int:
    """Strict integer parsing: rejects bools, floats, decimals, scientific notation and out-of-range values."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return _in_column_range(value, name)
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return _in_column_range(int(stripped), name)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def positive_int(value: Any, name: str) -> int:
    """Service-level quantity check: a real int in 1..MAX_INT."""
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(f"{name} must be greater than 0")
    return _in_column_range(value, name)


def coerce_datetime(value: Any, name: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{name} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{name} must be a datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, DateTime):
        return coerce_datetime(value, col.key)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool = False,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {policy.aliases.get(k, k): v for k, v in payload.items()}

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_fields(payload: dict | None, *names: str) -> dict:
    """Ensure a JSON object body carries every named key (values may still be null)."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [n for n in names if payload.get(n) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def parse_purchase_lines(raw_lines: Any) -> list[dict]:
    """
    Normalize purchase lines from the wire.

    Accepts {"itemId", "quantity", "unitPriceCents", "warrantyExpiry"?,
    "serialNumbers"?} per line.
    """
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("items must be a non-empty list")
    lines = []
    for raw in raw_lines:
        require_fields(raw, "itemId", "quantity")
        price = coerce_int(raw.get("unitPriceCents", 0), "unitPriceCents")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"unitPriceCents cannot exceed {MAX_PRICE_CENTS}")
        serials = raw.get("serialNumbers") or []
        if not isinstance(serials, list):
            raise ValidationError("serialNumbers must be a list")
        lines.append({
            "item_id": coerce_int(raw["itemId"], "itemId"),
            "quantity": coerce_int(raw["quantity"], "quantity"),
            "unit_price_cents": price,
            "warranty_expiry": coerce_datetime(raw.get("warrantyExpiry"), "warrantyExpiry"),
            "serial_numbers": [str(s).strip() for s in serials],
        })
    return lines
