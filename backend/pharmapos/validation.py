from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from pharmapos.time_utils import parse_iso_date

from sqlalchemy import Date, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bounds: 9,999,999.99 in cents; ten million units
MAX_PRICE_CENTS = 999_999_999
MAX_STOCK_QUANTITY = 10_000_000
INTEGER_TEXT = re.compile(r"^-?\d+$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate handle)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "code",
        "cost_price_cents", "sale_price_cents",
        "stock_quantity", "min_stock_quantity",
        "expiry_date",
    },
    required_on_create={"name", "category", "sale_price_cents"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "document_id", "notes"},
    required_on_create={"name", "phone", "address", "document_id"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Cents and unit counts: whole numbers only ("12", 12). Floats, "12.5" and
    # "1e3" are rejected rather than rounded.
    if isinstance(coltype, Integer):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and INTEGER_TEXT.match(value.strip()):
            return int(value.strip())
        raise ValidationError(f"{col.key} must be a whole number (no decimals or exponents)")

    # Calendar dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
            if d is None:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
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

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("cost_price_cents", "sale_price_cents"):
        price = patch.get(field)
        if price is None:
            continue
        if price < 0:
            raise ValidationError(f"{field} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")

    for field in ("stock_quantity", "min_stock_quantity"):
        qty = patch.get(field)
        if qty is None:
            continue
        if qty < 0:
            raise ValidationError(f"{field} must be >= 0")
        if qty > MAX_STOCK_QUANTITY:
            raise ValidationError(f"{field} cannot exceed {MAX_STOCK_QUANTITY}")
