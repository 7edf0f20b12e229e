"""
Sales Service - the inventory ledger's commit path

WHY: A sale is exactly two effects that must land together or not at all:
the product's stock is decremented and a SaleRecord is appended with the
product's name and price frozen at sale time.

PROTOCOL (states: validating -> reserving -> committed | rejected):
1. Validate quantity (positive int) and product id (within INTEGER range).
2. Reserve: read the name/price snapshot, then conditional UPDATE ... SET
   stock = stock - q WHERE id = :id AND stock >= q in the same transaction, and
   commit. Zero rows means not found or insufficient stock; nothing changed.
   This UPDATE is the per-product serialization point: two concurrent
   commits whose combined quantity exceeds stock cannot both pass it.
3. Append the SaleRecord and commit.
4. If 3 fails: compensate by re-incrementing stock and raise
   LedgerInconsistency. Stock left decremented without a matching record is
   never reported as success.

No role check here: callers pass the access policy (products resource)
first. Business errors are never retried; only transient database
contention on the reservation step is.
"""

from __future__ import annotations

from datetime import datetime
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import text, update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, SaleRecord
from pharmapos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .permission_service import log_security_event


class SaleError(Exception):
    """
    Raised for sale commit failures.

    reason is one of: invalid_quantity, product_not_found,
    insufficient_stock, ledger_inconsistent
    """
    INVALID_QUANTITY = "invalid_quantity"
    PRODUCT_NOT_FOUND = "product_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    LEDGER_INCONSISTENT = "ledger_inconsistent"

    def __init__(self, reason: str, message: str | None = None, details: dict | None = None):
        super().__init__(message or reason)
        self.reason = reason
        self.details = details or {}


class LedgerInconsistency(SaleError):
    """
    Stock was decremented but the sale record could not be appended.

    compensated is True when the decrement was reversed, False when the
    reversal failed too (stock is then short by quantity and needs an
    operator).
    """

    def __init__(self, message: str, *, compensated: bool, details: dict | None = None):
        super().__init__(SaleError.LEDGER_INCONSISTENT, message, details)
        self.compensated = compensated


# Largest value a 64-bit INTEGER column holds; ids and stock never exceed it
MAX_INTEGER_VALUE = 2 ** 63 - 1


@dataclass(frozen=True)
class StockReservation:
    product_id: int
    quantity: int
    product_name: str
    unit_price_cents: int


def _validate_quantity(quantity) -> int:
    # bool is an int subclass; True must not sell one unit
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise SaleError(
            SaleError.INVALID_QUANTITY,
            "Quantity must be a positive integer",
            details={"quantity": quantity},
        )
    return quantity


def _check_product_id(product_id) -> int:
    # Outside the INTEGER range no row can match, so the database is not asked
    if isinstance(product_id, bool) or not isinstance(product_id, int) or not 0 < product_id <= MAX_INTEGER_VALUE:
        raise SaleError(
            SaleError.PRODUCT_NOT_FOUND,
            "Product not found",
            details={"product_id": product_id},
        )
    return product_id


def _reserve_stock(product_id: int, quantity: int) -> StockReservation:
    """Phase 1: snapshot plus conditional decrement, committed together."""
    def _reserve():
        if db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))
        row = lock_for_update(
            db.session.query(Product.name, Product.sale_price_cents).filter(Product.id == product_id)
        ).first()
        if row is None:
            raise SaleError(
                SaleError.PRODUCT_NOT_FOUND,
                "Product not found",
                details={"product_id": product_id},
            )

        # Stock is an INTEGER column, so a quantity beyond its range can never
        # be on hand; it is not bound into the UPDATE at all.
        rowcount = 0
        if quantity <= MAX_INTEGER_VALUE:
            rowcount = db.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity >= quantity)
                .values(stock_quantity=Product.stock_quantity - quantity)
                .execution_options(synchronize_session=False)
            ).rowcount

        if rowcount != 1:
            on_hand = db.session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()
            raise SaleError(
                SaleError.INSUFFICIENT_STOCK,
                "Insufficient stock",
                details={
                    "product_id": product_id,
                    "requested_quantity": quantity,
                    "on_hand": int(on_hand or 0),
                },
            )

        db.session.commit()
        return StockReservation(
            product_id=product_id,
            quantity=quantity,
            product_name=row.name,
            unit_price_cents=int(row.sale_price_cents),
        )

    def _op():
        try:
            return _reserve()
        except Exception:
            # Release the write lock taken by BEGIN IMMEDIATE
            db.session.rollback()
            raise

    return run_with_retry(_op)


def _append_sale_record(
    reservation: StockReservation,
    acting_user_id: int | None,
    occurred_at: datetime,
) -> SaleRecord:
    """Phase 2: append the immutable sale record."""
    record = SaleRecord(
        product_id=reservation.product_id,
        product_name_snapshot=reservation.product_name,
        quantity=reservation.quantity,
        unit_price_cents_snapshot=reservation.unit_price_cents,
        total_cents=reservation.quantity * reservation.unit_price_cents,
        occurred_at=occurred_at,
        owner_id=acting_user_id,
    )
    db.session.add(record)
    db.session.commit()
    return record


def _release_stock(reservation: StockReservation) -> None:
    """Compensating action: give the reserved units back."""
    def _op():
        result = db.session.execute(
            update(Product)
            .where(Product.id == reservation.product_id)
            .values(stock_quantity=Product.stock_quantity + reservation.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise LookupError(f"product {reservation.product_id} disappeared before stock could be released")
        db.session.commit()

    run_with_retry(_op)


def _record_inconsistency(acting_user_id: int | None, reason: str) -> None:
    try:
        log_security_event(
            user_id=acting_user_id,
            event_type="LEDGER_INCONSISTENT",
            success=False,
            resource="products",
            action="COMMIT_SALE",
            reason=reason,
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Could not record ledger inconsistency event: %s", reason)


def commit_sale(
    product_id: int,
    quantity: int,
    acting_user_id: int | None,
    occurred_at: datetime | None = None,
) -> SaleRecord:
    """
    Sell quantity units of a product.

    Returns the new SaleRecord. Deliberately not idempotent: two identical
    calls record two sales and decrement twice.

    Raises SaleError (invalid_quantity, product_not_found,
    insufficient_stock) or LedgerInconsistency (ledger_inconsistent).
    """
    quantity = _validate_quantity(quantity)
    product_id = _check_product_id(product_id)
    occurred_at = occurred_at or utcnow()

    reservation = _reserve_stock(product_id, quantity)

    try:
        return _append_sale_record(reservation, acting_user_id, occurred_at)
    except Exception as append_exc:
        # Any failure here leaves stock reserved without a record; always compensate
        db.session.rollback()
        details = {"product_id": product_id, "quantity": quantity}

        try:
            _release_stock(reservation)
        except Exception as release_exc:
            db.session.rollback()
            reason = (
                f"Sale record append failed ({append_exc.__class__.__name__}) and stock release failed "
                f"({release_exc}); product {product_id} is short by {quantity} units"
            )
            current_app.logger.critical("Ledger inconsistency, compensation failed: %s", reason)
            _record_inconsistency(acting_user_id, reason)
            raise LedgerInconsistency(
                "Sale could not be recorded", compensated=False, details=details
            ) from release_exc

        reason = (
            f"Sale record append failed ({append_exc.__class__.__name__}); "
            f"released {quantity} units of product {product_id}"
        )
        current_app.logger.error("Ledger inconsistency, compensated: %s", reason)
        _record_inconsistency(acting_user_id, reason)
        raise LedgerInconsistency(
            "Sale could not be recorded", compensated=True, details=details
        ) from append_exc


def list_sales(since: datetime | None = None, limit: int | None = None) -> list[SaleRecord]:
    """Sale records, newest first."""
    query = db.session.query(SaleRecord)
    if since is not None:
        query = query.filter(SaleRecord.occurred_at >= since)
    query = query.order_by(SaleRecord.occurred_at.desc(), SaleRecord.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_sale(sale_id: int) -> SaleRecord | None:
    return db.session.get(SaleRecord, sale_id)
