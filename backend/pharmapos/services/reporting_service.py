# Overview: Service-layer operations for reporting; pure aggregation over a single data snapshot.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

from sqlalchemy import func, text

from ..extensions import db
from ..models import Customer, Product, SaleRecord
from pharmapos.time_utils import to_utc_naive, to_utc_z

PERIOD_WEEKLY = "weekly"
PERIOD_MONTHLY = "monthly"
PERIODS = (PERIOD_WEEKLY, PERIOD_MONTHLY)

PERIOD_LABELS = {
    PERIOD_WEEKLY: "Semanal",
    PERIOD_MONTHLY: "Mensal",
}

WEEKLY_LOOKBACK_DAYS = 7
DEFAULT_MONTHLY_LOOKBACK_DAYS = 30
DEFAULT_TOP_PRODUCTS = 5


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


@dataclass(frozen=True)
class ProductRanking:
    product_name: str
    units: int
    revenue_cents: int

    def to_dict(self) -> dict:
        return {
            "product_name": self.product_name,
            "units": self.units,
            "revenue_cents": self.revenue_cents,
        }


@dataclass(frozen=True)
class DailyBucket:
    day: date
    units: int
    revenue_cents: int

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "units": self.units,
            "revenue_cents": self.revenue_cents,
        }


@dataclass(frozen=True)
class Summary:
    period: str
    window_start: datetime
    window_end: datetime
    total_units: int = 0
    total_revenue_cents: int = 0
    sale_count: int = 0
    ranking: list[ProductRanking] = field(default_factory=list)
    daily: list[DailyBucket] = field(default_factory=list)
    top_products: list[ProductRanking] = field(default_factory=list)
    current_stock_value_cents: int = 0
    total_stock_units: int = 0

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "window_start": to_utc_z(self.window_start),
            "window_end": to_utc_z(self.window_end),
            "total_units": self.total_units,
            "total_revenue_cents": self.total_revenue_cents,
            "sale_count": self.sale_count,
            "ranking": [r.to_dict() for r in self.ranking],
            "daily": [b.to_dict() for b in self.daily],
            "top_products": [r.to_dict() for r in self.top_products],
            "current_stock_value_cents": self.current_stock_value_cents,
            "total_stock_units": self.total_stock_units,
        }


@dataclass(frozen=True)
class ReportSnapshot:
    """Sale records (newest first) and products read in one transaction."""
    records: list  # SaleRecord column rows
    products: list  # Product column rows (id, name, sale_price_cents, stock_quantity)


def parse_period(value: str | None) -> str:
    period = (value or PERIOD_WEEKLY).strip().lower()
    if period not in PERIODS:
        raise ReportError("period must be weekly or monthly")
    return period


def period_window(period: str, *, monthly_lookback_days: int = DEFAULT_MONTHLY_LOOKBACK_DAYS) -> timedelta:
    if period == PERIOD_WEEKLY:
        return timedelta(days=WEEKLY_LOOKBACK_DAYS)
    if period == PERIOD_MONTHLY:
        return timedelta(days=monthly_lookback_days)
    raise ReportError("period must be weekly or monthly")


def filter_period(
    records: Iterable,
    period: str,
    now: datetime,
    *,
    monthly_lookback_days: int = DEFAULT_MONTHLY_LOOKBACK_DAYS,
) -> list:
    """Records with occurred_at >= now - window; the lower bound is inclusive."""
    start = now - period_window(period, monthly_lookback_days=monthly_lookback_days)
    return [r for r in records if to_utc_naive(r.occurred_at) >= start]


def stock_totals(products: Iterable) -> tuple[int, int]:
    """(stock value in cents, stock units) over all products, period-independent."""
    value = 0
    units = 0
    for p in products:
        value += p.sale_price_cents * p.stock_quantity
        units += p.stock_quantity
    return value, units


def summarize(
    records: Iterable,
    period: str,
    now: datetime,
    products: Iterable = (),
    *,
    monthly_lookback_days: int = DEFAULT_MONTHLY_LOOKBACK_DAYS,
    top_n: int = DEFAULT_TOP_PRODUCTS,
) -> Summary:
    """
    Aggregate sale records for a lookback period.

    Pure: same inputs, same Summary. records may be SaleRecord rows or any
    objects exposing product_name_snapshot, quantity, total_cents and
    occurred_at. Products are grouped by their name snapshot, so a renamed
    product reports under each name it was sold as.

    Ranking is units desc then name asc; daily buckets are calendar days
    with at least one sale, ascending; top_products is by revenue desc then
    name asc.
    """
    window = period_window(period, monthly_lookback_days=monthly_lookback_days)
    start = now - window
    in_period = [r for r in records if to_utc_naive(r.occurred_at) >= start]

    per_product: dict[str, list[int]] = {}
    per_day: dict[date, list[int]] = {}
    total_units = 0
    total_revenue = 0

    for r in in_period:
        total_units += r.quantity
        total_revenue += r.total_cents

        product = per_product.setdefault(r.product_name_snapshot, [0, 0])
        product[0] += r.quantity
        product[1] += r.total_cents

        day = per_day.setdefault(to_utc_naive(r.occurred_at).date(), [0, 0])
        day[0] += r.quantity
        day[1] += r.total_cents

    ranking = sorted(
        (ProductRanking(name, units, revenue) for name, (units, revenue) in per_product.items()),
        key=lambda item: (-item.units, item.product_name),
    )
    top_products = sorted(
        ranking,
        key=lambda item: (-item.revenue_cents, item.product_name),
    )[:top_n]
    daily = [
        DailyBucket(day, units, revenue)
        for day, (units, revenue) in sorted(per_day.items())
    ]

    stock_value, stock_units = stock_totals(products)

    return Summary(
        period=period,
        window_start=start,
        window_end=now,
        total_units=total_units,
        total_revenue_cents=total_revenue,
        sale_count=len(in_period),
        ranking=ranking,
        daily=daily,
        top_products=top_products,
        current_stock_value_cents=stock_value,
        total_stock_units=stock_units,
    )


SNAPSHOT_ISOLATION_LEVEL = "REPEATABLE READ"


def _begin_snapshot() -> None:
    if db.engine.dialect.name == "sqlite":
        # pysqlite only opens a transaction before writes
        db.session.execute(text("BEGIN"))
    else:
        db.session.connection(execution_options={"isolation_level": SNAPSHOT_ISOLATION_LEVEL})


def load_report_snapshot() -> ReportSnapshot:
    """
    Read all sale records and all products in one read transaction.

    The aggregator must never see records from one fetch and products
    from another, so both queries share a transaction that is closed here.
    Rows are plain column tuples, not session-tracked objects.

    On SQLite an explicit BEGIN holds one read snapshot for both queries.
    Other engines run the transaction at REPEATABLE READ; their READ
    COMMITTED default would let the second query see newer commits.
    """
    db.session.rollback()
    try:
        _begin_snapshot()
        records = (
            db.session.query(
                SaleRecord.id,
                SaleRecord.product_id,
                SaleRecord.product_name_snapshot,
                SaleRecord.quantity,
                SaleRecord.unit_price_cents_snapshot,
                SaleRecord.total_cents,
                SaleRecord.occurred_at,
            )
            .order_by(SaleRecord.occurred_at.desc(), SaleRecord.id.desc())
            .all()
        )
        products = (
            db.session.query(
                Product.id,
                Product.name,
                Product.sale_price_cents,
                Product.stock_quantity,
            )
            .order_by(Product.name.asc(), Product.id.asc())
            .all()
        )
    finally:
        db.session.rollback()
    return ReportSnapshot(records=records, products=products)


def dashboard_stats(low_stock_limit: int = 10) -> dict:
    """Counts and stock figures shown on the dashboard."""
    customer_count = db.session.query(func.count(Customer.id)).scalar() or 0
    product_count = db.session.query(func.count(Product.id)).scalar() or 0

    low_stock_query = db.session.query(Product).filter(
        Product.stock_quantity <= Product.min_stock_quantity
    )
    low_stock_count = low_stock_query.count()
    alerts = (
        low_stock_query
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .limit(low_stock_limit)
        .all()
    )

    stock_value = db.session.query(
        func.coalesce(func.sum(Product.sale_price_cents * Product.stock_quantity), 0)
    ).scalar()

    return {
        "customer_count": int(customer_count),
        "product_count": int(product_count),
        "low_stock_count": int(low_stock_count),
        "stock_value_cents": int(stock_value or 0),
        "low_stock_alerts": [
            {
                "id": p.id,
                "name": p.name,
                "stock_quantity": p.stock_quantity,
                "min_stock_quantity": p.min_stock_quantity,
            }
            for p in alerts
        ],
    }
