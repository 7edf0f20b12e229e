"""
Report aggregator tests.

summarize() is pure, so most tests feed it plain records; the route tests
check that the endpoint reads one snapshot and serializes the summary.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import pytest

from pharmapos.extensions import db
from pharmapos.services import reporting_service, sales_service
from pharmapos.services.reporting_service import ReportError, summarize


NOW = datetime(2026, 5, 20, 12, 0, 0)


@dataclass
class Rec:
    product_name_snapshot: str
    quantity: int
    total_cents: int
    occurred_at: datetime


@dataclass
class Prod:
    name: str
    sale_price_cents: int
    stock_quantity: int


def rec(name, qty, unit_cents, days_ago=0, hours_ago=0):
    return Rec(name, qty, qty * unit_cents, NOW - timedelta(days=days_ago, hours=hours_ago))


class TestSummarize:

    def test_empty_input(self):
        summary = summarize([], "weekly", NOW)

        assert summary.total_units == 0
        assert summary.total_revenue_cents == 0
        assert summary.sale_count == 0
        assert summary.ranking == []
        assert summary.daily == []
        assert summary.top_products == []
        assert summary.current_stock_value_cents == 0

    def test_weekly_window_is_seven_days_inclusive(self):
        on_boundary = Rec("A", 1, 100, NOW - timedelta(days=7))
        just_outside = Rec("B", 1, 100, NOW - timedelta(days=7, seconds=1))

        summary = summarize([on_boundary, just_outside], "weekly", NOW)

        assert summary.total_units == 1
        assert [r.product_name for r in summary.ranking] == ["A"]
        assert summary.window_start == NOW - timedelta(days=7)

    def test_monthly_is_thirty_day_lookback(self):
        records = [rec("A", 1, 100, days_ago=30), rec("B", 1, 100, days_ago=31)]

        summary = summarize(records, "monthly", NOW)

        assert [r.product_name for r in summary.ranking] == ["A"]

    def test_monthly_lookback_is_configurable(self):
        records = [rec("A", 1, 100, days_ago=30)]
        assert summarize(records, "monthly", NOW, monthly_lookback_days=28).total_units == 0

    def test_totals(self):
        records = [
            rec("Paracetamol", 10, 1850),
            rec("Ibuprofeno", 2, 1200, days_ago=1),
            rec("Paracetamol", 3, 1850, days_ago=2),
        ]

        summary = summarize(records, "weekly", NOW)

        assert summary.total_units == 15
        assert summary.total_revenue_cents == 13 * 1850 + 2 * 1200
        assert summary.sale_count == 3

    def test_ranking_units_desc_then_name_asc(self):
        records = [
            rec("Zinco", 5, 100),
            rec("Aspirina", 5, 100),
            rec("Vitamina C", 9, 50),
            rec("Aspirina", 1, 100, days_ago=1),
        ]

        ranking = summarize(records, "weekly", NOW).ranking

        assert [(r.product_name, r.units) for r in ranking] == [
            ("Vitamina C", 9),
            ("Aspirina", 6),
            ("Zinco", 5),
        ]

    def test_daily_buckets_ascending_and_only_days_with_sales(self):
        records = [
            rec("A", 1, 100, days_ago=0),
            rec("A", 2, 100, days_ago=3),
            rec("B", 4, 100, days_ago=3, hours_ago=1),
        ]

        daily = summarize(records, "weekly", NOW).daily

        assert [b.day for b in daily] == [date(2026, 5, 17), date(2026, 5, 20)]
        assert [b.units for b in daily] == [6, 1]
        assert [b.revenue_cents for b in daily] == [600, 100]

    def test_timezone_aware_timestamps_are_read_as_utc(self):
        plus_one = timezone(timedelta(hours=1))
        records = [
            # 2026-05-13 12:00 UTC, exactly on the weekly boundary
            Rec("A", 1, 100, datetime(2026, 5, 13, 13, 0, tzinfo=plus_one)),
            # 2026-05-19 23:30 UTC, a day earlier than its local date
            Rec("B", 2, 200, datetime(2026, 5, 20, 0, 30, tzinfo=plus_one)),
            Rec("C", 4, 400, NOW - timedelta(hours=1)),
        ]

        summary = summarize(records, "weekly", NOW)

        assert summary.total_units == 7
        assert [b.day for b in summary.daily] == [date(2026, 5, 13), date(2026, 5, 19), date(2026, 5, 20)]
        assert [b.units for b in summary.daily] == [1, 2, 4]

    def test_top_products_by_revenue_limited(self):
        records = [rec(f"P{i}", 1, 100 * (i + 1)) for i in range(7)]

        top = summarize(records, "weekly", NOW).top_products

        assert [t.product_name for t in top] == ["P6", "P5", "P4", "P3", "P2"]
        assert len(summarize(records, "weekly", NOW, top_n=3).top_products) == 3

    def test_stock_value_is_independent_of_period(self):
        products = [Prod("A", 1850, 15), Prod("B", 1200, 0), Prod("C", 500, 4)]

        weekly = summarize([], "weekly", NOW, products)
        monthly = summarize([rec("A", 1, 1850, days_ago=20)], "monthly", NOW, products)

        assert weekly.current_stock_value_cents == 1850 * 15 + 500 * 4
        assert weekly.current_stock_value_cents == monthly.current_stock_value_cents
        assert weekly.total_stock_units == 19

    def test_deterministic(self):
        records = [rec("B", 2, 10), rec("A", 2, 10), rec("C", 1, 10, days_ago=4)]
        assert summarize(records, "weekly", NOW) == summarize(list(reversed(records)), "weekly", NOW)

    def test_unknown_period(self):
        with pytest.raises(ReportError):
            summarize([], "yearly", NOW)


class TestParsePeriod:

    @pytest.mark.parametrize("raw,expected", [(None, "weekly"), ("weekly", "weekly"), (" Monthly ", "monthly")])
    def test_valid(self, raw, expected):
        assert reporting_service.parse_period(raw) == expected

    def test_invalid(self):
        with pytest.raises(ReportError):
            reporting_service.parse_period("semanal")


class TestReportSnapshot:

    def test_snapshot_contains_records_newest_first_and_products(self, db_session, product):
        sales_service.commit_sale(product.id, 1, None, occurred_at=NOW - timedelta(days=2))
        sales_service.commit_sale(product.id, 2, None, occurred_at=NOW)

        snapshot = reporting_service.load_report_snapshot()

        assert [r.quantity for r in snapshot.records] == [2, 1]
        assert [p.stock_quantity for p in snapshot.products] == [22]
        # Plain rows, readable after the transaction closed
        assert snapshot.records[0].product_name_snapshot == "Paracetamol 500mg"

    def test_other_engines_read_at_repeatable_read(self, db_session, monkeypatch):
        requested = []
        monkeypatch.setattr(db.engine.dialect, "name", "postgresql")
        monkeypatch.setattr(db.session, "connection", lambda **kwargs: requested.append(kwargs))

        reporting_service._begin_snapshot()

        assert requested == [{"execution_options": {"isolation_level": "REPEATABLE READ"}}]


class TestReportRoutes:

    def test_summary(self, client, admin_headers, product):
        client.post(f"/api/products/{product.id}/sell", json={"quantity": 10}, headers=admin_headers)

        resp = client.get("/api/reports/summary?period=weekly", headers=admin_headers)

        assert resp.status_code == 200
        body = resp.json
        assert body["period"] == "weekly"
        assert body["total_units"] == 10
        assert body["total_revenue_cents"] == 18500
        assert body["ranking"] == [
            {"product_name": "Paracetamol 500mg", "units": 10, "revenue_cents": 18500}
        ]
        assert body["current_stock_value_cents"] == 15 * 1850
        assert len(body["daily"]) == 1

    def test_bad_period(self, client, admin_headers, db_session):
        resp = client.get("/api/reports/summary?period=yearly", headers=admin_headers)
        assert resp.status_code == 400

    def test_dashboard(self, client, cashier_headers, product, db_session):
        product.stock_quantity = 3
        db_session.commit()

        resp = client.get("/api/dashboard", headers=cashier_headers)

        assert resp.status_code == 200
        body = resp.json
        assert body["product_count"] == 1
        assert body["customer_count"] == 0
        assert body["low_stock_count"] == 1
        assert body["stock_value_cents"] == 3 * 1850
        assert body["low_stock_alerts"][0]["name"] == "Paracetamol 500mg"
