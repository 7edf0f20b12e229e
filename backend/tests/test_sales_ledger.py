"""
Inventory ledger tests.

commit_sale decrements stock and appends exactly one sale record with the
product's name and price frozen at sale time, or changes nothing.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from pharmapos.models import Product, SaleRecord, SecurityEvent
from pharmapos.services import sales_service
from pharmapos.services.sales_service import LedgerInconsistency, SaleError


def _stock(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).stock_quantity


class TestCommitSale:

    def test_sell_ten_of_twenty_five(self, db_session, product, pharmacist_user):
        record = sales_service.commit_sale(product.id, 10, pharmacist_user.id)

        assert _stock(db_session, product.id) == 15
        assert record.quantity == 10
        assert record.unit_price_cents_snapshot == 1850
        assert record.total_cents == 18500
        assert record.product_name_snapshot == "Paracetamol 500mg"
        assert record.owner_id == pharmacist_user.id
        assert db_session.query(SaleRecord).count() == 1

    def test_over_quantity_changes_nothing(self, db_session, product, pharmacist_user):
        sales_service.commit_sale(product.id, 10, pharmacist_user.id)

        with pytest.raises(SaleError) as exc:
            sales_service.commit_sale(product.id, 20, pharmacist_user.id)

        assert exc.value.reason == SaleError.INSUFFICIENT_STOCK
        assert exc.value.details["on_hand"] == 15
        assert _stock(db_session, product.id) == 15
        assert db_session.query(SaleRecord).count() == 1

    def test_selling_exact_stock_reaches_zero(self, db_session, product):
        sales_service.commit_sale(product.id, 25, None)
        assert _stock(db_session, product.id) == 0

        with pytest.raises(SaleError) as exc:
            sales_service.commit_sale(product.id, 1, None)
        assert exc.value.reason == SaleError.INSUFFICIENT_STOCK

    def test_not_idempotent(self, db_session, product):
        first = sales_service.commit_sale(product.id, 2, None)
        second = sales_service.commit_sale(product.id, 2, None)

        assert first.id != second.id
        assert _stock(db_session, product.id) == 21
        assert db_session.query(SaleRecord).count() == 2

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, 2.0, "3", None, True])
    def test_invalid_quantity(self, db_session, product, quantity):
        with pytest.raises(SaleError) as exc:
            sales_service.commit_sale(product.id, quantity, None)

        assert exc.value.reason == SaleError.INVALID_QUANTITY
        assert _stock(db_session, product.id) == 25

    def test_unknown_product(self, db_session):
        with pytest.raises(SaleError) as exc:
            sales_service.commit_sale(99999, 1, None)
        assert exc.value.reason == SaleError.PRODUCT_NOT_FOUND

    def test_quantity_beyond_integer_range_is_insufficient_stock(self, db_session, product):
        with pytest.raises(SaleError) as exc:
            sales_service.commit_sale(product.id, 10 ** 20, None)

        assert exc.value.reason == SaleError.INSUFFICIENT_STOCK
        assert exc.value.details["on_hand"] == 25
        assert _stock(db_session, product.id) == 25
        assert db_session.query(SaleRecord).count() == 0

        # The reservation transaction was closed; the next sale goes through
        sales_service.commit_sale(product.id, 1, None)
        assert _stock(db_session, product.id) == 24

    @pytest.mark.parametrize("product_id", [10 ** 20, -(10 ** 20), 0, -3])
    def test_product_id_outside_integer_range_is_not_found(self, db_session, product, product_id):
        with pytest.raises(SaleError) as exc:
            sales_service.commit_sale(product_id, 1, None)

        assert exc.value.reason == SaleError.PRODUCT_NOT_FOUND
        assert _stock(db_session, product.id) == 25

    def test_snapshot_survives_product_edits(self, db_session, product):
        record = sales_service.commit_sale(product.id, 1, None)
        record_id = record.id

        p = db_session.get(Product, product.id)
        p.name = "Paracetamol 1g"
        p.sale_price_cents = 9900
        db_session.commit()

        record = db_session.get(SaleRecord, record_id)
        assert record.product_name_snapshot == "Paracetamol 500mg"
        assert record.unit_price_cents_snapshot == 1850

    def test_explicit_timestamp(self, db_session, product):
        at = datetime(2026, 3, 1, 9, 30)
        record = sales_service.commit_sale(product.id, 1, None, occurred_at=at)
        assert record.occurred_at == at


class TestCompensation:

    def test_append_failure_restores_stock(self, db_session, product, monkeypatch):
        def failing_append(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(sales_service, "_append_sale_record", failing_append)

        with pytest.raises(LedgerInconsistency) as exc:
            sales_service.commit_sale(product.id, 10, None)

        assert exc.value.reason == SaleError.LEDGER_INCONSISTENT
        assert exc.value.compensated is True
        assert _stock(db_session, product.id) == 25
        assert db_session.query(SaleRecord).count() == 0

        event = db_session.query(SecurityEvent).filter_by(event_type="LEDGER_INCONSISTENT").one()
        assert "released 10 units" in event.reason

    def test_failed_compensation_is_reported(self, db_session, product, monkeypatch):
        def failing_append(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        def failing_release(*args, **kwargs):
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        monkeypatch.setattr(sales_service, "_append_sale_record", failing_append)
        monkeypatch.setattr(sales_service, "_release_stock", failing_release)

        with pytest.raises(LedgerInconsistency) as exc:
            sales_service.commit_sale(product.id, 10, None)

        assert exc.value.compensated is False
        # Stock is short and the event says so
        assert _stock(db_session, product.id) == 15
        event = db_session.query(SecurityEvent).filter_by(event_type="LEDGER_INCONSISTENT").one()
        assert "short by 10 units" in event.reason

    def test_non_database_append_failure_is_compensated(self, db_session, product, monkeypatch):
        def broken_append(*args, **kwargs):
            raise ValueError("bad record")

        monkeypatch.setattr(sales_service, "_append_sale_record", broken_append)

        with pytest.raises(LedgerInconsistency) as exc:
            sales_service.commit_sale(product.id, 3, None)

        assert exc.value.compensated is True
        assert isinstance(exc.value.__cause__, ValueError)
        assert _stock(db_session, product.id) == 25
        assert db_session.query(SaleRecord).count() == 0
        event = db_session.query(SecurityEvent).filter_by(event_type="LEDGER_INCONSISTENT").one()
        assert "ValueError" in event.reason

    def test_ledger_inconsistency_is_a_sale_error(self):
        assert issubclass(LedgerInconsistency, SaleError)


class TestSaleRoutes:

    def test_post_sale(self, client, pharmacist_headers, product):
        resp = client.post(
            "/api/sales", json={"product_id": product.id, "quantity": 10}, headers=pharmacist_headers
        )

        assert resp.status_code == 201
        body = resp.json
        assert body["product_id"] == product.id
        assert body["product_name_snapshot"] == "Paracetamol 500mg"
        assert body["quantity"] == 10
        assert body["unit_price_snapshot_cents"] == 1850
        assert body["total_cents"] == 18500
        assert body["timestamp"].endswith("Z")
        assert "sale_id" in body

    @pytest.mark.parametrize(
        "quantity,status,reason",
        [
            (0, 400, "invalid_quantity"),
            ("2", 400, "invalid_quantity"),
            (26, 409, "insufficient_stock"),
        ],
    )
    def test_post_sale_failures(self, client, pharmacist_headers, product, quantity, status, reason):
        resp = client.post(
            "/api/sales", json={"product_id": product.id, "quantity": quantity}, headers=pharmacist_headers
        )
        assert resp.status_code == status
        assert resp.json["reason"] == reason

    def test_unknown_product_is_404(self, client, pharmacist_headers, db_session):
        resp = client.post("/api/sales", json={"product_id": 424242, "quantity": 1}, headers=pharmacist_headers)
        assert resp.status_code == 404
        assert resp.json["reason"] == "product_not_found"

    def test_huge_quantity_is_409(self, client, pharmacist_headers, product):
        resp = client.post(
            "/api/sales", json={"product_id": product.id, "quantity": 10 ** 20}, headers=pharmacist_headers
        )
        assert resp.status_code == 409
        assert resp.json["reason"] == "insufficient_stock"

        follow_up = client.post(
            "/api/sales", json={"product_id": product.id, "quantity": 1}, headers=pharmacist_headers
        )
        assert follow_up.status_code == 201

    def test_huge_product_id_is_404(self, client, pharmacist_headers, db_session):
        resp = client.post("/api/sales", json={"product_id": 10 ** 20, "quantity": 1}, headers=pharmacist_headers)
        assert resp.status_code == 404
        assert resp.json["reason"] == "product_not_found"

    def test_missing_product_id(self, client, pharmacist_headers, db_session):
        resp = client.post("/api/sales", json={"quantity": 1}, headers=pharmacist_headers)
        assert resp.status_code == 400

    def test_ledger_inconsistency_is_500_with_reason(self, client, pharmacist_headers, product, monkeypatch):
        def failing_append(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(sales_service, "_append_sale_record", failing_append)

        resp = client.post(
            f"/api/products/{product.id}/sell", json={"quantity": 3}, headers=pharmacist_headers
        )
        assert resp.status_code == 500
        assert resp.json["reason"] == "ledger_inconsistent"
        assert "disk full" not in resp.get_data(as_text=True)

    def test_sell_route_then_list_as_admin(self, client, pharmacist_headers, admin_headers, product):
        client.post(f"/api/products/{product.id}/sell", json={"quantity": 4}, headers=pharmacist_headers)
        client.post(f"/api/products/{product.id}/sell", json={"quantity": 1}, headers=pharmacist_headers)

        resp = client.get("/api/sales", headers=admin_headers)
        assert resp.status_code == 200
        assert [s["quantity"] for s in resp.json["sales"]] == [1, 4]

        product_resp = client.get(f"/api/products/{product.id}", headers=admin_headers)
        assert product_resp.json["stock_quantity"] == 20
