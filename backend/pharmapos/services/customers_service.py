# backend/pharmapos/services/customers_service.py
"""Customers Service: plain CRUD with name/document search."""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer
from pharmapos.time_utils import utcnow

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "address", "document_id", "notes"}


def list_customers(q: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Customer.name.ilike(pattern),
                Customer.document_id.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer | None:
    return db.session.get(Customer, customer_id)


def create_customer(*, patch: dict, owner_id: int | None = None) -> Customer:
    customer = Customer(owner_id=owner_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(*, customer_id: int, patch: dict) -> Customer | None:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return None
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    customer.updated_at = utcnow()
    db.session.commit()
    return customer


def delete_customer(*, customer_id: int) -> bool:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return False
    db.session.delete(customer)
    db.session.commit()
    return True
