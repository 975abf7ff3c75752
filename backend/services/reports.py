# backend/services/reports.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from models.order import Order, OrderStatus
from models.store import Store
from services.order_builder import money
from services.products import catalog_counts
from services.stores import store_stats

PERIODS = {
    "day": None, # since midnight
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def _owned_orders(db: Session, business_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
    query = db.query(Order).join(Store, Order.store_id == Store.id).filter(Store.business_id == business_id)
    if start is not None:
        query = query.filter(Order.created_at >= start)
    if end is not None:
        query = query.filter(Order.created_at <= end)
    return query


def order_stats(db: Session, business_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    """Order counts and amounts of a business, by status and by store."""
    base = _owned_orders(db, business_id, start, end)

    by_status = (base
                 .with_entities(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
                 .group_by(Order.status)
                 .all())
    by_store = (base
                .with_entities(Store.id, Store.name, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
                .group_by(Store.id, Store.name)
                .all())

    total_orders = sum(count for _, count, _ in by_status)
    # Revenue excludes cancelled orders
    total_revenue = sum(
        (Decimal(str(amount)) for status, _, amount in by_status if status != OrderStatus.CANCELLED),
        Decimal("0"),
    )

    return {
        "total_orders": total_orders,
        "total_revenue": money(total_revenue),
        "by_status": {
            status.value: {"count": count, "total_amount": money(Decimal(str(amount)))}
            for status, count, amount in by_status
        },
        "by_store": [
            {"store_id": store_id, "store_name": name, "count": count, "total_amount": money(Decimal(str(amount)))}
            for store_id, name, count, amount in by_store
        ],
    }


def sales_report(db: Session, business_id: int, period: str = "month", now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    delta = PERIODS[period]
    start = now.replace(hour=0, minute=0, second=0, microsecond=0) if delta is None else now - delta

    orders = (_owned_orders(db, business_id, start)
              .filter(Order.status != OrderStatus.CANCELLED)
              .with_entities(Order.total_amount, Order.status)
              .all())

    total_sales = sum((amount for amount, _ in orders), Decimal("0"))
    completed = [amount for amount, status in orders if status == OrderStatus.COMPLETED]
    completed_sales = sum(completed, Decimal("0"))

    return {
        "period": period,
        "start_date": start,
        "end_date": now,
        "total_orders": len(orders),
        "completed_orders": len(completed),
        "total_sales": money(total_sales),
        "completed_sales": money(completed_sales),
        "average_order_value": money(total_sales / len(orders)) if orders else Decimal("0.00"),
    }


def customer_order_stats(db: Session, customer_id: int) -> dict:
    """Order count and spending of a customer; cancelled orders are not spent."""
    rows = (db.query(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
            .filter(Order.customer_id == customer_id)
            .group_by(Order.status)
            .all())

    total_spent = sum(
        (Decimal(str(amount)) for status, _, amount in rows if status != OrderStatus.CANCELLED),
        Decimal("0"),
    )
    return {
        "total_orders": sum(count for _, count, _ in rows),
        "total_spent": money(total_spent),
        "by_status": {
            status.value: {"count": count, "total_amount": money(Decimal(str(amount)))}
            for status, count, amount in rows
        },
    }


def dashboard(db: Session, business_id: int, recent: int = 5) -> dict:
    total_products, active_products = catalog_counts(db, business_id)
    orders = order_stats(db, business_id)
    latest = (_owned_orders(db, business_id)
              .options(joinedload(Order.store), joinedload(Order.customer))
              .order_by(Order.created_at.desc(), Order.id.desc())
              .limit(recent)
              .all())

    return {
        "stores": store_stats(db, business_id),
        "total_products": total_products,
        "active_products": active_products,
        "total_orders": orders["total_orders"],
        "total_revenue": orders["total_revenue"],
        "recent_orders": [
            {
                "id": o.id,
                "order_number": o.order_number,
                "status": o.status.value,
                "total_amount": o.total_amount,
                "store_name": o.store.name if o.store else None,
                "customer_name": o.customer.name if o.customer else None,
                "created_at": o.created_at,
            }
            for o in latest
        ],
    }
