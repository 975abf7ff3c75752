# backend/services/stores.py
import logging
import re
import unicodedata
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.order import Order, OrderStatus
from models.product import Product
from models.store import Store
from models.users import User
from utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

OPEN_ORDER_STATES = (OrderStatus.PENDING, OrderStatus.PROCESSING)


# ---- SLUGS ----
def slugify(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^\w\s-]", "", ascii_name.lower().strip())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug or "store"


def unique_slug(db: Session, name: str, exclude_store_id: Optional[int] = None) -> str:
    base = slugify(name)
    slug, counter = base, 1
    while True:
        query = db.query(Store.id).filter(Store.slug == slug)
        if exclude_store_id is not None:
            query = query.filter(Store.id != exclude_store_id)
        if query.first() is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1


# ---- QUERIES ----
def get_business_store(db: Session, business_id: int, store_id: int) -> Store:
    store = db.query(Store).filter(Store.id == store_id, Store.business_id == business_id).first()
    if store is None:
        raise NotFoundError("Store not found")
    return store


def list_business_stores(db: Session, business_id: int, *, search: Optional[str] = None,
                         is_active: Optional[bool] = None) -> List[Tuple[Store, int, int]]:
    """Stores of a business with (active product count, order count)."""
    product_counts = (
        db.query(Product.store_id, func.count(Product.id).label("n"))
        .filter(Product.is_active.is_(True))
        .group_by(Product.store_id)
        .subquery()
    )
    order_counts = (
        db.query(Order.store_id, func.count(Order.id).label("n"))
        .group_by(Order.store_id)
        .subquery()
    )
    query = (
        db.query(Store, func.coalesce(product_counts.c.n, 0), func.coalesce(order_counts.c.n, 0))
        .outerjoin(product_counts, product_counts.c.store_id == Store.id)
        .outerjoin(order_counts, order_counts.c.store_id == Store.id)
        .filter(Store.business_id == business_id)
    )
    if is_active is not None:
        query = query.filter(Store.is_active == is_active)
    if search:
        like = f"%{search}%"
        query = query.filter(Store.name.ilike(like) | Store.description.ilike(like))
    return query.order_by(Store.created_at.desc(), Store.id.desc()).all()


def list_public_stores(db: Session, page: int = 1, page_size: int = 10) -> Tuple[List[Tuple[Store, int, Optional[str]]], int]:
    """Active stores with (active product count, owner name), newest first."""
    product_counts = (
        db.query(Product.store_id, func.count(Product.id).label("n"))
        .filter(Product.is_active.is_(True))
        .group_by(Product.store_id)
        .subquery()
    )
    query = db.query(Store).filter(Store.is_active.is_(True))
    total = query.count()
    rows = (query
            .outerjoin(product_counts, product_counts.c.store_id == Store.id)
            .outerjoin(User, Store.business_id == User.id)
            .with_entities(Store, func.coalesce(product_counts.c.n, 0), User.name)
            .order_by(Store.created_at.desc(), Store.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all())
    return rows, total


def get_public_store(db: Session, slug: str) -> Tuple[Store, List[Product]]:
    store = db.query(Store).filter(Store.slug == slug, Store.is_active.is_(True)).first()
    if store is None:
        raise NotFoundError("Store not found")
    products = (db.query(Product)
                .filter(Product.store_id == store.id, Product.is_active.is_(True))
                .order_by(Product.name.asc())
                .all())
    return store, products


def store_stats(db: Session, business_id: int) -> dict:
    rows = (db.query(Store.is_active, func.count(Store.id))
            .filter(Store.business_id == business_id)
            .group_by(Store.is_active)
            .all())
    counts = {bool(active): n for active, n in rows}
    return {
        "total_stores": sum(counts.values()),
        "active_stores": counts.get(True, 0),
        "inactive_stores": counts.get(False, 0),
    }


# ---- MUTATIONS ----
def create_store(db: Session, business_id: int, data: dict) -> Store:
    store = Store(business_id=business_id, slug=unique_slug(db, data["name"]), **data)
    db.add(store)
    db.commit()
    db.refresh(store)
    logger.info("Store %s created by business %s", store.slug, business_id)
    return store


def update_store(db: Session, business_id: int, store_id: int, data: dict) -> Store:
    store = get_business_store(db, business_id, store_id)

    # Renaming regenerates the slug
    if data.get("name") and data["name"] != store.name:
        store.slug = unique_slug(db, data["name"], exclude_store_id=store.id)

    deactivating = data.get("is_active") is False and store.is_active
    for field, value in data.items():
        setattr(store, field, value)
    if deactivating:
        _deactivate_products(db, store.id)

    db.commit()
    db.refresh(store)
    return store


def _deactivate_products(db: Session, store_id: int) -> None:
    db.query(Product).filter(Product.store_id == store_id).update(
        {Product.is_active: False}, synchronize_session="fetch"
    )


def toggle_store(db: Session, business_id: int, store_id: int) -> Store:
    store = get_business_store(db, business_id, store_id)
    store.is_active = not store.is_active
    if not store.is_active:
        _deactivate_products(db, store.id)
    db.commit()
    db.refresh(store)
    return store


def delete_store(db: Session, business_id: int, store_id: int) -> Store:
    """Soft delete a store and its products; refused while orders are open."""
    store = get_business_store(db, business_id, store_id)

    open_orders = db.query(Order).filter(Order.store_id == store.id, Order.status.in_(OPEN_ORDER_STATES)).count()
    if open_orders:
        raise ConflictError(
            f"Store has {open_orders} pending or processing orders",
            code="STORE_HAS_OPEN_ORDERS",
        )

    _deactivate_products(db, store.id)
    store.is_active = False
    db.commit()
    db.refresh(store)
    logger.info("Store %s deactivated by business %s", store.slug, business_id)
    return store
