# backend/services/products.py
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from config import settings
from models.product import Product
from models.stock import StockMovement
from models.store import Store
from utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STOCK_ACTIONS = ("set", "increment", "decrement")


def _owned_products(db: Session, business_id: int):
    return (
        db.query(Product)
        .join(Store, Product.store_id == Store.id)
        .options(joinedload(Product.store))
        .filter(Store.business_id == business_id)
    )


def get_business_product(db: Session, business_id: int, product_id: int) -> Product:
    product = _owned_products(db, business_id).filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_business_products(
    db: Session,
    business_id: int,
    *,
    store_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    has_stock: bool = False,
    search: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[Product], int]:
    query = _owned_products(db, business_id)

    if store_id is not None:
        query = query.filter(Product.store_id == store_id)
    if is_active is not None:
        query = query.filter(Product.is_active == is_active)
    if has_stock:
        query = query.filter(Product.stock > 0)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    total = query.count()
    items = (query
             .order_by(Product.created_at.desc(), Product.id.desc())
             .offset((page - 1) * page_size)
             .limit(page_size)
             .all())
    return items, total


def create_product(db: Session, business_id: int, data: dict) -> Product:
    store = db.query(Store).filter(Store.id == data["store_id"], Store.business_id == business_id).first()
    if store is None:
        raise ValidationError("Store does not belong to this business", code="STORE_NOT_OWNED")

    product = Product(**data)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, business_id: int, product_id: int, data: dict) -> Product:
    product = get_business_product(db, business_id, product_id)
    for field, value in data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


# Soft delete: the row stays referenced by past order items
def deactivate_product(db: Session, business_id: int, product_id: int) -> Product:
    product = get_business_product(db, business_id, product_id)
    product.is_active = False
    db.commit()
    db.refresh(product)
    return product


def toggle_product(db: Session, business_id: int, product_id: int) -> Product:
    product = get_business_product(db, business_id, product_id)
    product.is_active = not product.is_active
    db.commit()
    db.refresh(product)
    return product


def adjust_stock(db: Session, business_id: int, product_id: int, action: str, quantity: int, user_id: Optional[int] = None) -> Product:
    """Apply a business stock adjustment.

    increment/decrement are read-modify-write on the locked row; `set`
    overwrites the current value and the last writer wins.
    """
    if action not in STOCK_ACTIONS:
        raise ValidationError(f"Unknown stock action: {action}", code="INVALID_ACTION")
    if quantity < 0:
        raise ValidationError("Quantity must be zero or greater", code="INVALID_QUANTITY")

    # ownership check before taking the lock
    get_business_product(db, business_id, product_id)
    product = (
        db.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .populate_existing()
        .one()
    )

    old_stock = product.stock
    if action == "set":
        new_stock = quantity
    elif action == "increment":
        new_stock = old_stock + quantity
    else:
        new_stock = old_stock - quantity

    if new_stock < 0:
        error = ConflictError(
            f'Cannot remove {quantity} units from "{product.name}", only {old_stock} in stock',
            code="INSUFFICIENT_STOCK",
        )
        db.rollback()
        raise error

    try:
        product.stock = new_stock
        db.add(StockMovement(
            product_id=product.id, user_id=user_id,
            quantity_change=new_stock - old_stock, type=action.upper(),
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Stock %s failed for product %s", action, product_id)
        raise

    db.refresh(product)
    logger.info("Product %s stock %s: %s -> %s", product.id, action, old_stock, new_stock)
    return product


def product_stats(db: Session, business_id: int, threshold: Optional[int] = None) -> dict:
    """Catalog counters plus the low-stock and sold-out products of a business."""
    threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
    products = _owned_products(db, business_id).order_by(Product.stock.asc(), Product.name.asc()).all()
    active = [p for p in products if p.is_active]

    return {
        "total_products": len(products),
        "active_products": len(active),
        "inventory_value": sum((p.price * p.stock for p in active), Decimal("0")),
        "threshold": threshold,
        "low_stock_products": [p for p in active if 0 < p.stock <= threshold],
        "out_of_stock_products": [p for p in active if p.stock == 0],
    }


def bulk_set_stock(db: Session, business_id: int, updates: List[Tuple[int, int]], user_id: Optional[int] = None) -> List[Product]:
    """Set the stock of several products at once.

    All products must belong to the business; otherwise nothing is written.
    Each change gets its own SET movement row, all in one transaction.
    """
    targets = dict(updates)
    if len(targets) != len(updates):
        raise ValidationError("Each product may appear only once", code="DUPLICATE_PRODUCT")
    if any(stock < 0 for stock in targets.values()):
        raise ValidationError("Stock must be zero or greater", code="INVALID_QUANTITY")

    ids = sorted(targets)
    products = (
        db.query(Product)
        .join(Store, Product.store_id == Store.id)
        .filter(Store.business_id == business_id, Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update(of=Product)
        .populate_existing()
        .all()
    )
    missing = sorted(set(ids) - {p.id for p in products})
    if missing:
        db.rollback()
        raise ValidationError(
            "Some products do not belong to this business",
            code="PRODUCTS_NOT_OWNED",
            details=[{"product_id": pid} for pid in missing],
        )

    try:
        for product in products:
            old_stock, new_stock = product.stock, targets[product.id]
            product.stock = new_stock
            db.add(StockMovement(
                product_id=product.id, user_id=user_id,
                quantity_change=new_stock - old_stock, type="SET", reason="bulk update",
            ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Bulk stock update failed for business %s", business_id)
        raise

    for product in products:
        db.refresh(product)
    logger.info("Business %s set stock of %d products", business_id, len(products))
    return products


def catalog_counts(db: Session, business_id: int) -> Tuple[int, int]:
    """(all products, active products) of a business."""
    query = _owned_products(db, business_id).order_by(None)
    return query.count(), query.filter(Product.is_active.is_(True)).count()
