# backend/services/checkout.py
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from models.order import Order, OrderItem, OrderSequence, OrderStatus
from models.product import Product
from models.store import Store
from models.stock import StockMovement
from models.users import User
from services.catalog import (
    CartLine, CatalogIssue, ValidatedItem, INSUFFICIENT_STOCK, PRODUCT_UNAVAILABLE, STORE_INACTIVE,
    insufficient_stock, raise_for_errors, validate_cart,
)
from services.order_builder import group_by_store, line_total, money
from utils.errors import AppError, ConflictError

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    orders: List[Order] = field(default_factory=list)

    @property
    def order_ids(self) -> List[int]:
        return [o.id for o in self.orders]

    @property
    def order_numbers(self) -> List[str]:
        return [o.order_number for o in self.orders]


# ---- HELPERS ----
def next_order_number(db: Session, now: datetime) -> str:
    """Allocate the next ORD-YYMMDD-NNNN number for the day of `now`.

    The per-day counter row is locked for the rest of the transaction, so two
    checkouts cannot read the same value; the unique constraint on
    orders.order_number rejects anything that slips through.
    """
    day = now.strftime("%y%m%d")
    seq = (
        db.query(OrderSequence)
        .filter(OrderSequence.day == day)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if seq is None:
        seq = OrderSequence(day=day, last_value=0)
        db.add(seq)
        db.flush()
    seq.last_value += 1
    db.flush()
    return f"ORD-{day}-{seq.last_value:04d}"


def lock_products(db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
    # Fixed lock order (by id) so concurrent checkouts cannot deadlock.
    # Stores are re-read with the products but only product rows are locked.
    ids = sorted(set(product_ids))
    rows = (
        db.query(Product)
        .options(joinedload(Product.store))
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update(of=Product)
        .populate_existing()
        .all()
    )
    return {p.id: p for p in rows}


def _revalidate_locked(products: Dict[int, Product], items: List[ValidatedItem]) -> List[CatalogIssue]:
    issues: List[CatalogIssue] = []
    requested: Dict[int, int] = defaultdict(int)
    for item in items:
        product = products.get(item.product_id)
        if product is None or not product.is_active:
            issues.append(CatalogIssue(PRODUCT_UNAVAILABLE, f"Product {item.product_id} is no longer available", item.product_id))
            continue
        if product.store is None or not product.store.is_active:
            issues.append(CatalogIssue(STORE_INACTIVE, f'The store of "{product.name}" is no longer active', product.id))
            continue
        requested[product.id] += item.quantity
        if product.stock < requested[product.id]:
            issues.append(insufficient_stock(product, requested[product.id]))
    return issues


# ---- CHECKOUT ----
def process_checkout(
    db: Session,
    customer: User,
    lines: List[CartLine],
    shipping_address: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    """Turn a cart into one PENDING order per store.

    Validation, stock decrement and order creation for every store share one
    transaction: either all orders exist afterwards or none do.
    """
    validation = validate_cart(db, lines)
    raise_for_errors(validation)

    groups = group_by_store(validation.items)
    now = now or datetime.now(timezone.utc)
    customer_id = customer.id
    result = CheckoutResult()

    try:
        # Authoritative second check on locked rows
        locked = lock_products(db, (i.product_id for i in validation.items))
        issues = _revalidate_locked(locked, validation.items)
        if issues:
            # Stock-only shortfalls keep the validator's code; anything else changed under the cart
            if all(i.code == INSUFFICIENT_STOCK for i in issues):
                raise ConflictError("Insufficient stock", code=INSUFFICIENT_STOCK, details=[i.to_dict() for i in issues])
            raise ConflictError(
                "The catalog changed during checkout, please review your cart",
                code="CHECKOUT_CONFLICT",
                details=[i.to_dict() for i in issues],
            )

        for group in groups:
            order = Order(
                order_number=next_order_number(db, now),
                customer_id=customer_id,
                store_id=group.store_id,
                status=OrderStatus.PENDING,
                total_amount=group.total,
                shipping_address=shipping_address,
                notes=notes,
                created_at=now,
            )
            for item in group.items:
                order.items.append(OrderItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=line_total(item.quantity, item.unit_price),
                ))
                locked[item.product_id].stock -= item.quantity
            db.add(order)
            db.flush()

            for item in group.items:
                db.add(StockMovement(
                    product_id=item.product_id, user_id=customer_id, order_id=order.id,
                    quantity_change=-item.quantity, type="CHECKOUT", reason=order.order_number,
                ))
            result.orders.append(order)

        db.commit()
    except AppError:
        db.rollback()
        raise
    except IntegrityError as e:
        # stock CHECK or order_number uniqueness lost a race with another checkout
        db.rollback()
        logger.warning("Checkout for user %s hit a constraint: %s", customer_id, e.orig)
        raise ConflictError(
            "Checkout conflicted with another purchase, please review your cart and retry",
            code="CHECKOUT_CONFLICT",
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Checkout for user %s failed", customer_id)
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("Checkout for user %s created orders %s", customer_id, result.order_numbers)
    return result


def checkout_summary(db: Session, lines: List[CartLine]) -> dict:
    """Validate and group a cart without writing anything."""
    validation = validate_cart(db, lines)
    raise_for_errors(validation)

    groups = group_by_store(validation.items)
    store_names = {
        s.id: s.name
        for s in db.query(Store).filter(Store.id.in_([g.store_id for g in groups])).all()
    }
    total_amount = money(sum((g.total for g in groups), Decimal("0")))

    return {
        "total_items": sum(g.total_quantity for g in groups),
        "total_amount": total_amount,
        "stores": [
            {
                "store_id": g.store_id,
                "store_name": store_names.get(g.store_id, "Unknown store"),
                "item_count": len(g.items),
                "total_quantity": g.total_quantity,
                "subtotal": g.total,
                "items": [
                    {
                        "product_id": i.product_id,
                        "name": i.name,
                        "quantity": i.quantity,
                        "unit_price": i.unit_price,
                        "subtotal": line_total(i.quantity, i.unit_price),
                    }
                    for i in g.items
                ],
            }
            for g in groups
        ],
    }
