# backend/services/catalog.py
"""
Catalog validation for checkout.

Takes the cart a client submits and checks every line against the live
catalog. The result is all-or-nothing: either every line is purchasable and
comes back enriched with the live price, stock and store, or the caller gets
the full list of problems and no items at all.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from config import settings
from models.product import Product
from utils.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

# Issue codes
EMPTY_CART = "EMPTY_CART"
PRODUCT_UNAVAILABLE = "PRODUCT_UNAVAILABLE"
STORE_INACTIVE = "STORE_INACTIVE"
STORE_MISMATCH = "STORE_MISMATCH"
INVALID_QUANTITY = "INVALID_QUANTITY"
INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
PRICE_CHANGED = "PRICE_CHANGED"


@dataclass
class CartLine:
    """One requested line as sent by the client."""
    product_id: int
    quantity: int
    store_id: int
    unit_price: Optional[Decimal] = None


@dataclass
class ValidatedItem:
    product_id: int
    name: str
    quantity: int
    unit_price: Decimal
    store_id: int
    available_stock: int


@dataclass
class CatalogIssue:
    code: str
    message: str
    product_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "product_id": self.product_id}


@dataclass
class CatalogValidation:
    items: List[ValidatedItem] = field(default_factory=list)
    errors: List[CatalogIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def insufficient_stock(product: Product, requested: int) -> CatalogIssue:
    return CatalogIssue(
        INSUFFICIENT_STOCK,
        f'Insufficient stock for "{product.name}". Available: {product.stock}, requested: {requested}',
        product.id,
    )


def validate_cart(db: Session, lines: List[CartLine], tolerance: Optional[Decimal] = None) -> CatalogValidation:
    """Check every cart line against the live catalog. Read-only."""
    if not lines:
        return CatalogValidation(errors=[CatalogIssue(EMPTY_CART, "Cart is empty")])

    tolerance = settings.PRICE_TOLERANCE if tolerance is None else tolerance
    product_ids = {line.product_id for line in lines}
    products: Dict[int, Product] = {
        p.id: p
        for p in db.query(Product).options(joinedload(Product.store)).filter(Product.id.in_(product_ids)).all()
    }

    errors: List[CatalogIssue] = []
    validated: List[ValidatedItem] = []
    # Same product on several lines draws from the same stock
    requested: Dict[int, int] = defaultdict(int)

    for line in lines:
        product = products.get(line.product_id)

        if product is None or not product.is_active:
            errors.append(CatalogIssue(PRODUCT_UNAVAILABLE, f"Product {line.product_id} not found or unavailable", line.product_id))
            continue

        if product.store is None or not product.store.is_active:
            errors.append(CatalogIssue(STORE_INACTIVE, f'The store of "{product.name}" is not active', product.id))
            continue

        if product.store_id != line.store_id:
            errors.append(CatalogIssue(STORE_MISMATCH, f'Store mismatch for "{product.name}"', product.id))
            continue

        if line.quantity < 1:
            errors.append(CatalogIssue(INVALID_QUANTITY, f'Invalid quantity for "{product.name}"', product.id))
            continue

        requested[product.id] += line.quantity
        if product.stock < requested[product.id]:
            errors.append(insufficient_stock(product, requested[product.id]))
            continue

        if line.unit_price is not None and abs(Decimal(line.unit_price) - product.price) > tolerance:
            errors.append(CatalogIssue(
                PRICE_CHANGED,
                f'Price of "{product.name}" changed from {line.unit_price} to {product.price}',
                product.id,
            ))
            continue

        validated.append(ValidatedItem(
            product_id=product.id,
            name=product.name,
            quantity=line.quantity,
            unit_price=product.price,
            store_id=product.store_id,
            available_stock=product.stock,
        ))

    if errors:
        return CatalogValidation(errors=errors)
    return CatalogValidation(items=validated)


def raise_for_errors(validation: CatalogValidation) -> None:
    """Turn a failed validation into a single domain error.

    A cart that only fails on stock is a conflict the user can fix by
    reloading the cart; anything else is a validation error.
    """
    if validation.is_valid:
        return
    details = [e.to_dict() for e in validation.errors]
    logger.warning("Checkout rejected: %s", [e.code for e in validation.errors])
    if all(e.code == INSUFFICIENT_STOCK for e in validation.errors):
        raise ConflictError("Insufficient stock", code=INSUFFICIENT_STOCK, details=details)
    raise ValidationError("Checkout validation failed", code="CHECKOUT_INVALID", details=details)
