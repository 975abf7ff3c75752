# backend/services/lifecycle.py
"""
Order status state machine.

    PENDING -> PROCESSING -> COMPLETED
    PENDING | PROCESSING -> CANCELLED

COMPLETED and CANCELLED are terminal. Only `cancel` touches stock: every
item quantity goes back to its product in the same transaction as the
status change. Ownership is checked by the caller (see utils.access).
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.order import Order, OrderStatus
from models.stock import StockMovement
from services.checkout import lock_products
from utils.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

# action -> (states it may start from, resulting state)
TRANSITIONS = {
    "process": ({OrderStatus.PENDING}, OrderStatus.PROCESSING),
    "complete": ({OrderStatus.PROCESSING}, OrderStatus.COMPLETED),
    "cancel": ({OrderStatus.PENDING, OrderStatus.PROCESSING}, OrderStatus.CANCELLED),
}

TERMINAL_STATES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

# Target status requested via {"status": ...} -> action
STATUS_ACTIONS = {
    OrderStatus.PROCESSING: "process",
    OrderStatus.COMPLETED: "complete",
    OrderStatus.CANCELLED: "cancel",
}


def action_for_status(status: OrderStatus) -> str:
    action = STATUS_ACTIONS.get(status)
    if action is None:
        raise ValidationError(f"Orders cannot be moved to {status.value}", code="INVALID_STATUS")
    return action


def can_transition(order: Order, action: str) -> bool:
    allowed_from, _ = TRANSITIONS[action]
    return order.status in allowed_from


def _restore_stock(db: Session, order: Order, user_id: Optional[int]) -> None:
    products = lock_products(db, (item.product_id for item in order.items))
    for item in order.items:
        products[item.product_id].stock += item.quantity
        db.add(StockMovement(
            product_id=item.product_id, user_id=user_id, order_id=order.id,
            quantity_change=item.quantity, type="CANCEL_RESTORE", reason=order.order_number,
        ))


def apply_transition(db: Session, order: Order, action: str, user_id: Optional[int] = None) -> Order:
    if action not in TRANSITIONS:
        raise ValidationError(f"Unknown action: {action}", code="INVALID_ACTION")
    _, target = TRANSITIONS[action]

    # Re-read the status under a row lock; a concurrent transition may have won
    db.query(Order).filter(Order.id == order.id).with_for_update().populate_existing().one()
    if not can_transition(order, action):
        error = ConflictError(
            f"Cannot {action} order {order.order_number} in status {order.status.value}",
            code="INVALID_TRANSITION",
        )
        db.rollback()
        raise error

    old_status = order.status
    try:
        if action == "cancel":
            _restore_stock(db, order, user_id)
        order.status = target
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Transition %s failed for order %s", action, order.id)
        raise

    db.refresh(order)
    logger.info("Order %s: %s -> %s", order.order_number, old_status.value, order.status.value)
    return order


def process(db: Session, order: Order, user_id: Optional[int] = None) -> Order:
    return apply_transition(db, order, "process", user_id)


def complete(db: Session, order: Order, user_id: Optional[int] = None) -> Order:
    return apply_transition(db, order, "complete", user_id)


def cancel(db: Session, order: Order, user_id: Optional[int] = None) -> Order:
    return apply_transition(db, order, "cancel", user_id)
