# backend/routes/orders.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Query, status
from sqlalchemy.orm import Session, joinedload

from database import get_db
import logging
from utils.tokenJWT import get_current_user, customer_required
from utils.audit import write_log, client_ip
from utils.access import owns_order, ensure_can_transition
from models.users import User, UserRole
from models.store import Store
from models.order import Order, OrderItem, OrderStatus
from schemas.order import (
    OrderResponse, OrdersPage, OrderItemOut, OrderUpdatePayload,
    CheckoutPayload, CheckoutResponse, CheckoutSummaryResponse,
)
from schemas.reports import CustomerStatsResponse
from services.catalog import CartLine
from services import checkout as checkout_service
from services import lifecycle
from services import reports as report_service

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)

# Map Order model to OrderResponse schema
def _order_to_out(order: Order) -> OrderResponse:
    items: List[OrderItemOut] = []
    for it in order.items:
        product_name = it.product.name if it.product else "Deleted product"
        items.append(OrderItemOut(
            id=it.id,
            product_id=it.product_id,
            product_name=product_name,
            quantity=it.quantity,
            unit_price=float(it.unit_price),
            total_price=float(it.total_price),
        ))
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        total_amount=float(order.total_amount),
        customer_id=order.customer_id,
        store_id=order.store_id,
        store_name=order.store.name if order.store else None,
        shipping_address=order.shipping_address,
        notes=order.notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=items,
    )

def _cart_lines(payload: CheckoutPayload) -> List[CartLine]:
    return [
        CartLine(product_id=i.product_id, quantity=i.quantity, store_id=i.store_id, unit_price=i.unit_price)
        for i in payload.items
    ]

def _order_query(db: Session):
    return db.query(Order).options(
        joinedload(Order.items).joinedload(OrderItem.product),
        joinedload(Order.store),
    )

# Load an order the caller owns; anything else is reported as not found
def _get_owned_order(db: Session, order_id: int, user: User) -> Order:
    order = _order_query(db).filter(Order.id == order_id).first()
    if not order or not owns_order(user, order):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# Create one order per store from the submitted cart
@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
def create_orders(
    payload: CheckoutPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(customer_required),
):
    result = checkout_service.process_checkout(
        db,
        current_user,
        _cart_lines(payload),
        shipping_address=payload.shipping_address,
        notes=payload.notes,
    )
    response = CheckoutResponse(order_ids=result.order_ids, order_numbers=result.order_numbers)

    write_log(
        db, user_id=current_user.id, action="CHECKOUT", resource="orders", status="SUCCESS",
        ip=client_ip(request), meta={"order_ids": response.order_ids, "order_numbers": response.order_numbers},
    )
    return response


# Validate the cart and preview the per-store split without creating anything
@router.post("/summary", response_model=CheckoutSummaryResponse)
def checkout_summary(
    payload: CheckoutPayload,
    db: Session = Depends(get_db),
    current_user: User = Depends(customer_required),
):
    return checkout_service.checkout_summary(db, _cart_lines(payload))


# List orders: customers see their own, businesses see orders of their stores
@router.get("", response_model=OrdersPage)
def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    store_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = _order_query(db)
    if current_user.role == UserRole.CUSTOMER:
        q = q.filter(Order.customer_id == current_user.id)
    elif current_user.role == UserRole.BUSINESS:
        q = q.join(Store, Order.store_id == Store.id).filter(Store.business_id == current_user.id)
    else:
        raise HTTPException(status_code=403, detail="Role not allowed")

    if status_filter is not None:
        q = q.filter(Order.status == status_filter)
    if store_id is not None:
        q = q.filter(Order.store_id == store_id)

    total = q.order_by(None).count()
    rows = (q.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all())
    items = [_order_to_out(o) for o in rows]
    return {"items": items, "total": total, "page": page, "page_size": page_size}


# Order count and spending of the logged-in customer
@router.get("/stats", response_model=CustomerStatsResponse)
def customer_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(customer_required),
):
    return report_service.customer_order_stats(db, current_user.id)


# Get details of a specific order
@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _order_to_out(_get_owned_order(db, order_id, current_user))


# Move an order through its lifecycle: {"action": ...} or {"status": ...}
@router.patch("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    payload: OrderUpdatePayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = _get_owned_order(db, order_id, current_user)
    action = payload.action or lifecycle.action_for_status(payload.status)
    ensure_can_transition(current_user, order, action)

    old_status = order.status
    order = lifecycle.apply_transition(db, order, action, user_id=current_user.id)

    write_log(
        db, user_id=current_user.id, action=f"ORDER_{action.upper()}", resource="orders", status="SUCCESS",
        ip=client_ip(request), meta={"order_id": order.id, "old": old_status.value, "new": order.status.value},
    )
    return _order_to_out(_order_query(db).filter(Order.id == order_id).first())
