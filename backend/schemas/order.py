from pydantic import BaseModel, Field, model_validator
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal

from models.order import OrderStatus


# One cart line submitted at checkout
class CheckoutItem(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)
    store_id: int
    # Price the client displayed; compared with the live price, never stored
    unit_price: Optional[Decimal] = Field(default=None, gt=0)


# Input schema for checkout (POST /orders) and its dry run (POST /orders/summary)
class CheckoutPayload(BaseModel):
    items: List[CheckoutItem]
    shipping_address: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)


class CheckoutResponse(BaseModel):
    success: bool = True
    order_ids: List[int]
    order_numbers: List[str]


class SummaryLineOut(BaseModel):
    product_id: int
    name: str
    quantity: int
    unit_price: float
    subtotal: float


class SummaryStoreOut(BaseModel):
    store_id: int
    store_name: str
    item_count: int
    total_quantity: int
    subtotal: float
    items: List[SummaryLineOut]


class CheckoutSummaryResponse(BaseModel):
    total_items: int
    total_amount: float
    stores: List[SummaryStoreOut]


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total_price: float


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    total_amount: float
    customer_id: int
    store_id: int
    store_name: Optional[str] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut]


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


# PATCH /orders/{id}: either an action or a target status
class OrderUpdatePayload(BaseModel):
    action: Optional[Literal["process", "complete", "cancel"]] = None
    status: Optional[OrderStatus] = None

    @model_validator(mode="after")
    def check_one_of(self):
        if (self.action is None) == (self.status is None):
            raise ValueError("Provide exactly one of 'action' or 'status'")
        return self
