from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Schema for creating a new product
class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Decimal = Field(gt=0, le=Decimal("999999.99"), decimal_places=2)
    stock: int = Field(default=0, ge=0, le=999999)
    image_url: Optional[str] = None
    is_active: bool = True
    store_id: int


# Schema for PUT requests - all fields optional. Stock changes go through PATCH.
class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Optional[Decimal] = Field(default=None, gt=0, le=Decimal("999999.99"), decimal_places=2)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None

    # Fields may be omitted but never cleared: the columns are NOT NULL
    @field_validator("name", "price", "is_active")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


# PATCH /products/{id}
class ProductPatch(BaseModel):
    action: Literal["set", "increment", "decrement", "toggle"]
    quantity: Optional[int] = Field(default=None, ge=0)


class ProductOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    image_url: Optional[str] = None
    is_active: bool
    store_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(BaseModel):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int


class ProductStats(BaseModel):
    total_products: int
    active_products: int
    inventory_value: float
    threshold: int
    low_stock_products: List[ProductOut]
    out_of_stock_products: List[ProductOut]


# PATCH /products/bulk
class BulkStockItem(BaseModel):
    product_id: int
    stock: int = Field(ge=0)


class BulkStockPayload(BaseModel):
    updates: List[BulkStockItem] = Field(min_length=1)


class BulkStockResult(BaseModel):
    updated: int
    items: List[ProductOut]
