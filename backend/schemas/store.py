import re
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Literal
from datetime import datetime

from schemas.product import ProductOut

_NAME_RE = re.compile(r"^[\w\s\-]+$")


def _check_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value or not _NAME_RE.match(value):
        raise ValueError("Name may only contain letters, digits, spaces, hyphens and underscores")
    return value


class StoreCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, value):
        return _check_name(value)


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value):
        if value is None:
            raise ValueError("Name cannot be null")
        return _check_name(value)

    @field_validator("is_active")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("is_active cannot be null")
        return value


class StorePatch(BaseModel):
    action: Literal["toggle"]


class StoreOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    slug: str
    image_url: Optional[str] = None
    is_active: bool
    business_id: int
    created_at: Optional[datetime] = None


# Business dashboard listing
class StoreWithCounts(StoreOut):
    product_count: int = 0
    order_count: int = 0


# Public listing row
class PublicStoreOut(StoreOut):
    product_count: int = 0
    business_name: Optional[str] = None


class PublicStorePage(BaseModel):
    items: List[PublicStoreOut]
    total: int
    page: int
    page_size: int


class PublicStoreDetail(StoreOut):
    products: List[ProductOut]
