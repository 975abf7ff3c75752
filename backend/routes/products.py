# backend/routes/products.py
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import business_required
from utils.audit import write_log, client_ip
from models.users import User
import schemas.product as product_schemas
from services import products as product_service

router = APIRouter(prefix="/products", tags=["Products"])


# ---- LISTING ----
@router.get("", response_model=product_schemas.ProductListPage)
def list_products(
    store_id: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    has_stock: bool = Query(False),
    search: Optional[str] = Query(None, description="Search by name or description"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    items, total = product_service.list_business_products(
        db, current_user.id,
        store_id=store_id, is_active=is_active, has_stock=has_stock, search=search,
        min_price=min_price, max_price=max_price, page=page, page_size=page_size,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.post("", response_model=product_schemas.ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    product = product_service.create_product(db, current_user.id, payload.model_dump())
    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
              ip=client_ip(request), meta={"product_id": product.id, "store_id": product.store_id})
    return product


# Dashboard counters; threshold defaults to LOW_STOCK_THRESHOLD
@router.get("/stats", response_model=product_schemas.ProductStats)
def get_product_stats(
    threshold: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    return product_service.product_stats(db, current_user.id, threshold)


# Set the stock of many products at once; nothing changes unless all are owned
@router.patch("/bulk", response_model=product_schemas.BulkStockResult)
def bulk_update_stock(
    payload: product_schemas.BulkStockPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    updates = [(u.product_id, u.stock) for u in payload.updates]
    products = product_service.bulk_set_stock(db, current_user.id, updates, user_id=current_user.id)
    write_log(db, user_id=current_user.id, action="STOCK_BULK_UPDATE", resource="products",
              ip=client_ip(request), meta={"product_ids": [p.id for p in products]})
    return {"updated": len(products), "items": products}


@router.get("/{product_id}", response_model=product_schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    return product_service.get_business_product(db, current_user.id, product_id)


@router.put("/{product_id}", response_model=product_schemas.ProductOut)
def update_product(
    product_id: int,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    data = payload.model_dump(exclude_unset=True)
    product = product_service.update_product(db, current_user.id, product_id, data)
    write_log(db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
              ip=client_ip(request), meta={"product_id": product_id, "fields": sorted(data)})
    return product


# Stock adjustment ({action: set|increment|decrement, quantity}) or {action: toggle}
@router.patch("/{product_id}", response_model=product_schemas.ProductOut)
def patch_product(
    product_id: int,
    payload: product_schemas.ProductPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    if payload.action == "toggle":
        product = product_service.toggle_product(db, current_user.id, product_id)
        write_log(db, user_id=current_user.id, action="PRODUCT_TOGGLE", resource="products",
                  ip=client_ip(request), meta={"product_id": product_id, "is_active": product.is_active})
        return product

    if payload.quantity is None:
        raise HTTPException(status_code=400, detail="quantity is required for stock updates")

    product = product_service.adjust_stock(
        db, current_user.id, product_id, payload.action, payload.quantity, user_id=current_user.id
    )
    write_log(db, user_id=current_user.id, action="STOCK_ADJUSTMENT", resource="products",
              ip=client_ip(request),
              meta={"product_id": product_id, "action": payload.action, "quantity": payload.quantity})
    return product


# Soft delete
@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    product_service.deactivate_product(db, current_user.id, product_id)
    write_log(db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
              ip=client_ip(request), meta={"product_id": product_id})
    return {"message": "Product deleted"}
