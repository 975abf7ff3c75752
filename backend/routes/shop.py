# backend/routes/shop.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from schemas.product import ProductOut
from schemas.store import PublicStorePage, PublicStoreDetail, PublicStoreOut, StoreOut
from services import stores as store_service

router = APIRouter(
    prefix="/shop",
    tags=["Shop"]
)

# Active stores with their product counts, newest first (no login required)
@router.get("/stores", response_model=PublicStorePage)
def list_public_stores(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = store_service.list_public_stores(db, page=page, page_size=page_size)
    items = [
        PublicStoreOut(
            **StoreOut.model_validate(store).model_dump(),
            product_count=product_count,
            business_name=business_name,
        )
        for store, product_count, business_name in rows
    ]
    return {"items": items, "total": total, "page": page, "page_size": page_size}

# Store page: store data plus its active products
@router.get("/stores/{slug}", response_model=PublicStoreDetail)
def get_public_store(slug: str, db: Session = Depends(get_db)):
    store, products = store_service.get_public_store(db, slug)
    return PublicStoreDetail(
        **StoreOut.model_validate(store).model_dump(),
        products=[ProductOut.model_validate(p) for p in products],
    )
