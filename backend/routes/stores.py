# backend/routes/stores.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import business_required
from utils.audit import write_log, client_ip
from models.users import User
from schemas.store import StoreCreate, StoreUpdate, StorePatch, StoreOut, StoreWithCounts
from services import stores as store_service

router = APIRouter(prefix="/stores", tags=["Stores"])


# Stores of the current business with active product and order counts
@router.get("", response_model=List[StoreWithCounts])
def list_my_stores(
    search: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    rows = store_service.list_business_stores(db, current_user.id, search=search, is_active=is_active)
    return [
        StoreWithCounts(
            **StoreOut.model_validate(store).model_dump(),
            product_count=product_count,
            order_count=order_count,
        )
        for store, product_count, order_count in rows
    ]


@router.post("", response_model=StoreOut, status_code=status.HTTP_201_CREATED)
def create_store(
    payload: StoreCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    store = store_service.create_store(db, current_user.id, payload.model_dump())
    write_log(db, user_id=current_user.id, action="STORE_CREATE", resource="stores",
              ip=client_ip(request), meta={"store_id": store.id, "slug": store.slug})
    return store


@router.get("/{store_id}", response_model=StoreOut)
def get_store(
    store_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    return store_service.get_business_store(db, current_user.id, store_id)


@router.put("/{store_id}", response_model=StoreOut)
def update_store(
    store_id: int,
    payload: StoreUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    data = payload.model_dump(exclude_unset=True)
    store = store_service.update_store(db, current_user.id, store_id, data)
    write_log(db, user_id=current_user.id, action="STORE_UPDATE", resource="stores",
              ip=client_ip(request), meta={"store_id": store_id, "fields": sorted(data)})
    return store


# Toggle activation; deactivating also deactivates the store's products
@router.patch("/{store_id}", response_model=StoreOut)
def patch_store(
    store_id: int,
    payload: StorePatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    store = store_service.toggle_store(db, current_user.id, store_id)
    write_log(db, user_id=current_user.id, action="STORE_TOGGLE", resource="stores",
              ip=client_ip(request), meta={"store_id": store_id, "is_active": store.is_active})
    return store


@router.delete("/{store_id}")
def delete_store(
    store_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    store_service.delete_store(db, current_user.id, store_id)
    write_log(db, user_id=current_user.id, action="STORE_DELETE", resource="stores",
              ip=client_ip(request), meta={"store_id": store_id})
    return {"message": "Store deleted"}
