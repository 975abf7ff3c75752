# routes/reports.py
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import business_required
from models.users import User
from schemas.reports import DashboardResponse, OrderStatsResponse, SalesReportResponse
from services import reports as report_service

router = APIRouter(prefix="/reports", tags=["Reports"])

# -----------------------------
# 1) Orders by status and store
# -----------------------------
@router.get("/orders", response_model=OrderStatsResponse)
def report_orders(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    return report_service.order_stats(db, current_user.id, start_date, end_date)

# -----------------------------
# 2) Sales for a period (cancelled orders excluded)
# -----------------------------
@router.get("/sales", response_model=SalesReportResponse)
def report_sales(
    period: Literal["day", "week", "month", "year"] = "month",
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    return report_service.sales_report(db, current_user.id, period)

# -----------------------------
# 3) Dashboard: stores, catalog, revenue and latest orders
# -----------------------------
@router.get("/dashboard", response_model=DashboardResponse)
def report_dashboard(
    recent: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(business_required),
):
    return report_service.dashboard(db, current_user.id, recent)
