from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime


class StatusStats(BaseModel):
    count: int
    total_amount: float


class StoreStats(BaseModel):
    store_id: int
    store_name: str
    count: int
    total_amount: float


class OrderStatsResponse(BaseModel):
    total_orders: int
    total_revenue: float
    by_status: Dict[str, StatusStats]
    by_store: List[StoreStats]


class SalesReportResponse(BaseModel):
    period: str
    start_date: datetime
    end_date: datetime
    total_orders: int
    completed_orders: int
    total_sales: float
    completed_sales: float
    average_order_value: float


class CustomerStatsResponse(BaseModel):
    total_orders: int
    total_spent: float
    by_status: Dict[str, StatusStats]


class StoreSummary(BaseModel):
    total_stores: int
    active_stores: int
    inactive_stores: int


class RecentOrderOut(BaseModel):
    id: int
    order_number: str
    status: str
    total_amount: float
    store_name: Optional[str] = None
    customer_name: Optional[str] = None
    created_at: Optional[datetime] = None


class DashboardResponse(BaseModel):
    stores: StoreSummary
    total_products: int
    active_products: int
    total_orders: int
    total_revenue: float
    recent_orders: List[RecentOrderOut]
