from datetime import datetime
from typing import List

from pydantic import BaseModel

from schemas.order import OrderOut


class LowStockProduct(BaseModel):
    id: int
    name: str
    quantity: int


class ChartPoint(BaseModel):
    date: str
    amount: float


class DashboardOut(BaseModel):
    total_products: int
    total_orders: int
    total_revenue: float
    total_customers: int
    pending_orders: int
    confirmed_orders: int
    low_stock_products: List[LowStockProduct]
    recent_orders: List[OrderOut]
    chart_data: List[ChartPoint]


class SaleOut(BaseModel):
    order_number: str
    created_at: datetime
    total_amount: float
    status: str
    payment_status: str


class SalesSummary(BaseModel):
    total_sales: float
    order_count: int
    average_order_value: float


class SalesReport(BaseModel):
    sales: List[SaleOut]
    summary: SalesSummary


class TopProduct(BaseModel):
    product_id: int
    product_name: str
    total_quantity: int
    total_revenue: float


class TopProducts(BaseModel):
    top_products: List[TopProduct]
