from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.db import get_db
from core.errors import ValidationFailed
from schemas.analytics import DashboardOut, SalesReport, TopProducts
from security.auth import AuthUser, require_admin
from services import analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(_: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return analytics.dashboard(db)


@router.get("/sales", response_model=SalesReport)
def sales_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if start_date and end_date and start_date > end_date:
        raise ValidationFailed("start_date", "start_date must not be after end_date")
    return analytics.sales_report(db, start_date=start_date, end_date=end_date)


@router.get("/top-products", response_model=TopProducts)
def top_products(
    limit: int = Query(analytics.TOP_PRODUCTS_LIMIT, ge=1, le=50),
    _: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"top_products": analytics.top_products(db, limit=limit)}
