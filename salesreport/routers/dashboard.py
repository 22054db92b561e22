from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from salesreport.db import get_db
from salesreport.schemas import DashboardStatsRead
from salesreport.security import SessionUser, get_current_user
from salesreport.services.dashboard import get_dashboard_stats

router = APIRouter(tags=["dashboard"])


@router.get("/api/dashboard/stats", response_model=DashboardStatsRead)
def dashboard_stats(
    user: SessionUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DashboardStatsRead:
    return get_dashboard_stats(db, user)
