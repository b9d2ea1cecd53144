# medisync/routers/dashboard.py
from fastapi import APIRouter, Depends

from .. import schemas, security
from ..store import ClinicStore

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(security.get_current_user)],
)

@router.get("/stats", response_model=schemas.DashboardStatsResponse)
def get_dashboard_stats(
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    return store.dashboard_stats(owner_id)

@router.get("/alerts", response_model=schemas.DashboardAlertsResponse)
def get_dashboard_alerts(
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    """Low-stock and expiring-soon medications."""
    return store.alerts(owner_id)

@router.get("/categories", response_model=schemas.CategoryBreakdown)
def get_category_breakdown(
    store: ClinicStore = Depends(security.get_store),
    owner_id: int = Depends(security.get_current_owner),
):
    return store.category_breakdown(owner_id)
