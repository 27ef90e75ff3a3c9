"""API endpoint for the current user's dashboard."""
from fastapi import APIRouter

from jelantah.api.deps import DB, CurrentUser
from jelantah.schemas.dashboard import DashboardStatsResponse
from jelantah.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("", response_model=DashboardStatsResponse, response_model_exclude_none=True)
async def get_dashboard_stats(db: DB, current_user: CurrentUser):
    """Headline numbers for the current user's role."""
    stats = await DashboardService(db).get_stats(current_user)
    return DashboardStatsResponse(**stats)
