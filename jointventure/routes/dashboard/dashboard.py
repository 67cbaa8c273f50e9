from fastapi import APIRouter, Depends

from jointventure.dependencies.auth import get_current_user
from jointventure.dependencies.services import get_dashboard_service
from jointventure.models.user.user import User
from jointventure.schemas.dashboard.dashboard import DashboardOut
from jointventure.services.dashboard.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardOut)
async def get_dashboard(
    current_user: User = Depends(get_current_user),
    dashboard: DashboardService = Depends(get_dashboard_service)
):
    return await dashboard.build(current_user.id)
