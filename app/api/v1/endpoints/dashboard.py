# app/api/v1/endpoints/dashboard.py
from fastapi import APIRouter, Depends

from app.core.security import get_current_profile, get_services, require_admin
from app.models.profile import Profile
from app.models.report import AdminStats, BorrowerSummary
from app.services.container import Services

router = APIRouter(tags=["Dashboard"])


@router.get("/admin", response_model=AdminStats, summary="Admin dashboard counts")
async def read_admin_stats(
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    return await services.dashboard.admin_stats()


@router.get("/me", response_model=BorrowerSummary, summary="Current user's loan history")
async def read_my_history(
    current_profile: Profile = Depends(get_current_profile),
    services: Services = Depends(get_services),
):
    return await services.dashboard.user_history(current_profile.id)
