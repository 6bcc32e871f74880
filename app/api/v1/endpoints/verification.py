# app/api/v1/endpoints/verification.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request

from app.api.v1.endpoints.profiles import to_profile_response
from app.core.rate_limiter import limiter
from app.core.security import get_services, require_admin
from app.models.enum import ProfileRole, ProfileStatus
from app.models.profile import Profile
from app.services.container import Services

router = APIRouter(tags=["Account Verification"])


@router.get("/", response_model=List[Profile.Response], summary="List registrants (Admin)")
async def read_registrants(
    role: Optional[List[ProfileRole]] = Query(None, description="Filter role, bisa lebih dari satu"),
    status_filter: Optional[ProfileStatus] = Query(None, alias="status"),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    profiles = await services.verification.list_profiles(role_filter=role, status=status_filter)
    return [to_profile_response(p) for p in profiles]


@router.patch("/{profile_id}/approve", response_model=Profile.Response, summary="Approve registrant (Admin)")
@limiter.limit("60/minute")
async def approve_registrant(
    request: Request,
    profile_id: str = Path(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    profile = await services.verification.decide(profile_id, ProfileStatus.DISETUJUI)
    return to_profile_response(profile)


@router.patch("/{profile_id}/reject", response_model=Profile.Response, summary="Reject registrant (Admin)")
@limiter.limit("60/minute")
async def reject_registrant(
    request: Request,
    profile_id: str = Path(...),
    decision: Optional[Profile.Decision] = Body(None),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    profile = await services.verification.decide(profile_id, ProfileStatus.DITOLAK, decision.alasan if decision else None)
    return to_profile_response(profile)
