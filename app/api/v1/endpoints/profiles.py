# app/api/v1/endpoints/profiles.py
from fastapi import APIRouter, Body, Depends, Request, status

from app.core.rate_limiter import limiter
from app.core.security import TokenData, get_current_profile, get_services, get_token_data
from app.models.profile import Profile
from app.services.container import Services

router = APIRouter(tags=["Profiles"])


def to_profile_response(profile: Profile) -> Profile.Response:
    return Profile.Response.model_validate(profile.model_dump())


@router.post(
    "/register",
    response_model=Profile.Response,
    status_code=status.HTTP_201_CREATED,
    summary="Complete sign-up as siswa/guru",
)
@limiter.limit("5/minute")
async def register_profile(
    request: Request,
    payload: dict = Body(...),
    token: TokenData = Depends(get_token_data),
    services: Services = Depends(get_services),
):
    """Dipanggil setelah akun dibuat di auth provider; status awal `pending`."""
    profile = await services.profiles.register(token.sub, token.email, payload)
    return to_profile_response(profile)


@router.get("/me", response_model=Profile.Response, summary="Current user's profile")
async def read_my_profile(current_profile: Profile = Depends(get_current_profile)):
    return to_profile_response(current_profile)
