# app/core/security.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from loguru import logger
from pydantic import BaseModel

from app.core.config import ALGORITHM, BORROWER_ROLES, JWT_AUDIENCE, SECRET_KEY
from app.models.enum import ProfileRole, ProfileStatus
from app.models.profile import Profile
from app.services.container import Services

# Token diterbitkan oleh auth provider, API ini hanya memverifikasi
bearer_scheme = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    sub: str
    email: Optional[str] = None


def decode_token(token: str) -> TokenData:
    """Verify signature and expiry of a provider-issued JWT. Raises JWTError."""
    options = {"verify_aud": bool(JWT_AUDIENCE)}
    payload = jwt.decode(
        token, SECRET_KEY, algorithms=[ALGORITHM], audience=JWT_AUDIENCE or None, options=options
    )
    if not payload.get("sub"):
        raise JWTError("Subject ('sub') missing in token payload.")
    return TokenData(sub=payload["sub"], email=payload.get("email"))


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_token_data(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenData:
    """Identity from the request state (set by AuthMiddleware) or from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id: Optional[str] = getattr(request.state, "user_id", None)
    if user_id:
        return TokenData(sub=user_id, email=getattr(request.state, "email", None))

    logger.warning("User id not found in request state, attempting token decode in dependency.")
    if credentials is None:
        raise credentials_exception
    try:
        return decode_token(credentials.credentials)
    except JWTError:
        logger.warning("Token decode failed in get_token_data dependency.")
        raise credentials_exception


async def get_current_profile(
    token: TokenData = Depends(get_token_data),
    services: Services = Depends(get_services),
) -> Profile:
    profile = await services.profiles.find(token.sub)
    if profile is None:
        logger.warning(f"Authenticated account '{token.sub}' has no profile yet.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profil belum terdaftar. Silakan lengkapi pendaftaran terlebih dahulu.",
        )
    return profile


async def require_admin(current_profile: Profile = Depends(get_current_profile)) -> Profile:
    if current_profile.role != ProfileRole.ADMIN:
        logger.warning(
            f"Forbidden: profile '{current_profile.id}' with role '{current_profile.role.value}' "
            f"attempted an admin-only action."
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Hanya admin yang dapat melakukan aksi ini.")
    return current_profile


async def require_verified_borrower(current_profile: Profile = Depends(get_current_profile)) -> Profile:
    """Borrower role from BORROWER_ROLES, and verified (status `disetujui`)."""
    if current_profile.role.value not in BORROWER_ROLES:
        logger.warning(
            f"Forbidden: role '{current_profile.role.value}' of '{current_profile.id}' may not borrow."
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role Anda tidak dapat meminjam alat.")
    if current_profile.status != ProfileStatus.DISETUJUI:
        logger.info(f"Unverified profile '{current_profile.id}' ({current_profile.status.value}) tried to borrow.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Akun Anda berstatus '{current_profile.status.value}'. Peminjaman hanya untuk akun terverifikasi.",
        )
    return current_profile
