from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_principal
from ..schemas.referrals import ReferralResponse
from ..schemas.users import (
    RegisterUserRequest,
    RegisterUserResponse,
    UserProfileResponse,
)
from ...models.principal import Principal
from ...services.users_service import UsersService, get_users_service


router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="원장 유저 등록 (가입 훅, 추천 코드 연결)",
)
def register_user(
    body: RegisterUserRequest,
    principal: Principal = Depends(get_principal),
    service: UsersService = Depends(get_users_service),
) -> RegisterUserResponse:
    user, referral = service.register(
        principal.user_id, body.username, referral_code=body.referral_code
    )
    return RegisterUserResponse(
        user=UserProfileResponse.from_domain(user),
        referral=ReferralResponse.from_domain(referral) if referral else None,
    )


@router.get("/me", response_model=UserProfileResponse, summary="내 원장 프로필")
def get_me(
    principal: Principal = Depends(get_principal),
    service: UsersService = Depends(get_users_service),
) -> UserProfileResponse:
    return UserProfileResponse.from_domain(service.get_profile(principal.user_id))
