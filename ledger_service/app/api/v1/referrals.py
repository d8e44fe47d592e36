from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_principal
from ..schemas.referrals import (
    LeaderboardEntryResponse,
    ReferralResponse,
    ReferralStatsResponse,
    RegisterReferralRequest,
)
from ...models.principal import Principal
from ...models.referral import LeaderboardSort
from ...services.referral_service import ReferralService, get_referral_service


router = APIRouter()


@router.get("", response_model=list[ReferralResponse], summary="내가 추천한 유저 목록")
def list_my_referrals(
    principal: Principal = Depends(get_principal),
    service: ReferralService = Depends(get_referral_service),
) -> list[ReferralResponse]:
    return [
        ReferralResponse.from_domain(referral)
        for referral in service.list_for_referrer(principal.user_id)
    ]


@router.post(
    "/register",
    response_model=ReferralResponse,
    status_code=status.HTTP_201_CREATED,
    summary="추천 코드 등록",
)
def register_referral(
    body: RegisterReferralRequest,
    principal: Principal = Depends(get_principal),
    service: ReferralService = Depends(get_referral_service),
) -> ReferralResponse:
    referral = service.register_by_code(body.referral_code, principal.user_id)
    return ReferralResponse.from_domain(referral)


@router.get("/stats", response_model=ReferralStatsResponse, summary="내 추천 집계")
def my_referral_stats(
    principal: Principal = Depends(get_principal),
    service: ReferralService = Depends(get_referral_service),
) -> ReferralStatsResponse:
    return ReferralStatsResponse.from_domain(service.stats(principal.user_id))


@router.get(
    "/leaderboard",
    response_model=list[LeaderboardEntryResponse],
    summary="추천 리더보드",
)
def referral_leaderboard(
    sort_by: LeaderboardSort = Query(LeaderboardSort.REFERRAL_COUNT, description="정렬 기준"),
    limit: int = Query(10, ge=1, le=100, description="조회할 인원 (1~100)"),
    principal: Principal = Depends(get_principal),
    service: ReferralService = Depends(get_referral_service),
) -> list[LeaderboardEntryResponse]:
    return [
        LeaderboardEntryResponse.from_domain(entry)
        for entry in service.leaderboard(sort_by, limit)
    ]
