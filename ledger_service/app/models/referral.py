from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class ReferralStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class RewardType(StrEnum):
    CREDITS = "credits"
    THEME = "theme"


class Referral(BaseModel):
    """추천 관계 도메인 모델. 한 유저(referee)는 최대 한 번만 추천될 수 있다."""

    id: str | None = None
    referrer_id: str
    referee_id: str
    status: ReferralStatus = ReferralStatus.PENDING
    reward_given: bool = False
    reward_type: RewardType = RewardType.CREDITS
    rewarded_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ReferralSettlement(BaseModel):
    """추천 보상 정산 결과."""

    referral: Referral
    referrer_reward: int
    referee_bonus: int
    referral_count: int
    theme_unlocked: bool


class LeaderboardSort(StrEnum):
    REFERRAL_COUNT = "referral_count"
    CREDITS = "credits"


class ReferralStats(BaseModel):
    """추천인 한 명의 집계. total_earned 는 크레딧으로 정산된 추천 보상 합이다."""

    user_id: str
    total_referrals: int
    completed_referrals: int
    total_earned: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    username: str
    referral_count: int
    credits: int
    is_premium: bool
