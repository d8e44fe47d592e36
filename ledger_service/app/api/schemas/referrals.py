from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import OptionalUtcDateTime, UtcDateTime

from ...models.referral import (
    LeaderboardEntry,
    Referral,
    ReferralSettlement,
    ReferralStats,
    ReferralStatus,
    RewardType,
)


class ReferralResponse(BaseModel):
    id: str
    referrer_id: str
    referee_id: str
    status: ReferralStatus
    reward_given: bool
    reward_type: RewardType
    rewarded_at: OptionalUtcDateTime = None
    created_at: UtcDateTime

    @classmethod
    def from_domain(cls, referral: Referral) -> "ReferralResponse":
        return cls(
            id=str(referral.id),
            referrer_id=referral.referrer_id,
            referee_id=referral.referee_id,
            status=referral.status,
            reward_given=referral.reward_given,
            reward_type=referral.reward_type,
            rewarded_at=referral.rewarded_at,
            created_at=referral.created_at,
        )


class RegisterReferralRequest(BaseModel):
    referral_code: str = Field(min_length=1, max_length=64)


class ReferralSettlementResponse(BaseModel):
    referral: ReferralResponse
    referrer_reward: int
    referee_bonus: int
    referral_count: int
    theme_unlocked: bool

    @classmethod
    def from_domain(cls, result: ReferralSettlement) -> "ReferralSettlementResponse":
        return cls(
            referral=ReferralResponse.from_domain(result.referral),
            referrer_reward=result.referrer_reward,
            referee_bonus=result.referee_bonus,
            referral_count=result.referral_count,
            theme_unlocked=result.theme_unlocked,
        )


class ReferralStatsResponse(BaseModel):
    total_referrals: int
    completed_referrals: int
    total_earned: int

    @classmethod
    def from_domain(cls, stats: ReferralStats) -> "ReferralStatsResponse":
        return cls(
            total_referrals=stats.total_referrals,
            completed_referrals=stats.completed_referrals,
            total_earned=stats.total_earned,
        )


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    username: str
    referral_count: int
    credits: int
    is_premium: bool

    @classmethod
    def from_domain(cls, entry: LeaderboardEntry) -> "LeaderboardEntryResponse":
        return cls(**entry.model_dump())
