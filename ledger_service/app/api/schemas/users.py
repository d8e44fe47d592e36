from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import OptionalUtcDateTime

from ...models.transaction import PlanType
from ...models.user import LedgerUser
from .referrals import ReferralResponse


class RegisterUserRequest(BaseModel):
    """가입 직후 인증 서비스가 호출한다. referral_code 는 선택."""

    username: str = Field(default="", max_length=64)
    referral_code: str | None = None


class UserProfileResponse(BaseModel):
    user_id: str
    username: str
    referral_code: str | None = None
    is_premium: bool
    premium_plan: PlanType | None = None
    premium_expires_at: OptionalUtcDateTime = None
    referral_count: int
    credits: int
    active_theme_id: str | None = None

    @classmethod
    def from_domain(cls, user: LedgerUser) -> "UserProfileResponse":
        return cls.model_validate(user.model_dump(exclude={"rewarded_referral_ids"}))


class RegisterUserResponse(BaseModel):
    user: UserProfileResponse
    referral: ReferralResponse | None = None
