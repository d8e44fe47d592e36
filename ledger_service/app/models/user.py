from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .transaction import PlanType


class LedgerUser(BaseModel):
    """원장이 관리하는 유저 프로젝션.

    인증/프로필의 원본은 외부 인증 서비스에 있고, 여기에는 추천 코드, 프리미엄 상태,
    추천 카운트처럼 정산 결과로 바뀌는 필드만 둔다.
    """

    user_id: str
    username: str = ""
    referral_code: str | None = None
    is_premium: bool = False
    premium_plan: PlanType | None = None
    premium_expires_at: datetime | None = None  # None 이면 lifetime 또는 비프리미엄
    referral_count: int = 0
    credits: int = 0
    active_theme_id: str | None = None
    rewarded_referral_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PremiumStatus(BaseModel):
    user_id: str
    is_premium: bool
    plan: PlanType | None = None
    expires_at: datetime | None = None
