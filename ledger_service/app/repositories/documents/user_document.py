from __future__ import annotations

from pydantic import Field

from common.mongo.types import BaseDocument, OptionalMongoDateTime

from ...models.transaction import PlanType
from ...models.user import LedgerUser


class UserDocument(BaseDocument):
    """MongoDB users 컬렉션 도큐먼트 모델 (원장 프로젝션)."""

    user_id: str
    username: str = ""
    referral_code: str | None = None
    is_premium: bool = False
    premium_plan: PlanType | None = None
    premium_expires_at: OptionalMongoDateTime = None
    referral_count: int = 0
    credits: int = 0
    active_theme_id: str | None = None
    rewarded_referral_ids: list[str] = Field(default_factory=list)

    def to_domain(self) -> LedgerUser:
        return LedgerUser(
            user_id=self.user_id,
            username=self.username,
            referral_code=self.referral_code,
            is_premium=self.is_premium,
            premium_plan=self.premium_plan,
            premium_expires_at=self.premium_expires_at,
            referral_count=self.referral_count,
            credits=self.credits,
            active_theme_id=self.active_theme_id,
            rewarded_referral_ids=list(self.rewarded_referral_ids),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
