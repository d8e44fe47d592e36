from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class OwnershipSource(StrEnum):
    PURCHASE = "purchase"
    REFERRAL_BONUS = "referral_bonus"


class UserThemeOwnership(BaseModel):
    """유저-테마 소유 관계. (user_id, theme_id) 조합은 유일하다."""

    id: str | None = None
    user_id: str
    theme_id: str
    active: bool = False
    source: OwnershipSource = OwnershipSource.PURCHASE
    purchased_at: datetime
    created_at: datetime
    updated_at: datetime


class UserItemOwnership(BaseModel):
    """테마 외 스토어 아이템 소유 관계."""

    id: str | None = None
    user_id: str
    item_id: str
    purchased_at: datetime
    created_at: datetime
    updated_at: datetime


class ThemeSale(BaseModel):
    """테마 판매 기록. transaction_id (거래 reference 또는 id) 로 upsert 된다."""

    id: str | None = None
    transaction_id: str
    user_id: str
    theme_id: str
    amount: int
    created_at: datetime
    updated_at: datetime
