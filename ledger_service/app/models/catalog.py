from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class Theme(BaseModel):
    """구매 가능한 테마 카탈로그 항목. 관리자만 생성/수정/비활성화한다."""

    id: str
    name: str
    price: int
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StoreItem(BaseModel):
    """테마 외 스토어 아이템 카탈로그 항목."""

    id: str
    name: str
    price: int
    category: str = "general"
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
