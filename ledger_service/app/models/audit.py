from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AuditAction:
    """감사 로그 action 상수."""

    TRANSACTION_APPROVED = "transaction_approved"
    TRANSACTION_REJECTED = "transaction_rejected"
    STORE_PAYMENT_RECONCILED = "store_payment_reconciled"
    REFERRAL_REWARDED = "referral_rewarded"
    LEDGER_RESET = "ledger_reset"
    THEME_CREATED = "theme_created"
    THEME_UPDATED = "theme_updated"
    THEME_DEACTIVATED = "theme_deactivated"
    STORE_ITEM_CREATED = "store_item_created"
    STORE_ITEM_UPDATED = "store_item_updated"
    STORE_ITEM_DEACTIVATED = "store_item_deactivated"


class AuditLog(BaseModel):
    """관리자/추천 정산 행위의 append-only 기록."""

    id: str | None = None
    actor_id: str
    action: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
