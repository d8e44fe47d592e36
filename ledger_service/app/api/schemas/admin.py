from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, StrictInt

from common.types.datetime import UtcDateTime

from ...models.audit import AuditLog
from ...models.catalog import StoreItem, Theme
from ...models.referral import RewardType
from ...models.wallet import WalletAudit
from ...services.admin_service import LedgerResetResult, ReconcileResult
from .purchases import StoreItemResponse, ThemeResponse


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class SettleReferralRequest(BaseModel):
    reward_type: RewardType | None = None


class ReconcileResponse(BaseModel):
    transaction_id: str
    ownership_created: bool
    sale_created: bool

    @classmethod
    def from_result(cls, result: ReconcileResult) -> "ReconcileResponse":
        return cls(
            transaction_id=result.transaction_id,
            ownership_created=result.ownership_created,
            sale_created=result.sale_created,
        )


class LedgerResetResponse(BaseModel):
    transactions_deleted: int
    referrals_deleted: int
    theme_sales_deleted: int
    wallets_reset: int

    @classmethod
    def from_result(cls, result: LedgerResetResult) -> "LedgerResetResponse":
        return cls(
            transactions_deleted=result.transactions_deleted,
            referrals_deleted=result.referrals_deleted,
            theme_sales_deleted=result.theme_sales_deleted,
            wallets_reset=result.wallets_reset,
        )


class WalletAuditResponse(BaseModel):
    user_id: str
    balance: int
    expected_balance: int
    completed_credits: int
    completed_debits: int
    pending_withdrawals: int
    consistent: bool

    @classmethod
    def from_domain(cls, audit: WalletAudit) -> "WalletAuditResponse":
        return cls(**audit.model_dump(), consistent=audit.consistent)


class AuditLogResponse(BaseModel):
    id: str
    actor_id: str
    action: str
    details: dict[str, Any]
    created_at: UtcDateTime

    @classmethod
    def from_domain(cls, entry: AuditLog) -> "AuditLogResponse":
        return cls(
            id=str(entry.id),
            actor_id=entry.actor_id,
            action=entry.action,
            details=entry.details,
            created_at=entry.created_at,
        )


class ThemeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    price: StrictInt


class ThemeUpdateRequest(BaseModel):
    """보낸 필드만 바꾼다."""

    name: str | None = Field(default=None, min_length=1, max_length=64)
    price: StrictInt | None = None
    is_active: bool | None = None


class StoreItemCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    price: StrictInt
    category: str = Field(default="general", min_length=1, max_length=32)


class StoreItemUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=64)
    price: StrictInt | None = None
    category: str | None = Field(default=None, min_length=1, max_length=32)
    is_active: bool | None = None


class CatalogThemeResponse(ThemeResponse):
    is_active: bool

    @classmethod
    def from_domain(cls, theme: Theme) -> "CatalogThemeResponse":
        return cls(id=theme.id, name=theme.name, price=theme.price, is_active=theme.is_active)


class CatalogStoreItemResponse(StoreItemResponse):
    is_active: bool

    @classmethod
    def from_domain(cls, item: StoreItem) -> "CatalogStoreItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            price=item.price,
            category=item.category,
            is_active=item.is_active,
        )
