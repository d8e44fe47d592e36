from __future__ import annotations

from pydantic import BaseModel

from common.types.datetime import OptionalUtcDateTime, UtcDateTime

from ...config import PremiumPlanConfig
from ...models.catalog import StoreItem, Theme
from ...models.ownership import OwnershipSource, UserItemOwnership, UserThemeOwnership
from ...models.transaction import PlanType
from ...models.user import PremiumStatus


class PremiumPlanResponse(BaseModel):
    plan_type: PlanType
    name: str
    price: int

    @classmethod
    def from_config(cls, plan: PremiumPlanConfig) -> "PremiumPlanResponse":
        return cls(plan_type=plan.plan, name=plan.name, price=plan.price)


class PremiumPurchaseRequest(BaseModel):
    plan_type: str


class PremiumStatusResponse(BaseModel):
    user_id: str
    is_premium: bool
    plan: PlanType | None = None
    expires_at: OptionalUtcDateTime = None

    @classmethod
    def from_domain(cls, status: PremiumStatus) -> "PremiumStatusResponse":
        return cls.model_validate(status.model_dump())


class ThemeResponse(BaseModel):
    id: str
    name: str
    price: int

    @classmethod
    def from_domain(cls, theme: Theme) -> "ThemeResponse":
        return cls(id=theme.id, name=theme.name, price=theme.price)


class OwnedThemeResponse(BaseModel):
    theme_id: str
    active: bool
    source: OwnershipSource
    purchased_at: UtcDateTime

    @classmethod
    def from_domain(cls, ownership: UserThemeOwnership) -> "OwnedThemeResponse":
        return cls(
            theme_id=ownership.theme_id,
            active=ownership.active,
            source=ownership.source,
            purchased_at=ownership.purchased_at,
        )


class StoreItemResponse(BaseModel):
    id: str
    name: str
    price: int
    category: str

    @classmethod
    def from_domain(cls, item: StoreItem) -> "StoreItemResponse":
        return cls(id=item.id, name=item.name, price=item.price, category=item.category)


class OwnedItemResponse(BaseModel):
    item_id: str
    purchased_at: UtcDateTime

    @classmethod
    def from_domain(cls, ownership: UserItemOwnership) -> "OwnedItemResponse":
        return cls(item_id=ownership.item_id, purchased_at=ownership.purchased_at)
