"""소유권 관련 MongoDB 도큐먼트 (user_themes, user_items, theme_sales)."""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.ownership import (
    OwnershipSource,
    ThemeSale,
    UserItemOwnership,
    UserThemeOwnership,
)


class UserThemeDocument(BaseDocument):
    user_id: str
    theme_id: str
    active: bool = False
    source: OwnershipSource = OwnershipSource.PURCHASE
    purchased_at: MongoDateTime

    @classmethod
    def from_domain(cls, ownership: UserThemeOwnership) -> "UserThemeDocument":
        return cls.model_validate(build_document_data_from_domain(ownership))

    def to_domain(self) -> UserThemeOwnership:
        return UserThemeOwnership(
            id=from_object_id(self.id),
            user_id=self.user_id,
            theme_id=self.theme_id,
            active=self.active,
            source=self.source,
            purchased_at=self.purchased_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class UserItemDocument(BaseDocument):
    user_id: str
    item_id: str
    purchased_at: MongoDateTime

    @classmethod
    def from_domain(cls, ownership: UserItemOwnership) -> "UserItemDocument":
        return cls.model_validate(build_document_data_from_domain(ownership))

    def to_domain(self) -> UserItemOwnership:
        return UserItemOwnership(
            id=from_object_id(self.id),
            user_id=self.user_id,
            item_id=self.item_id,
            purchased_at=self.purchased_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ThemeSaleDocument(BaseDocument):
    transaction_id: str
    user_id: str
    theme_id: str
    amount: int

    @classmethod
    def from_domain(cls, sale: ThemeSale) -> "ThemeSaleDocument":
        return cls.model_validate(build_document_data_from_domain(sale))

    def to_domain(self) -> ThemeSale:
        return ThemeSale(
            id=from_object_id(self.id),
            transaction_id=self.transaction_id,
            user_id=self.user_id,
            theme_id=self.theme_id,
            amount=self.amount,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
