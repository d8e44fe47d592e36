"""카탈로그 MongoDB 도큐먼트 (themes, store_items).

관리자 카탈로그 API 가 만든 항목에는 타임스탬프가 있지만, 초기 시드 데이터에는 없을 수 있다.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from common.mongo.types import OptionalMongoDateTime, PyObjectId

from ...models.catalog import StoreItem, Theme


class _CatalogDocument(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: PyObjectId = Field(alias="_id")
    name: str
    price: int
    is_active: bool = True
    created_at: OptionalMongoDateTime = None
    updated_at: OptionalMongoDateTime = None


class ThemeDocument(_CatalogDocument):
    def to_domain(self) -> Theme:
        return Theme(
            id=str(self.id),
            name=self.name,
            price=self.price,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class StoreItemDocument(_CatalogDocument):
    category: str = "general"

    def to_domain(self) -> StoreItem:
        return StoreItem(
            id=str(self.id),
            name=self.name,
            price=self.price,
            category=self.category,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
