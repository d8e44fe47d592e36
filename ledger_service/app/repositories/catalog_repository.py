"""카탈로그 레포지토리 (themes, store_items).

원장은 구매 정산 시 읽기만 하고, 관리자 카탈로그 API 만 쓰기를 한다.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database

from common.mongo.types import is_object_id, to_object_id

from .documents.catalog_document import StoreItemDocument, ThemeDocument
from .interfaces import StoreItemRepositoryInterface, ThemeRepositoryInterface
from ..models.catalog import StoreItem, Theme


def _set_fields(
    col: Collection,
    entry_id: str,
    fields: dict[str, Any],
    now: datetime,
    session: ClientSession | None,
) -> dict | None:
    if not is_object_id(entry_id):
        return None
    return col.find_one_and_update(
        {"_id": to_object_id(entry_id)},
        {"$set": {**fields, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
        session=session,
    )


class ThemeRepository(ThemeRepositoryInterface):
    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["themes"]

    def find_by_id(
        self, theme_id: str, session: ClientSession | None = None
    ) -> Theme | None:
        if not is_object_id(theme_id):
            return None
        raw = self._col.find_one({"_id": to_object_id(theme_id)}, session=session)
        if raw is None:
            return None
        return ThemeDocument.model_validate(raw).to_domain()

    def find_by_name(
        self, name: str, session: ClientSession | None = None
    ) -> Theme | None:
        raw = self._col.find_one({"name": name}, session=session)
        if raw is None:
            return None
        return ThemeDocument.model_validate(raw).to_domain()

    def list_active(self) -> list[Theme]:
        cursor = self._col.find({"is_active": True}, sort=[("price", 1), ("name", 1)])
        return [ThemeDocument.model_validate(raw).to_domain() for raw in cursor]

    def create(
        self,
        name: str,
        price: int,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Theme:
        record = {
            "name": name,
            "price": price,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        result = self._col.insert_one(record, session=session)
        return ThemeDocument.model_validate({**record, "_id": result.inserted_id}).to_domain()

    def update(
        self,
        theme_id: str,
        fields: dict[str, Any],
        now: datetime,
        session: ClientSession | None = None,
    ) -> Theme | None:
        raw = _set_fields(self._col, theme_id, fields, now, session)
        if raw is None:
            return None
        return ThemeDocument.model_validate(raw).to_domain()


class StoreItemRepository(StoreItemRepositoryInterface):
    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["store_items"]

    def find_by_id(
        self, item_id: str, session: ClientSession | None = None
    ) -> StoreItem | None:
        if not is_object_id(item_id):
            return None
        raw = self._col.find_one({"_id": to_object_id(item_id)}, session=session)
        if raw is None:
            return None
        return StoreItemDocument.model_validate(raw).to_domain()

    def list_active(self, category: str | None = None) -> list[StoreItem]:
        query: dict = {"is_active": True}
        if category:
            query["category"] = category
        cursor = self._col.find(query, sort=[("price", 1), ("name", 1)])
        return [StoreItemDocument.model_validate(raw).to_domain() for raw in cursor]

    def create(
        self,
        name: str,
        price: int,
        category: str,
        now: datetime,
        session: ClientSession | None = None,
    ) -> StoreItem:
        record = {
            "name": name,
            "price": price,
            "category": category,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        result = self._col.insert_one(record, session=session)
        return StoreItemDocument.model_validate(
            {**record, "_id": result.inserted_id}
        ).to_domain()

    def update(
        self,
        item_id: str,
        fields: dict[str, Any],
        now: datetime,
        session: ClientSession | None = None,
    ) -> StoreItem | None:
        raw = _set_fields(self._col, item_id, fields, now, session)
        if raw is None:
            return None
        return StoreItemDocument.model_validate(raw).to_domain()
