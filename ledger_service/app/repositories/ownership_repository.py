"""소유권 레포지토리 구현체 (user_themes, user_items, theme_sales).

모든 부여/기록은 유니크 인덱스 + $setOnInsert upsert 로 멱등하다.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pymongo.client_session import ClientSession
from pymongo.database import Database

from .documents.ownership_document import (
    ThemeSaleDocument,
    UserItemDocument,
    UserThemeDocument,
)
from .interfaces import (
    ThemeSaleRepositoryInterface,
    UserItemRepositoryInterface,
    UserThemeRepositoryInterface,
)
from ..models.ownership import ThemeSale, UserItemOwnership, UserThemeOwnership


class UserThemeRepository(UserThemeRepositoryInterface):
    """user_themes 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["user_themes"]

    def find(
        self, user_id: str, theme_id: str, session: ClientSession | None = None
    ) -> UserThemeOwnership | None:
        raw = self._col.find_one(
            {"user_id": user_id, "theme_id": theme_id}, session=session
        )
        if raw is None:
            return None
        return UserThemeDocument.model_validate(raw).to_domain()

    def insert_if_absent(
        self, ownership: UserThemeOwnership, session: ClientSession | None = None
    ) -> bool:
        payload = UserThemeDocument.from_domain(ownership).to_mongo_record()
        result = self._col.update_one(
            {"user_id": ownership.user_id, "theme_id": ownership.theme_id},
            {"$setOnInsert": payload},
            upsert=True,
            session=session,
        )
        return result.upserted_id is not None

    def activate(
        self, user_id: str, theme_id: str, session: ClientSession | None = None
    ) -> None:
        now = datetime.now(timezone.utc)
        # 파이프라인 업데이트 한 번으로 요청한 행만 true, 나머지는 false 가 된다.
        self._col.update_many(
            {"user_id": user_id},
            [
                {
                    "$set": {
                        "active": {"$eq": ["$theme_id", theme_id]},
                        "updated_at": now,
                    }
                }
            ],
            session=session,
        )

    def list_by_user(self, user_id: str) -> list[UserThemeOwnership]:
        cursor = self._col.find({"user_id": user_id}, sort=[("purchased_at", -1)])
        return [UserThemeDocument.model_validate(raw).to_domain() for raw in cursor]


class UserItemRepository(UserItemRepositoryInterface):
    """user_items 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["user_items"]

    def find(
        self, user_id: str, item_id: str, session: ClientSession | None = None
    ) -> UserItemOwnership | None:
        raw = self._col.find_one(
            {"user_id": user_id, "item_id": item_id}, session=session
        )
        if raw is None:
            return None
        return UserItemDocument.model_validate(raw).to_domain()

    def insert_if_absent(
        self, ownership: UserItemOwnership, session: ClientSession | None = None
    ) -> bool:
        payload = UserItemDocument.from_domain(ownership).to_mongo_record()
        result = self._col.update_one(
            {"user_id": ownership.user_id, "item_id": ownership.item_id},
            {"$setOnInsert": payload},
            upsert=True,
            session=session,
        )
        return result.upserted_id is not None

    def list_by_user(self, user_id: str) -> list[UserItemOwnership]:
        cursor = self._col.find({"user_id": user_id}, sort=[("purchased_at", -1)])
        return [UserItemDocument.model_validate(raw).to_domain() for raw in cursor]


class ThemeSaleRepository(ThemeSaleRepositoryInterface):
    """theme_sales 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["theme_sales"]

    def upsert(self, sale: ThemeSale, session: ClientSession | None = None) -> bool:
        payload = ThemeSaleDocument.from_domain(sale).to_mongo_record()
        result = self._col.update_one(
            {"transaction_id": sale.transaction_id},
            {"$setOnInsert": payload},
            upsert=True,
            session=session,
        )
        return result.upserted_id is not None

    def find_by_transaction_id(self, transaction_id: str) -> ThemeSale | None:
        raw = self._col.find_one({"transaction_id": transaction_id})
        if raw is None:
            return None
        return ThemeSaleDocument.model_validate(raw).to_domain()

    def delete_all(self, session: ClientSession | None = None) -> int:
        result = self._col.delete_many({}, session=session)
        return result.deleted_count
