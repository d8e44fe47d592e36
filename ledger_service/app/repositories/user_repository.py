from __future__ import annotations

from datetime import datetime, timezone

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database

from .documents.user_document import UserDocument
from .interfaces import UserRepositoryInterface
from ..models.referral import LeaderboardSort
from ..models.transaction import PlanType
from ..models.user import LedgerUser


class UserRepository(UserRepositoryInterface):
    """users 컬렉션(원장 프로젝션)에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["users"]

    def find(
        self, user_id: str, session: ClientSession | None = None
    ) -> LedgerUser | None:
        raw = self._col.find_one({"user_id": user_id}, session=session)
        if raw is None:
            return None
        return UserDocument.model_validate(raw).to_domain()

    def find_by_referral_code(self, referral_code: str) -> LedgerUser | None:
        raw = self._col.find_one({"referral_code": referral_code})
        if raw is None:
            return None
        return UserDocument.model_validate(raw).to_domain()

    def upsert_profile(
        self, user_id: str, username: str, referral_code: str
    ) -> LedgerUser:
        now = datetime.now(timezone.utc)
        raw = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$set": {"username": username, "updated_at": now},
                "$setOnInsert": {
                    "referral_code": referral_code,
                    "is_premium": False,
                    "premium_plan": None,
                    "premium_expires_at": None,
                    "referral_count": 0,
                    "credits": 0,
                    "active_theme_id": None,
                    "rewarded_referral_ids": [],
                    "created_at": now,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return UserDocument.model_validate(raw).to_domain()

    def set_premium(
        self,
        user_id: str,
        plan: PlanType,
        expires_at: datetime | None,
        session: ClientSession | None = None,
    ) -> LedgerUser | None:
        now = datetime.now(timezone.utc)
        raw = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$set": {
                    "is_premium": True,
                    "premium_plan": plan.value,
                    "premium_expires_at": expires_at,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if raw is None:
            return None
        return UserDocument.model_validate(raw).to_domain()

    def set_active_theme(
        self, user_id: str, theme_id: str, session: ClientSession | None = None
    ) -> None:
        now = datetime.now(timezone.utc)
        self._col.update_one(
            {"user_id": user_id},
            {"$set": {"active_theme_id": theme_id, "updated_at": now}},
            session=session,
        )

    def apply_referral_reward(
        self,
        user_id: str,
        referral_id: str,
        credits: int,
        count_increment: int,
        session: ClientSession | None = None,
    ) -> tuple[LedgerUser | None, bool]:
        now = datetime.now(timezone.utc)
        # rewarded_referral_ids 에 이미 있으면 매칭되지 않으므로 증가는 추천 1건당 한 번뿐이다.
        result = self._col.update_one(
            {"user_id": user_id, "rewarded_referral_ids": {"$ne": referral_id}},
            {
                "$inc": {"referral_count": count_increment, "credits": credits},
                "$addToSet": {"rewarded_referral_ids": referral_id},
                "$set": {"updated_at": now},
            },
            session=session,
        )
        return self.find(user_id, session=session), result.modified_count == 1

    def list_top_referrers(self, sort_by: LeaderboardSort, limit: int) -> list[LedgerUser]:
        cursor = self._col.find(
            {"referral_count": {"$gt": 0}},
            sort=[
                (sort_by.value, -1),
                ("referral_count", -1),
                ("user_id", 1),
            ],
            limit=limit,
        )
        return [UserDocument.model_validate(raw).to_domain() for raw in cursor]
