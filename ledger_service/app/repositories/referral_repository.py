from __future__ import annotations

from datetime import datetime

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database

from common.mongo.types import to_object_id

from .documents.referral_document import ReferralDocument
from .interfaces import ReferralRepositoryInterface
from ..models.referral import Referral, ReferralStatus, RewardType


class ReferralRepository(ReferralRepositoryInterface):
    """referrals 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["referrals"]

    def insert(
        self, referral: Referral, session: ClientSession | None = None
    ) -> Referral:
        # referee_id 유니크 인덱스 위반 시 DuplicateKeyError 는 호출자가 처리한다.
        record = ReferralDocument.from_domain(referral).to_mongo_record()
        result = self._col.insert_one(record, session=session)
        return referral.model_copy(update={"id": str(result.inserted_id)})

    def find_by_referee(
        self, referee_id: str, session: ClientSession | None = None
    ) -> Referral | None:
        raw = self._col.find_one({"referee_id": referee_id}, session=session)
        if raw is None:
            return None
        return ReferralDocument.model_validate(raw).to_domain()

    def mark_rewarded(
        self,
        referral_id: str,
        reward_type: RewardType,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Referral | None:
        raw = self._col.find_one_and_update(
            {"_id": to_object_id(referral_id), "reward_given": False},
            {
                "$set": {
                    "reward_given": True,
                    "status": ReferralStatus.COMPLETED.value,
                    "reward_type": reward_type.value,
                    "rewarded_at": now,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if raw is None:
            return None
        return ReferralDocument.model_validate(raw).to_domain()

    def list_by_referrer(self, referrer_id: str) -> list[Referral]:
        cursor = self._col.find(
            {"referrer_id": referrer_id}, sort=[("created_at", -1)]
        )
        return [ReferralDocument.model_validate(raw).to_domain() for raw in cursor]

    def list(self, page: int, page_size: int) -> tuple[list[Referral], int]:
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        skip = (page - 1) * page_size

        total = self._col.count_documents({})
        cursor = self._col.find(
            {},
            sort=[("created_at", -1), ("_id", -1)],
            skip=skip,
            limit=page_size,
        )
        items = [ReferralDocument.model_validate(raw).to_domain() for raw in cursor]
        return items, total

    def delete_all(self, session: ClientSession | None = None) -> int:
        result = self._col.delete_many({}, session=session)
        return result.deleted_count
