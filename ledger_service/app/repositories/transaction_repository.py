"""거래 레포지토리 구현체.

상태 전이는 status == pending 조건부 업데이트로만 일어나며, 경합에서 진 요청은 None 을 받는다.
"""

from __future__ import annotations

from datetime import datetime

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from common.mongo.types import is_object_id, to_object_id

from .documents.transaction_document import TransactionDocument
from .interfaces import TransactionRepositoryInterface
from ..models.transaction import Transaction, TransactionStatus, TransactionType


class TransactionRepository(TransactionRepositoryInterface):
    """transactions 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["transactions"]

    def new_id(self) -> str:
        return str(ObjectId())

    def insert(
        self, tx: Transaction, session: ClientSession | None = None
    ) -> Transaction:
        record = TransactionDocument.from_domain(tx).to_mongo_record()
        result = self._col.insert_one(record, session=session)
        return tx.model_copy(update={"id": str(result.inserted_id)})

    def insert_if_absent(
        self, tx: Transaction, session: ClientSession | None = None
    ) -> tuple[Transaction, bool]:
        if tx.idempotency_key is None:
            return self.insert(tx, session=session), True

        # 트랜잭션 안에서의 DuplicateKeyError 는 트랜잭션 전체를 abort 시키므로 먼저 조회한다.
        existing = self._find_by_idempotency_key(tx.idempotency_key, session)
        if existing is not None:
            return existing, False
        try:
            return self.insert(tx, session=session), True
        except DuplicateKeyError:
            if session is not None:
                raise
            existing = self._find_by_idempotency_key(tx.idempotency_key, None)
            if existing is None:
                raise
            return existing, False

    def _find_by_idempotency_key(
        self, key: str, session: ClientSession | None
    ) -> Transaction | None:
        raw = self._col.find_one({"idempotency_key": key}, session=session)
        if raw is None:
            return None
        return TransactionDocument.model_validate(raw).to_domain()

    def find_by_id(
        self, transaction_id: str, session: ClientSession | None = None
    ) -> Transaction | None:
        if not is_object_id(transaction_id):
            return None
        raw = self._col.find_one({"_id": to_object_id(transaction_id)}, session=session)
        if raw is None:
            return None
        return TransactionDocument.model_validate(raw).to_domain()

    def claim_pending(
        self,
        transaction_id: str,
        status: TransactionStatus,
        verified_by: str,
        failure_reason: str | None,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Transaction | None:
        raw = self._col.find_one_and_update(
            {
                "_id": to_object_id(transaction_id),
                "status": TransactionStatus.PENDING.value,
            },
            {
                "$set": {
                    "status": status.value,
                    "verified": True,
                    "verified_at": now,
                    "verified_by": verified_by,
                    "failure_reason": failure_reason,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if raw is None:
            return None
        return TransactionDocument.model_validate(raw).to_domain()

    def attach_proof(
        self,
        transaction_id: str,
        proof_ref: str,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Transaction | None:
        raw = self._col.find_one_and_update(
            {
                "_id": to_object_id(transaction_id),
                "status": TransactionStatus.PENDING.value,
                "proof_ref": None,
            },
            {
                "$set": {
                    "proof_ref": proof_ref,
                    "proof_submitted_at": now,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if raw is None:
            return None
        return TransactionDocument.model_validate(raw).to_domain()

    def list_by_user(
        self,
        user_id: str,
        tx_type: TransactionType | None,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:
        query: dict = {"user_id": user_id}
        if tx_type is not None:
            query["type"] = tx_type.value
        return self._paginate(query, page, page_size)

    def list(
        self,
        tx_type: TransactionType | None,
        status: TransactionStatus | None,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:
        query: dict = {}
        if tx_type is not None:
            query["type"] = tx_type.value
        if status is not None:
            query["status"] = status.value
        return self._paginate(query, page, page_size)

    def _paginate(
        self, query: dict, page: int, page_size: int
    ) -> tuple[list[Transaction], int]:
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        skip = (page - 1) * page_size

        total = self._col.count_documents(query)
        cursor = self._col.find(
            query,
            sort=[("created_at", -1), ("_id", -1)],
            skip=skip,
            limit=page_size,
        )

        items: list[Transaction] = []
        for raw in cursor:
            items.append(TransactionDocument.model_validate(raw).to_domain())
        return items, total

    def list_pending_before(self, cutoff: datetime, limit: int) -> list[Transaction]:
        cursor = self._col.find(
            {
                "status": TransactionStatus.PENDING.value,
                "created_at": {"$lt": cutoff},
            },
            sort=[("created_at", 1)],
            limit=limit,
        )
        return [TransactionDocument.model_validate(raw).to_domain() for raw in cursor]

    def count_completed(self, user_id: str, tx_type: TransactionType) -> int:
        return self._col.count_documents(
            {
                "user_id": user_id,
                "type": tx_type.value,
                "status": TransactionStatus.COMPLETED.value,
            }
        )

    def sum_amounts(
        self, user_id: str
    ) -> dict[tuple[TransactionType, TransactionStatus], int]:
        pipeline = [
            {"$match": {"user_id": user_id}},
            {
                "$group": {
                    "_id": {"type": "$type", "status": "$status"},
                    "total": {"$sum": "$amount"},
                }
            },
        ]

        result: dict[tuple[TransactionType, TransactionStatus], int] = {}
        for doc in self._col.aggregate(pipeline):
            key = (
                TransactionType(doc["_id"]["type"]),
                TransactionStatus(doc["_id"]["status"]),
            )
            result[key] = int(doc["total"])
        return result

    def delete_all(self, session: ClientSession | None = None) -> int:
        result = self._col.delete_many({}, session=session)
        return result.deleted_count
