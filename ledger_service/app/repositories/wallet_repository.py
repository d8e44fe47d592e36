"""지갑 레포지토리 구현체.

모든 잔액 변경은 단일 도큐먼트 원자 연산($inc, 조건부 find_one_and_update)으로 처리한다.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.database import Database

from .documents.wallet_document import WalletDocument
from .interfaces import WalletRepositoryInterface
from ..models.wallet import Wallet


class WalletRepository(WalletRepositoryInterface):
    """wallets 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["wallets"]

    def get_or_create(
        self, user_id: str, session: ClientSession | None = None
    ) -> Wallet:
        now = datetime.now(timezone.utc)
        raw = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$setOnInsert": {
                    "user_id": user_id,
                    "balance": 0,
                    "total_deposits": 0,
                    "total_withdrawals": 0,
                    "transaction_ids": [],
                    "created_at": now,
                    "updated_at": now,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return WalletDocument.model_validate(raw).to_domain()

    def credit(
        self,
        user_id: str,
        amount: int,
        transaction_id: str | None,
        count_as_deposit: bool,
        session: ClientSession | None = None,
    ) -> Wallet:
        now = datetime.now(timezone.utc)
        inc: dict[str, int] = {"balance": amount}
        if count_as_deposit:
            inc["total_deposits"] = amount

        update: dict[str, dict] = {
            "$inc": inc,
            "$set": {"updated_at": now},
            "$setOnInsert": {"created_at": now},
        }
        if transaction_id is not None:
            update["$addToSet"] = {"transaction_ids": transaction_id}

        raw = self._col.find_one_and_update(
            {"user_id": user_id},
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return WalletDocument.model_validate(raw).to_domain()

    def debit(
        self,
        user_id: str,
        amount: int,
        transaction_id: str | None,
        session: ClientSession | None = None,
    ) -> Wallet | None:
        now = datetime.now(timezone.utc)
        update: dict[str, dict] = {
            "$inc": {"balance": -amount},
            "$set": {"updated_at": now},
        }
        if transaction_id is not None:
            update["$addToSet"] = {"transaction_ids": transaction_id}

        # 잔액 확인과 차감이 하나의 도큐먼트 연산이라 동시 출금이 둘 다 통과할 수 없다.
        raw = self._col.find_one_and_update(
            {"user_id": user_id, "balance": {"$gte": amount}},
            update,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if raw is None:
            return None
        return WalletDocument.model_validate(raw).to_domain()

    def record_withdrawal(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> Wallet:
        now = datetime.now(timezone.utc)
        raw = self._col.find_one_and_update(
            {"user_id": user_id},
            {
                "$inc": {"total_withdrawals": amount},
                "$set": {"updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return WalletDocument.model_validate(raw).to_domain()

    def reset_all(self, session: ClientSession | None = None) -> int:
        now = datetime.now(timezone.utc)
        result = self._col.update_many(
            {},
            {
                "$set": {
                    "balance": 0,
                    "total_deposits": 0,
                    "total_withdrawals": 0,
                    "transaction_ids": [],
                    "updated_at": now,
                }
            },
            session=session,
        )
        return result.modified_count
