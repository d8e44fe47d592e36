from __future__ import annotations

from pydantic import Field

from common.mongo.types import BaseDocument

from ...models.wallet import Wallet


class WalletDocument(BaseDocument):
    """MongoDB wallets 컬렉션 도큐먼트 모델.

    upsert 로 생성되므로 카운터 필드는 $inc 전까지 존재하지 않을 수 있다.
    """

    user_id: str
    balance: int = 0
    total_deposits: int = 0
    total_withdrawals: int = 0
    transaction_ids: list[str] = Field(default_factory=list)

    def to_domain(self) -> Wallet:
        return Wallet(
            user_id=self.user_id,
            balance=self.balance,
            total_deposits=self.total_deposits,
            total_withdrawals=self.total_withdrawals,
            transaction_ids=list(self.transaction_ids),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
