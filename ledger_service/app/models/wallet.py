from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Wallet(BaseModel):
    """유저별 INX 지갑 도메인 모델.

    - balance 는 원장(Ledger)을 통해서만 변경된다.
    - total_deposits / total_withdrawals 는 단조 증가하는 누적 카운터다.
    - transaction_ids 는 지갑 효과가 반영된 거래 ID 목록이다.
    """

    user_id: str
    balance: int = 0
    total_deposits: int = 0
    total_withdrawals: int = 0
    transaction_ids: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class WalletAudit(BaseModel):
    """거래 기록으로 재계산한 잔액과 실제 잔액의 비교 결과."""

    user_id: str
    balance: int
    expected_balance: int
    completed_credits: int
    completed_debits: int
    pending_withdrawals: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.expected_balance
