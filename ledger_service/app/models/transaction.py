"""거래(Transaction) 도메인 모델.

모든 가치 이동(입금, 출금, 게임 보상, 추천 보상, 프리미엄 결제, 스토어 결제)은
하나의 Transaction 으로 기록되며, 상태는 pending -> completed | failed 로만 한 번 바뀐다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class TransactionType(StrEnum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    GAME_REWARD = "game_reward"
    REFERRAL_REWARD = "referral_reward"
    PREMIUM_PAYMENT = "premium_payment"
    STORE_PAYMENT = "store_payment"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ItemType(StrEnum):
    THEME = "theme"
    STORE_ITEM = "store_item"


class PlanType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semiAnnual"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


# 지갑 잔액을 늘리는 타입 / 줄이는 타입. 나머지(프리미엄, 스토어)는 UPI 로 외부 결제된다.
CREDIT_TYPES: frozenset[TransactionType] = frozenset(
    {
        TransactionType.DEPOSIT,
        TransactionType.GAME_REWARD,
        TransactionType.REFERRAL_REWARD,
    }
)
DEBIT_TYPES: frozenset[TransactionType] = frozenset({TransactionType.WITHDRAWAL})

# 결제 증빙(스크린샷)을 첨부할 수 있는 타입
PROOF_TYPES: frozenset[TransactionType] = frozenset(
    {
        TransactionType.DEPOSIT,
        TransactionType.PREMIUM_PAYMENT,
        TransactionType.STORE_PAYMENT,
    }
)


class TransactionIntent(BaseModel):
    """거래 생성 시 함께 전달되는 구조화된 구매 의도.

    정산 시점에 description 문자열을 파싱하지 않도록 plan_type / item_type / item_id 를
    생성부터 정산까지 그대로 들고 간다.
    """

    description: str = ""
    reference: str | None = None
    idempotency_key: str | None = None
    plan_type: PlanType | None = None
    item_type: ItemType | None = None
    item_id: str | None = None
    payout_upi_id: str | None = None


class Transaction(BaseModel):
    id: str | None = None
    user_id: str
    type: TransactionType
    amount: int
    status: TransactionStatus = TransactionStatus.PENDING
    description: str = ""
    reference: str | None = None  # 사람이 읽을 수 있는 결제 키 (THEME_<ms>_<user>_<theme> 등)
    idempotency_key: str | None = None
    plan_type: PlanType | None = None
    item_type: ItemType | None = None
    item_id: str | None = None
    payout_upi_id: str | None = None
    proof_ref: str | None = None
    proof_submitted_at: datetime | None = None
    verified: bool = False
    verified_at: datetime | None = None
    verified_by: str | None = None
    failure_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING
