"""원장(ledger) 관련 이벤트 정의."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Self


class LedgerEventType:
    """원장 이벤트 타입 상수."""

    TRANSACTION_SETTLED = "transaction.settled"
    REFERRAL_REWARDED = "referral.rewarded"


@dataclass(slots=True)
class TransactionSettledEvent:
    """거래 정산 이벤트.

    pending 거래가 completed/failed 로 확정되고 커밋된 뒤 발행된다.
    자체 정산되는 game_reward 도 생성 시점에 발행된다.
    """

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    transaction_id: str
    user_id: str
    transaction_type: str
    amount: int
    status: str
    settled_by: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            transaction_id=str(data["transaction_id"]),
            user_id=str(data["user_id"]),
            transaction_type=str(data["transaction_type"]),
            amount=int(data["amount"]),
            status=str(data["status"]),
            settled_by=str(data.get("settled_by", "")),
        )


@dataclass(slots=True)
class ReferralRewardedEvent:
    """추천 보상 지급 이벤트."""

    id: str
    type: str
    timestamp: str
    source: str
    version: str
    referral_id: str
    referrer_id: str
    referee_id: str
    referrer_reward: int
    referee_bonus: int
    referral_count: int
    theme_unlocked: bool

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            timestamp=str(data["timestamp"]),
            source=str(data["source"]),
            version=str(data.get("version", "1.0")),
            referral_id=str(data["referral_id"]),
            referrer_id=str(data["referrer_id"]),
            referee_id=str(data["referee_id"]),
            referrer_reward=int(data["referrer_reward"]),
            referee_bonus=int(data["referee_bonus"]),
            referral_count=int(data["referral_count"]),
            theme_unlocked=bool(data.get("theme_unlocked", False)),
        )
