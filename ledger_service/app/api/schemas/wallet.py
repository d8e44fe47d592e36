from __future__ import annotations

from pydantic import BaseModel, Field, StrictInt

from common.types.datetime import UtcDateTime

from ...models.wallet import Wallet


class WalletResponse(BaseModel):
    user_id: str
    balance: int
    total_deposits: int
    total_withdrawals: int
    updated_at: UtcDateTime

    @classmethod
    def from_domain(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            user_id=wallet.user_id,
            balance=wallet.balance,
            total_deposits=wallet.total_deposits,
            total_withdrawals=wallet.total_withdrawals,
            updated_at=wallet.updated_at,
        )


class DepositRequest(BaseModel):
    """입금 개시 요청 (INR 정수)."""

    amount: StrictInt


class WithdrawalRequest(BaseModel):
    """출금 요청. upi_id 는 지급받을 UPI 계좌다."""

    amount: StrictInt
    upi_id: str = Field(min_length=1, max_length=330)
