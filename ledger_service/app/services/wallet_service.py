"""지갑 서비스.

잔액 변경은 원장(LedgerService)만 호출한다. 여기서는 금액 검증과 잔액 부족 판단만 한다.
출금 한도 같은 정책은 호출자(PurchaseService)의 몫이다.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from pymongo.client_session import ClientSession

from ..dependencies import get_wallet_repository
from ..exceptions import InsufficientBalance, InvalidAmount
from ..models.wallet import Wallet
from ..repositories.interfaces import WalletRepositoryInterface


logger = logging.getLogger(__name__)


def ensure_positive_amount(amount: object) -> int:
    """금액은 양의 정수여야 한다. bool 은 int 의 서브클래스지만 거부한다."""

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"amount must be a positive integer, got {amount!r}")
    return amount


class WalletService:
    def __init__(self, wallet_repo: WalletRepositoryInterface) -> None:
        self._wallet_repo = wallet_repo

    def get_wallet(self, user_id: str, session: ClientSession | None = None) -> Wallet:
        """지갑 조회. 없으면 잔액 0 으로 생성한다."""
        return self._wallet_repo.get_or_create(user_id, session=session)

    def credit(
        self,
        user_id: str,
        amount: int,
        transaction_id: str | None = None,
        count_as_deposit: bool = False,
        session: ClientSession | None = None,
    ) -> Wallet:
        ensure_positive_amount(amount)
        wallet = self._wallet_repo.credit(
            user_id,
            amount,
            transaction_id,
            count_as_deposit,
            session=session,
        )
        logger.info(
            "wallet credited user_id=%s amount=%d balance=%d",
            user_id,
            amount,
            wallet.balance,
            extra={"user_id": user_id, "transaction_id": transaction_id},
        )
        return wallet

    def debit(
        self,
        user_id: str,
        amount: int,
        transaction_id: str | None = None,
        session: ClientSession | None = None,
    ) -> Wallet:
        ensure_positive_amount(amount)
        wallet = self._wallet_repo.debit(user_id, amount, transaction_id, session=session)
        if wallet is None:
            available = self._wallet_repo.get_or_create(user_id, session=session).balance
            raise InsufficientBalance(available=available, requested=amount)

        logger.info(
            "wallet debited user_id=%s amount=%d balance=%d",
            user_id,
            amount,
            wallet.balance,
            extra={"user_id": user_id, "transaction_id": transaction_id},
        )
        return wallet

    def record_withdrawal(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> Wallet:
        """출금 완료 시 누적 출금액만 올린다 (잔액은 요청 시점에 이미 차감됨)."""
        ensure_positive_amount(amount)
        return self._wallet_repo.record_withdrawal(user_id, amount, session=session)

    def reset_all(self, session: ClientSession | None = None) -> int:
        return self._wallet_repo.reset_all(session=session)


def get_wallet_service(
    repo: WalletRepositoryInterface = Depends(get_wallet_repository),
) -> WalletService:
    """FastAPI DI용 WalletService 팩토리."""

    return WalletService(repo)
