from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Protocol, TypeVar

from pymongo.client_session import ClientSession

from ..models.audit import AuditLog
from ..models.catalog import StoreItem, Theme
from ..models.ownership import ThemeSale, UserItemOwnership, UserThemeOwnership
from ..models.referral import LeaderboardSort, Referral, RewardType
from ..models.transaction import (
    PlanType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ..models.user import LedgerUser
from ..models.wallet import Wallet


T = TypeVar("T")


class UnitOfWorkInterface(Protocol):
    """여러 레포지토리 쓰기를 하나의 원자 단위로 묶는다.

    - work(session) 를 트랜잭션 안에서 실행하고 그 반환값을 돌려준다.
    - 일시적 충돌(TransientTransactionError)이 나면 work 전체를 처음부터 다시 실행한다.
      그래서 work 안에서는 커밋 이후에 해야 할 일(로그, 이벤트 발행)을 하지 않는다.
    - 바깥 세션이 주어지면 새 트랜잭션을 열지 않고 그대로 재사용한다.
    - work 에서 예외가 발생하면 모든 쓰기가 롤백된다.
    """

    def run(
        self,
        work: Callable[[ClientSession | None], T],
        session: ClientSession | None = None,
    ) -> T:  # pragma: no cover - Protocol
        ...


class WalletRepositoryInterface(Protocol):
    """WalletRepository가 따라야 할 최소한의 계약.

    Service 레이어는 이 인터페이스에만 의존하고, 구체 구현(Mongo 등)은 몰라도 된다.
    """

    def get_or_create(
        self, user_id: str, session: ClientSession | None = None
    ) -> Wallet:  # pragma: no cover - Protocol
        ...

    def credit(
        self,
        user_id: str,
        amount: int,
        transaction_id: str | None,
        count_as_deposit: bool,
        session: ClientSession | None = None,
    ) -> Wallet:  # pragma: no cover - Protocol
        ...

    def debit(
        self,
        user_id: str,
        amount: int,
        transaction_id: str | None,
        session: ClientSession | None = None,
    ) -> Wallet | None:  # pragma: no cover - Protocol
        """balance >= amount 조건부 차감. 조건을 만족하지 못하면 None."""
        ...

    def record_withdrawal(
        self, user_id: str, amount: int, session: ClientSession | None = None
    ) -> Wallet:  # pragma: no cover - Protocol
        ...

    def reset_all(
        self, session: ClientSession | None = None
    ) -> int:  # pragma: no cover - Protocol
        """모든 지갑을 0으로 초기화하고 변경된 지갑 수를 반환한다."""
        ...


class TransactionRepositoryInterface(Protocol):
    def new_id(self) -> str:  # pragma: no cover - Protocol
        ...

    def insert(
        self, tx: Transaction, session: ClientSession | None = None
    ) -> Transaction:  # pragma: no cover - Protocol
        ...

    def insert_if_absent(
        self, tx: Transaction, session: ClientSession | None = None
    ) -> tuple[Transaction, bool]:  # pragma: no cover - Protocol
        """idempotency_key 기준으로 한 번만 저장한다. (거래, 새로 생성 여부)."""
        ...

    def find_by_id(
        self, transaction_id: str, session: ClientSession | None = None
    ) -> Transaction | None:  # pragma: no cover - Protocol
        ...

    def claim_pending(
        self,
        transaction_id: str,
        status: TransactionStatus,
        verified_by: str,
        failure_reason: str | None,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Transaction | None:  # pragma: no cover - Protocol
        """status == pending 인 경우에만 상태를 바꾼다. 경합에서 지면 None."""
        ...

    def attach_proof(
        self,
        transaction_id: str,
        proof_ref: str,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Transaction | None:  # pragma: no cover - Protocol
        """pending 이고 proof 가 없을 때만 첨부한다. 조건 불충족 시 None."""
        ...

    def list_by_user(
        self,
        user_id: str,
        tx_type: TransactionType | None,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:  # pragma: no cover - Protocol
        ...

    def list(
        self,
        tx_type: TransactionType | None,
        status: TransactionStatus | None,
        page: int,
        page_size: int,
    ) -> tuple[list[Transaction], int]:  # pragma: no cover - Protocol
        ...

    def list_pending_before(
        self, cutoff: datetime, limit: int
    ) -> list[Transaction]:  # pragma: no cover - Protocol
        ...

    def count_completed(
        self, user_id: str, tx_type: TransactionType
    ) -> int:  # pragma: no cover - Protocol
        ...

    def sum_amounts(
        self, user_id: str
    ) -> dict[tuple[TransactionType, TransactionStatus], int]:  # pragma: no cover - Protocol
        """(type, status) 별 금액 합계."""
        ...

    def delete_all(
        self, session: ClientSession | None = None
    ) -> int:  # pragma: no cover - Protocol
        ...


class UserRepositoryInterface(Protocol):
    def find(
        self, user_id: str, session: ClientSession | None = None
    ) -> LedgerUser | None:  # pragma: no cover - Protocol
        ...

    def find_by_referral_code(
        self, referral_code: str
    ) -> LedgerUser | None:  # pragma: no cover - Protocol
        ...

    def upsert_profile(
        self, user_id: str, username: str, referral_code: str
    ) -> LedgerUser:  # pragma: no cover - Protocol
        ...

    def set_premium(
        self,
        user_id: str,
        plan: PlanType,
        expires_at: datetime | None,
        session: ClientSession | None = None,
    ) -> LedgerUser | None:  # pragma: no cover - Protocol
        ...

    def set_active_theme(
        self, user_id: str, theme_id: str, session: ClientSession | None = None
    ) -> None:  # pragma: no cover - Protocol
        ...

    def apply_referral_reward(
        self,
        user_id: str,
        referral_id: str,
        credits: int,
        count_increment: int,
        session: ClientSession | None = None,
    ) -> tuple[LedgerUser | None, bool]:  # pragma: no cover - Protocol
        """rewarded_referral_ids 로 보호되는 1회성 증가. (유저, 이번에 적용 여부)."""
        ...

    def list_top_referrers(
        self, sort_by: LeaderboardSort, limit: int
    ) -> list[LedgerUser]:  # pragma: no cover - Protocol
        """referral_count > 0 인 유저를 sort_by 내림차순으로."""
        ...


class UserThemeRepositoryInterface(Protocol):
    def find(
        self, user_id: str, theme_id: str, session: ClientSession | None = None
    ) -> UserThemeOwnership | None:  # pragma: no cover - Protocol
        ...

    def insert_if_absent(
        self, ownership: UserThemeOwnership, session: ClientSession | None = None
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def activate(
        self, user_id: str, theme_id: str, session: ClientSession | None = None
    ) -> None:  # pragma: no cover - Protocol
        """해당 유저의 theme_id 행만 active, 나머지는 inactive 로 만든다."""
        ...

    def list_by_user(
        self, user_id: str
    ) -> list[UserThemeOwnership]:  # pragma: no cover - Protocol
        ...


class UserItemRepositoryInterface(Protocol):
    def find(
        self, user_id: str, item_id: str, session: ClientSession | None = None
    ) -> UserItemOwnership | None:  # pragma: no cover - Protocol
        ...

    def insert_if_absent(
        self, ownership: UserItemOwnership, session: ClientSession | None = None
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def list_by_user(
        self, user_id: str
    ) -> list[UserItemOwnership]:  # pragma: no cover - Protocol
        ...


class ThemeSaleRepositoryInterface(Protocol):
    def upsert(
        self, sale: ThemeSale, session: ClientSession | None = None
    ) -> bool:  # pragma: no cover - Protocol
        """transaction_id 키로 upsert 한다. 새로 생성되었으면 True."""
        ...

    def find_by_transaction_id(
        self, transaction_id: str
    ) -> ThemeSale | None:  # pragma: no cover - Protocol
        ...

    def delete_all(
        self, session: ClientSession | None = None
    ) -> int:  # pragma: no cover - Protocol
        ...


class ReferralRepositoryInterface(Protocol):
    def insert(
        self, referral: Referral, session: ClientSession | None = None
    ) -> Referral:  # pragma: no cover - Protocol
        ...

    def find_by_referee(
        self, referee_id: str, session: ClientSession | None = None
    ) -> Referral | None:  # pragma: no cover - Protocol
        ...

    def mark_rewarded(
        self,
        referral_id: str,
        reward_type: RewardType,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Referral | None:  # pragma: no cover - Protocol
        """reward_given == False 인 경우에만 완료 처리한다. 경합에서 지면 None."""
        ...

    def list_by_referrer(
        self, referrer_id: str
    ) -> list[Referral]:  # pragma: no cover - Protocol
        ...

    def list(
        self, page: int, page_size: int
    ) -> tuple[list[Referral], int]:  # pragma: no cover - Protocol
        ...

    def delete_all(
        self, session: ClientSession | None = None
    ) -> int:  # pragma: no cover - Protocol
        ...


class ThemeRepositoryInterface(Protocol):
    def find_by_id(
        self, theme_id: str, session: ClientSession | None = None
    ) -> Theme | None:  # pragma: no cover - Protocol
        ...

    def find_by_name(
        self, name: str, session: ClientSession | None = None
    ) -> Theme | None:  # pragma: no cover - Protocol
        ...

    def list_active(self) -> list[Theme]:  # pragma: no cover - Protocol
        ...

    def create(
        self,
        name: str,
        price: int,
        now: datetime,
        session: ClientSession | None = None,
    ) -> Theme:  # pragma: no cover - Protocol
        ...

    def update(
        self,
        theme_id: str,
        fields: dict[str, Any],
        now: datetime,
        session: ClientSession | None = None,
    ) -> Theme | None:  # pragma: no cover - Protocol
        """name/price/is_active 중 주어진 필드만 갱신한다. 없는 id 면 None."""
        ...


class StoreItemRepositoryInterface(Protocol):
    def find_by_id(
        self, item_id: str, session: ClientSession | None = None
    ) -> StoreItem | None:  # pragma: no cover - Protocol
        ...

    def list_active(
        self, category: str | None = None
    ) -> list[StoreItem]:  # pragma: no cover - Protocol
        ...

    def create(
        self,
        name: str,
        price: int,
        category: str,
        now: datetime,
        session: ClientSession | None = None,
    ) -> StoreItem:  # pragma: no cover - Protocol
        ...

    def update(
        self,
        item_id: str,
        fields: dict[str, Any],
        now: datetime,
        session: ClientSession | None = None,
    ) -> StoreItem | None:  # pragma: no cover - Protocol
        ...


class AuditLogRepositoryInterface(Protocol):
    def create(
        self, entry: AuditLog, session: ClientSession | None = None
    ) -> AuditLog:  # pragma: no cover - Protocol
        ...

    def list(
        self, page: int, page_size: int
    ) -> tuple[list[AuditLog], int]:  # pragma: no cover - Protocol
        ...
