"""거래 원장 서비스.

모든 가치 이동의 상태 머신이다.

- initiate: pending 거래 생성 (출금은 같은 작업 단위에서 지갑 선차감, 게임 보상은 즉시 완료)
- attach_proof: 입금/프리미엄/스토어 결제에 결제 증빙을 한 번만 첨부
- settle: pending -> completed | failed 전이와 타입별 부수 효과를 하나의 작업 단위로 적용
- record_completed_credit: idempotency_key 기반 자체 정산 크레딧 (추천 보상 등)

상태 전이는 status == pending 조건부 업데이트(claim)로만 일어나므로, 동시에 두 번
승인해도 부수 효과는 한 번만 적용되고 나머지 요청은 NotPending/AlreadySettled 를 받는다.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from fastapi import Depends
from pymongo.client_session import ClientSession

from common.eventbus.core import EventPublisher
from common.eventbus.helpers import new_json_event
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerEventType, TransactionSettledEvent

from ..dependencies import (
    get_event_publisher,
    get_store_item_repository,
    get_theme_repository,
    get_transaction_repository,
    get_unit_of_work,
    get_user_repository,
)
from ..exceptions import (
    AlreadySettled,
    InvalidPlan,
    InvalidTransactionType,
    NotPending,
    NotTransactionOwner,
    PolicyViolation,
    ProofAlreadySubmitted,
    SideEffectFailed,
    TransactionNotFound,
)
from ..models.ownership import OwnershipSource
from ..models.transaction import (
    CREDIT_TYPES,
    PROOF_TYPES,
    ItemType,
    Transaction,
    TransactionIntent,
    TransactionStatus,
    TransactionType,
)
from ..models.wallet import WalletAudit
from ..repositories.interfaces import (
    StoreItemRepositoryInterface,
    ThemeRepositoryInterface,
    TransactionRepositoryInterface,
    UnitOfWorkInterface,
    UserRepositoryInterface,
)
from .ownership_service import OwnershipService, get_ownership_service
from .wallet_service import WalletService, ensure_positive_amount, get_wallet_service


logger = logging.getLogger(__name__)

EVENT_SOURCE = "ledger-service"
SYSTEM_ACTOR = "system"
GAME_ACTOR = "system:game"
EXPIRY_ACTOR = "system:expiry"
EXPIRED_REASON = "expired"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerService:
    def __init__(
        self,
        tx_repo: TransactionRepositoryInterface,
        wallet_service: WalletService,
        ownership_service: OwnershipService,
        theme_repo: ThemeRepositoryInterface,
        store_item_repo: StoreItemRepositoryInterface,
        user_repo: UserRepositoryInterface,
        uow: UnitOfWorkInterface,
        publisher: EventPublisher,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._tx_repo = tx_repo
        self._wallet = wallet_service
        self._ownership = ownership_service
        self._theme_repo = theme_repo
        self._store_item_repo = store_item_repo
        self._user_repo = user_repo
        self._uow = uow
        self._publisher = publisher
        self._clock = clock

    # 생성 -----------------------------------------------------------------
    def initiate(
        self,
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        intent: TransactionIntent | None = None,
    ) -> Transaction:
        ensure_positive_amount(amount)
        if tx_type == TransactionType.REFERRAL_REWARD:
            raise InvalidTransactionType(
                "referral rewards are created by referral settlement only"
            )

        intent = intent or TransactionIntent()
        self._validate_intent(tx_type, intent)

        now = self._clock()
        self_settling = tx_type == TransactionType.GAME_REWARD
        tx = Transaction(
            id=self._tx_repo.new_id(),
            user_id=user_id,
            type=tx_type,
            amount=amount,
            status=TransactionStatus.COMPLETED if self_settling else TransactionStatus.PENDING,
            description=intent.description,
            reference=intent.reference,
            idempotency_key=intent.idempotency_key,
            plan_type=intent.plan_type,
            item_type=intent.item_type,
            item_id=intent.item_id,
            payout_upi_id=intent.payout_upi_id,
            verified=self_settling,
            verified_at=now if self_settling else None,
            verified_by=GAME_ACTOR if self_settling else None,
            created_at=now,
            updated_at=now,
        )

        def _create(session: ClientSession | None) -> tuple[Transaction, bool]:
            if tx_type == TransactionType.WITHDRAWAL:
                # 잔액 부족이면 여기서 InsufficientBalance 가 나고 거래는 남지 않는다.
                self._wallet.debit(user_id, amount, tx.id, session=session)
                return self._tx_repo.insert(tx, session=session), True
            stored, created = self._tx_repo.insert_if_absent(tx, session=session)
            if self_settling and created:
                self._wallet.credit(user_id, amount, stored.id, session=session)
            return stored, created

        stored, created = self._uow.run(_create)

        logger.info(
            "transaction initiated id=%s type=%s amount=%d status=%s",
            stored.id,
            tx_type,
            amount,
            stored.status,
            extra={"user_id": user_id, "transaction_id": stored.id},
        )
        if self_settling and created:
            self._publish_settled(stored)
        return stored

    @staticmethod
    def _validate_intent(tx_type: TransactionType, intent: TransactionIntent) -> None:
        if tx_type == TransactionType.PREMIUM_PAYMENT and intent.plan_type is None:
            raise InvalidPlan("premium payment requires a plan type")
        if tx_type == TransactionType.STORE_PAYMENT and (
            intent.item_type is None or not intent.item_id
        ):
            raise PolicyViolation("store payment requires item type and item id")
        if intent.idempotency_key and tx_type != TransactionType.GAME_REWARD:
            raise PolicyViolation(
                "idempotency keys are only accepted for self-settling transactions"
            )

    def record_completed_credit(
        self,
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        idempotency_key: str,
        description: str = "",
        session: ClientSession | None = None,
    ) -> tuple[Transaction, bool]:
        """자체 정산되는 크레딧 거래를 키 기준으로 한 번만 기록하고 지갑에 반영한다.

        같은 키로 다시 호출하면 기존 거래를 돌려주고 지갑은 건드리지 않는다.
        session 이 주어지면 호출자의 작업 단위에 참여하고 이벤트는 호출자가 발행한다.
        """
        ensure_positive_amount(amount)
        if tx_type not in CREDIT_TYPES:
            raise InvalidTransactionType(f"{tx_type} is not a credit type")

        now = self._clock()
        tx = Transaction(
            id=self._tx_repo.new_id(),
            user_id=user_id,
            type=tx_type,
            amount=amount,
            status=TransactionStatus.COMPLETED,
            description=description,
            idempotency_key=idempotency_key,
            verified=True,
            verified_at=now,
            verified_by=SYSTEM_ACTOR,
            created_at=now,
            updated_at=now,
        )

        def _record(active_session: ClientSession | None) -> tuple[Transaction, bool]:
            stored, created = self._tx_repo.insert_if_absent(tx, session=active_session)
            if created:
                self._wallet.credit(
                    user_id,
                    amount,
                    stored.id,
                    count_as_deposit=tx_type == TransactionType.DEPOSIT,
                    session=active_session,
                )
            return stored, created

        stored, created = self._uow.run(_record, session)
        if created and session is None:
            self._publish_settled(stored)
        return stored, created

    # 증빙 -----------------------------------------------------------------
    def attach_proof(self, transaction_id: str, user_id: str, proof_ref: str) -> Transaction:
        if not proof_ref or not proof_ref.strip():
            raise PolicyViolation("proof reference must not be blank")

        tx = self.get(transaction_id)
        if tx.user_id != user_id:
            raise NotTransactionOwner(
                f"transaction {transaction_id} does not belong to user {user_id}"
            )
        if tx.type not in PROOF_TYPES:
            raise InvalidTransactionType(f"proof cannot be attached to {tx.type}")
        if not tx.is_pending:
            raise NotPending(f"transaction {transaction_id} is already {tx.status}")
        if tx.proof_ref is not None:
            raise ProofAlreadySubmitted(
                f"proof already submitted for transaction {transaction_id}"
            )

        updated = self._tx_repo.attach_proof(transaction_id, proof_ref.strip(), self._clock())
        if updated is None:
            # 조회 이후 다른 요청이 먼저 정산했거나 증빙을 붙였다.
            current = self.get(transaction_id)
            if not current.is_pending:
                raise NotPending(f"transaction {transaction_id} is already {current.status}")
            raise ProofAlreadySubmitted(
                f"proof already submitted for transaction {transaction_id}"
            )

        logger.info(
            "proof attached id=%s",
            transaction_id,
            extra={"user_id": user_id, "transaction_id": transaction_id},
        )
        return updated

    # 정산 -----------------------------------------------------------------
    def settle(
        self,
        transaction_id: str,
        outcome: TransactionStatus,
        approver: str,
        reason: str | None = None,
        on_settled: Callable[[Transaction, ClientSession | None], None] | None = None,
    ) -> Transaction:
        """pending 거래를 확정한다.

        on_settled 는 같은 작업 단위 안에서 부수 효과 뒤에 호출된다 (감사 로그 등).
        """
        if outcome == TransactionStatus.PENDING:
            raise ValueError("settlement outcome must be completed or failed")

        def _settle(session: ClientSession | None) -> Transaction:
            # 충돌로 재실행되면 여기서 다시 읽으므로, 먼저 커밋한 쪽이 있으면 NotPending 이 된다.
            tx = self._tx_repo.find_by_id(transaction_id, session=session)
            if tx is None:
                raise TransactionNotFound(f"transaction {transaction_id} not found")
            if not tx.is_pending:
                raise NotPending(f"transaction {transaction_id} is already {tx.status}")

            # 부수 효과 선행 조건은 상태를 바꾸기 전에 확인한다. 실패하면 pending 으로 남는다.
            if outcome == TransactionStatus.COMPLETED:
                self._check_completion_preconditions(tx, session)

            settled = self._tx_repo.claim_pending(
                transaction_id,
                outcome,
                approver,
                reason,
                self._clock(),
                session=session,
            )
            if settled is None:
                raise AlreadySettled(
                    f"transaction {transaction_id} was settled by a concurrent request"
                )

            if outcome == TransactionStatus.COMPLETED:
                self._apply_completion(settled, session)
            else:
                self._apply_failure(settled, session)
            if on_settled is not None:
                on_settled(settled, session)
            return settled

        settled = self._uow.run(_settle)
        logger.info(
            "transaction settled id=%s type=%s status=%s by=%s",
            transaction_id,
            settled.type,
            settled.status,
            approver,
            extra={"user_id": settled.user_id, "transaction_id": transaction_id},
        )
        self._publish_settled(settled)
        return settled

    def _check_completion_preconditions(
        self, tx: Transaction, session: ClientSession | None
    ) -> None:
        if tx.type == TransactionType.PREMIUM_PAYMENT:
            if tx.plan_type is None:
                raise SideEffectFailed(f"transaction {tx.id} has no plan type")
            if self._user_repo.find(tx.user_id, session=session) is None:
                raise SideEffectFailed(f"user {tx.user_id} not found for premium activation")
        elif tx.type == TransactionType.STORE_PAYMENT:
            if tx.item_type is None or not tx.item_id:
                raise SideEffectFailed(f"transaction {tx.id} has no item reference")
            if tx.item_type == ItemType.THEME:
                if self._theme_repo.find_by_id(tx.item_id, session=session) is None:
                    raise SideEffectFailed(f"theme {tx.item_id} not found")
            elif self._store_item_repo.find_by_id(tx.item_id, session=session) is None:
                raise SideEffectFailed(f"store item {tx.item_id} not found")

    def _apply_completion(self, tx: Transaction, session: ClientSession | None) -> None:
        if tx.type == TransactionType.DEPOSIT:
            self._wallet.credit(
                tx.user_id, tx.amount, tx.id, count_as_deposit=True, session=session
            )
        elif tx.type in (TransactionType.GAME_REWARD, TransactionType.REFERRAL_REWARD):
            self._wallet.credit(tx.user_id, tx.amount, tx.id, session=session)
        elif tx.type == TransactionType.WITHDRAWAL:
            self._wallet.record_withdrawal(tx.user_id, tx.amount, session=session)
        elif tx.type == TransactionType.PREMIUM_PAYMENT:
            assert tx.plan_type is not None
            self._ownership.activate_premium(
                tx.user_id, tx.plan_type, now=tx.verified_at, session=session
            )
        elif tx.type == TransactionType.STORE_PAYMENT:
            self._fulfil_store_payment(tx, session)

    def _apply_failure(self, tx: Transaction, session: ClientSession | None) -> None:
        if tx.type == TransactionType.WITHDRAWAL:
            # 요청 시점에 선차감한 금액을 정확히 한 번 되돌린다 (claim 에서 이긴 요청만 여기 온다).
            self._wallet.credit(tx.user_id, tx.amount, tx.id, session=session)

    def _fulfil_store_payment(
        self, tx: Transaction, session: ClientSession | None
    ) -> tuple[bool, bool]:
        """스토어 결제 부수 효과. (소유권 신규 생성 여부, ThemeSale 신규 생성 여부)."""
        assert tx.item_id is not None
        if tx.item_type == ItemType.THEME:
            granted = self._ownership.grant_theme(
                tx.user_id, tx.item_id, OwnershipSource.PURCHASE, session=session
            )
            sale_created = self._ownership.record_theme_sale(
                str(tx.id), tx.user_id, tx.item_id, tx.amount, session=session
            )
            return granted, sale_created
        return self._ownership.grant_item(tx.user_id, tx.item_id, session=session), False

    def fulfil_store_payment(
        self, transaction_id: str, session: ClientSession | None = None
    ) -> tuple[bool, bool]:
        """완료된 스토어 결제의 소유권/판매 기록을 다시 맞춘다 (멱등)."""
        def _reconcile(session: ClientSession | None) -> tuple[bool, bool]:
            tx = self._tx_repo.find_by_id(transaction_id, session=session)
            if tx is None:
                raise TransactionNotFound(f"transaction {transaction_id} not found")
            if tx.type != TransactionType.STORE_PAYMENT:
                raise InvalidTransactionType(f"transaction {transaction_id} is not a store payment")
            if tx.status != TransactionStatus.COMPLETED:
                raise PolicyViolation(
                    f"only completed store payments can be reconciled, got {tx.status}"
                )
            self._check_completion_preconditions(tx, session)
            return self._fulfil_store_payment(tx, session)

        return self._uow.run(_reconcile, session)

    def expire_pending(
        self,
        older_than: timedelta,
        now: datetime | None = None,
        limit: int = 100,
    ) -> list[Transaction]:
        """older_than 보다 오래된 pending 거래를 failed(expired) 로 정산한다."""
        now = now or self._clock()
        cutoff = now - older_than

        expired: list[Transaction] = []
        for tx in self._tx_repo.list_pending_before(cutoff, limit):
            assert tx.id is not None
            try:
                expired.append(
                    self.settle(
                        tx.id,
                        TransactionStatus.FAILED,
                        approver=EXPIRY_ACTOR,
                        reason=EXPIRED_REASON,
                    )
                )
            except (NotPending, TransactionNotFound):
                # 그 사이 관리자가 처리했거나 원장이 초기화되었다.
                continue
        return expired

    # 조회 -----------------------------------------------------------------
    def get(self, transaction_id: str) -> Transaction:
        tx = self._tx_repo.find_by_id(transaction_id)
        if tx is None:
            raise TransactionNotFound(f"transaction {transaction_id} not found")
        return tx

    def list_by_user(
        self,
        user_id: str,
        tx_type: TransactionType | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Transaction], int]:
        return self._tx_repo.list_by_user(user_id, tx_type, page, page_size)

    def list(
        self,
        tx_type: TransactionType | None = None,
        status: TransactionStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Transaction], int]:
        return self._tx_repo.list(tx_type, status, page, page_size)

    def count_completed_deposits(self, user_id: str) -> int:
        return self._tx_repo.count_completed(user_id, TransactionType.DEPOSIT)

    def wallet_audit(self, user_id: str) -> WalletAudit:
        """거래 기록으로 기대 잔액을 재계산해 실제 지갑과 비교한다."""
        sums = self._tx_repo.sum_amounts(user_id)
        credits = sum(
            total
            for (tx_type, status), total in sums.items()
            if tx_type in CREDIT_TYPES and status == TransactionStatus.COMPLETED
        )
        debits = sums.get((TransactionType.WITHDRAWAL, TransactionStatus.COMPLETED), 0)
        pending = sums.get((TransactionType.WITHDRAWAL, TransactionStatus.PENDING), 0)
        wallet = self._wallet.get_wallet(user_id)
        return WalletAudit(
            user_id=user_id,
            balance=wallet.balance,
            expected_balance=credits - debits - pending,
            completed_credits=credits,
            completed_debits=debits,
            pending_withdrawals=pending,
        )

    # 이벤트 ---------------------------------------------------------------
    def _publish_settled(self, tx: Transaction) -> None:
        """커밋 이후 발행한다. 발행 실패는 정산을 되돌리지 않는다."""
        event = TransactionSettledEvent(
            id=str(uuid.uuid4()),
            type=LedgerEventType.TRANSACTION_SETTLED,
            timestamp=self._clock().isoformat(),
            source=EVENT_SOURCE,
            version="1.0",
            transaction_id=str(tx.id),
            user_id=tx.user_id,
            transaction_type=tx.type.value,
            amount=tx.amount,
            status=tx.status.value,
            settled_by=tx.verified_by or "",
        )
        try:
            self._publisher.publish(TOPIC_LEDGER.base, new_json_event(event))
        except Exception:  # noqa: BLE001
            logger.exception(
                "failed to publish transaction.settled id=%s",
                tx.id,
                extra={"transaction_id": tx.id},
            )


def get_ledger_service(
    tx_repo: TransactionRepositoryInterface = Depends(get_transaction_repository),
    wallet_service: WalletService = Depends(get_wallet_service),
    ownership_service: OwnershipService = Depends(get_ownership_service),
    theme_repo: ThemeRepositoryInterface = Depends(get_theme_repository),
    store_item_repo: StoreItemRepositoryInterface = Depends(get_store_item_repository),
    user_repo: UserRepositoryInterface = Depends(get_user_repository),
    uow: UnitOfWorkInterface = Depends(get_unit_of_work),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> LedgerService:
    """FastAPI DI용 LedgerService 팩토리."""

    return LedgerService(
        tx_repo=tx_repo,
        wallet_service=wallet_service,
        ownership_service=ownership_service,
        theme_repo=theme_repo,
        store_item_repo=store_item_repo,
        user_repo=user_repo,
        uow=uow,
        publisher=publisher,
    )
