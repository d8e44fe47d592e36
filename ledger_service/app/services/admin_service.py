"""관리자 승인 게이트웨이.

모든 연산은 관리자 권한을 요구한다. 권한 검사를 우회하는 경로는 없으며,
허용 범위를 바꾸려면 API 레이어의 get_principal 의존성을 교체해야 한다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends
from pymongo.client_session import ClientSession

from ..dependencies import (
    get_audit_log_repository,
    get_referral_repository,
    get_theme_sale_repository,
    get_transaction_repository,
    get_unit_of_work,
)
from ..exceptions import AdminRequired
from ..models.audit import AuditAction, AuditLog
from ..models.principal import Principal
from ..models.referral import Referral, ReferralSettlement, RewardType
from ..models.transaction import Transaction, TransactionStatus, TransactionType
from ..models.wallet import WalletAudit
from ..repositories.interfaces import (
    AuditLogRepositoryInterface,
    ReferralRepositoryInterface,
    ThemeSaleRepositoryInterface,
    TransactionRepositoryInterface,
    UnitOfWorkInterface,
)
from .ledger_service import LedgerService, get_ledger_service
from .referral_service import ReferralService, get_referral_service
from .wallet_service import WalletService, get_wallet_service


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileResult:
    transaction_id: str
    ownership_created: bool
    sale_created: bool


@dataclass(slots=True)
class LedgerResetResult:
    transactions_deleted: int
    referrals_deleted: int
    theme_sales_deleted: int
    wallets_reset: int


def require_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise AdminRequired(f"user {principal.user_id} is not an admin")


class AdminApprovalService:
    def __init__(
        self,
        ledger: LedgerService,
        referral_service: ReferralService,
        wallet_service: WalletService,
        tx_repo: TransactionRepositoryInterface,
        referral_repo: ReferralRepositoryInterface,
        theme_sale_repo: ThemeSaleRepositoryInterface,
        audit_repo: AuditLogRepositoryInterface,
        uow: UnitOfWorkInterface,
    ) -> None:
        self._ledger = ledger
        self._referrals = referral_service
        self._wallets = wallet_service
        self._tx_repo = tx_repo
        self._referral_repo = referral_repo
        self._theme_sale_repo = theme_sale_repo
        self._audit_repo = audit_repo
        self._uow = uow

    def _audit(
        self,
        principal: Principal,
        action: str,
        details: dict,
        session: ClientSession | None = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        self._audit_repo.create(
            AuditLog(
                actor_id=principal.user_id,
                action=action,
                details=details,
                created_at=now,
                updated_at=now,
            ),
            session=session,
        )

    def approve(self, transaction_id: str, principal: Principal) -> Transaction:
        require_admin(principal)

        def _audit_approval(tx: Transaction, session: ClientSession | None) -> None:
            self._audit(
                principal,
                AuditAction.TRANSACTION_APPROVED,
                {"transaction_id": transaction_id, "type": tx.type.value, "amount": tx.amount},
                session=session,
            )

        return self._ledger.settle(
            transaction_id,
            TransactionStatus.COMPLETED,
            approver=principal.user_id,
            on_settled=_audit_approval,
        )

    def reject(
        self, transaction_id: str, principal: Principal, reason: str | None = None
    ) -> Transaction:
        require_admin(principal)

        def _audit_rejection(tx: Transaction, session: ClientSession | None) -> None:
            self._audit(
                principal,
                AuditAction.TRANSACTION_REJECTED,
                {
                    "transaction_id": transaction_id,
                    "type": tx.type.value,
                    "amount": tx.amount,
                    "reason": reason,
                },
                session=session,
            )

        return self._ledger.settle(
            transaction_id,
            TransactionStatus.FAILED,
            approver=principal.user_id,
            reason=reason,
            on_settled=_audit_rejection,
        )

    def reconcile(self, transaction_id: str, principal: Principal) -> ReconcileResult:
        """완료된 스토어 결제의 소유권/판매 기록 누락을 복구한다. 중복은 만들지 않는다."""
        require_admin(principal)

        def _reconcile(session: ClientSession | None) -> tuple[bool, bool]:
            ownership_created, sale_created = self._ledger.fulfil_store_payment(
                transaction_id, session=session
            )
            self._audit(
                principal,
                AuditAction.STORE_PAYMENT_RECONCILED,
                {
                    "transaction_id": transaction_id,
                    "ownership_created": ownership_created,
                    "sale_created": sale_created,
                },
                session=session,
            )
            return ownership_created, sale_created

        ownership_created, sale_created = self._uow.run(_reconcile)
        if ownership_created or sale_created:
            logger.warning(
                "store payment reconciled with missing rows id=%s ownership=%s sale=%s",
                transaction_id,
                ownership_created,
                sale_created,
                extra={"transaction_id": transaction_id},
            )
        return ReconcileResult(
            transaction_id=transaction_id,
            ownership_created=ownership_created,
            sale_created=sale_created,
        )

    def pending_queue(
        self,
        principal: Principal,
        tx_type: TransactionType | None = None,
        status: TransactionStatus | None = TransactionStatus.PENDING,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Transaction], int]:
        require_admin(principal)
        return self._ledger.list(tx_type, status, page, page_size)

    def settle_referral(
        self,
        referee_id: str,
        principal: Principal,
        reward_type: RewardType | None = None,
    ) -> ReferralSettlement:
        require_admin(principal)
        return self._referrals.settle(
            referee_id, actor_id=principal.user_id, reward_type=reward_type
        )

    def list_referrals(
        self, principal: Principal, page: int = 1, page_size: int = 20
    ) -> tuple[list[Referral], int]:
        require_admin(principal)
        return self._referrals.list_all(page, page_size)

    def wallet_audit(self, user_id: str, principal: Principal) -> WalletAudit:
        require_admin(principal)
        return self._ledger.wallet_audit(user_id)

    def audit_logs(
        self, principal: Principal, page: int = 1, page_size: int = 20
    ) -> tuple[list[AuditLog], int]:
        require_admin(principal)
        return self._audit_repo.list(page, page_size)

    def reset_ledger(self, principal: Principal) -> LedgerResetResult:
        """거래, 추천, 테마 판매 기록을 삭제하고 지갑을 0으로 만든다. 소유권은 유지한다."""
        require_admin(principal)

        def _reset(session: ClientSession | None) -> LedgerResetResult:
            result = LedgerResetResult(
                transactions_deleted=self._tx_repo.delete_all(session=session),
                referrals_deleted=self._referral_repo.delete_all(session=session),
                theme_sales_deleted=self._theme_sale_repo.delete_all(session=session),
                wallets_reset=self._wallets.reset_all(session=session),
            )
            self._audit(
                principal,
                AuditAction.LEDGER_RESET,
                {
                    "transactions_deleted": result.transactions_deleted,
                    "referrals_deleted": result.referrals_deleted,
                    "theme_sales_deleted": result.theme_sales_deleted,
                    "wallets_reset": result.wallets_reset,
                },
                session=session,
            )
            return result

        result = self._uow.run(_reset)
        logger.warning(
            "ledger reset by %s: transactions=%d referrals=%d theme_sales=%d wallets=%d",
            principal.user_id,
            result.transactions_deleted,
            result.referrals_deleted,
            result.theme_sales_deleted,
            result.wallets_reset,
            extra={"user_id": principal.user_id},
        )
        return result


def get_admin_approval_service(
    ledger: LedgerService = Depends(get_ledger_service),
    referral_service: ReferralService = Depends(get_referral_service),
    wallet_service: WalletService = Depends(get_wallet_service),
    tx_repo: TransactionRepositoryInterface = Depends(get_transaction_repository),
    referral_repo: ReferralRepositoryInterface = Depends(get_referral_repository),
    theme_sale_repo: ThemeSaleRepositoryInterface = Depends(get_theme_sale_repository),
    audit_repo: AuditLogRepositoryInterface = Depends(get_audit_log_repository),
    uow: UnitOfWorkInterface = Depends(get_unit_of_work),
) -> AdminApprovalService:
    """FastAPI DI용 AdminApprovalService 팩토리."""

    return AdminApprovalService(
        ledger=ledger,
        referral_service=referral_service,
        wallet_service=wallet_service,
        tx_repo=tx_repo,
        referral_repo=referral_repo,
        theme_sale_repo=theme_sale_repo,
        audit_repo=audit_repo,
        uow=uow,
    )
