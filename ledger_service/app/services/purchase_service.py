"""구매/입출금 개시 서비스.

결제 정책(최소 입금액, 출금 한도, UPI ID 형식, 플랜 가격표)을 적용한 뒤 원장에 pending
거래를 만들고, 외부 UPI 결제가 필요한 경우 결제 안내(딥링크)를 함께 돌려준다.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends

from ..config import AppConfig, PremiumPlanConfig
from ..dependencies import (
    get_config,
    get_store_item_repository,
    get_theme_repository,
)
from ..exceptions import (
    AlreadyOwned,
    CatalogItemNotFound,
    GameServiceRequired,
    InvalidPlan,
    PolicyViolation,
)
from ..models.catalog import StoreItem, Theme
from ..models.principal import Principal
from ..models.transaction import (
    ItemType,
    PlanType,
    Transaction,
    TransactionIntent,
    TransactionType,
)
from ..repositories.interfaces import (
    StoreItemRepositoryInterface,
    ThemeRepositoryInterface,
)
from .ledger_service import LedgerService, get_ledger_service
from .ownership_service import OwnershipService, get_ownership_service
from .payment_instruction import PaymentInstruction, build_upi_link
from .wallet_service import ensure_positive_amount


UPI_ID_PATTERN = re.compile(r"^[a-zA-Z0-9.-]{2,256}@[a-zA-Z][a-zA-Z.-]{2,64}$")


def require_game_service(principal: Principal) -> None:
    if not principal.is_game_service:
        raise GameServiceRequired(f"user {principal.user_id} is not the game service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchaseService:
    def __init__(
        self,
        ledger: LedgerService,
        ownership: OwnershipService,
        theme_repo: ThemeRepositoryInterface,
        store_item_repo: StoreItemRepositoryInterface,
        config: AppConfig,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ledger = ledger
        self._ownership = ownership
        self._theme_repo = theme_repo
        self._store_item_repo = store_item_repo
        self._config = config
        self._clock = clock

    def _reference(self, prefix: str, *parts: str) -> str:
        millis = int(self._clock().timestamp() * 1000)
        return "_".join([prefix, str(millis), *parts])

    def _instruction(self, tx: Transaction, note: str) -> PaymentInstruction:
        payment = self._config.payment
        return PaymentInstruction(
            transaction=tx,
            upi_link=build_upi_link(tx.amount, payment.upi_id, payment.merchant_name, note),
            payee_upi_id=payment.upi_id,
            merchant_name=payment.merchant_name,
            amount=tx.amount,
            note=note,
        )

    # 입출금 ---------------------------------------------------------------
    def initiate_deposit(self, user_id: str, amount: int) -> PaymentInstruction:
        ensure_positive_amount(amount)
        minimum = self._config.payment.min_deposit
        if amount < minimum:
            raise PolicyViolation(f"minimum deposit is ₹{minimum}")

        reference = self._reference("DEPOSIT", user_id)
        tx = self._ledger.initiate(
            user_id,
            TransactionType.DEPOSIT,
            amount,
            TransactionIntent(description=f"Deposit of ₹{amount}", reference=reference),
        )
        return self._instruction(tx, note=f"SPELINX Deposit - ₹{amount}")

    def request_withdrawal(self, user_id: str, amount: int, upi_id: str) -> Transaction:
        ensure_positive_amount(amount)
        payment = self._config.payment
        if amount < payment.min_withdrawal:
            raise PolicyViolation(f"minimum withdrawal is ₹{payment.min_withdrawal}")
        if amount > payment.max_withdrawal:
            raise PolicyViolation(f"maximum withdrawal is ₹{payment.max_withdrawal}")

        upi_id = (upi_id or "").strip()
        if not UPI_ID_PATTERN.match(upi_id):
            raise PolicyViolation("invalid UPI id format")

        return self._ledger.initiate(
            user_id,
            TransactionType.WITHDRAWAL,
            amount,
            TransactionIntent(
                description=f"Withdrawal of ₹{amount} to {upi_id}",
                reference=self._reference("WITHDRAWAL", user_id),
                payout_upi_id=upi_id,
            ),
        )

    # 프리미엄 -------------------------------------------------------------
    def list_premium_plans(self) -> list[PremiumPlanConfig]:
        return list(self._config.premium_plans.values())

    def initiate_premium(self, user_id: str, plan_type: PlanType | str) -> PaymentInstruction:
        try:
            plan_key = PlanType(plan_type)
        except ValueError as exc:
            raise InvalidPlan(f"unknown premium plan {plan_type!r}") from exc

        plan = self._config.premium_plans.get(plan_key)
        if plan is None:
            raise InvalidPlan(f"premium plan {plan_key} is not on sale")

        tx = self._ledger.initiate(
            user_id,
            TransactionType.PREMIUM_PAYMENT,
            plan.price,
            TransactionIntent(
                description=f"{plan.name} premium subscription",
                reference=self._reference("PREMIUM", user_id, plan.plan.value),
                plan_type=plan.plan,
            ),
        )
        return self._instruction(tx, note=f"{plan.name} - SPELINX Premium")

    # 테마 / 스토어 --------------------------------------------------------
    def list_themes(self) -> list[Theme]:
        return self._theme_repo.list_active()

    def list_store_items(self, category: str | None = None) -> list[StoreItem]:
        return self._store_item_repo.list_active(category)

    def purchase_theme(self, user_id: str, theme_id: str) -> PaymentInstruction:
        theme = self._theme_repo.find_by_id(theme_id)
        if theme is None or not theme.is_active:
            raise CatalogItemNotFound(f"theme {theme_id} not found")
        if self._ownership.owns_theme(user_id, theme.id):
            raise AlreadyOwned(f"theme {theme.name} is already owned")

        tx = self._ledger.initiate(
            user_id,
            TransactionType.STORE_PAYMENT,
            theme.price,
            TransactionIntent(
                description=f"Theme purchase: {theme.name}",
                reference=self._reference("THEME", user_id, theme.id),
                item_type=ItemType.THEME,
                item_id=theme.id,
            ),
        )
        return self._instruction(tx, note=f"{theme.name} - SPELINX Theme")

    def purchase_store_item(self, user_id: str, item_id: str) -> PaymentInstruction:
        item = self._store_item_repo.find_by_id(item_id)
        if item is None or not item.is_active:
            raise CatalogItemNotFound(f"store item {item_id} not found")
        if self._ownership.owns_item(user_id, item.id):
            raise AlreadyOwned(f"item {item.name} is already owned")

        tx = self._ledger.initiate(
            user_id,
            TransactionType.STORE_PAYMENT,
            item.price,
            TransactionIntent(
                description=f"Store purchase: {item.name}",
                reference=self._reference("STORE", user_id, item.id),
                item_type=ItemType.STORE_ITEM,
                item_id=item.id,
            ),
        )
        return self._instruction(tx, note=f"{item.name} - SPELINX Store")

    # 게임 보상 ------------------------------------------------------------
    def award_game_reward(
        self,
        principal: Principal,
        user_id: str,
        amount: int,
        game: str,
        idempotency_key: str | None = None,
    ) -> Transaction:
        """게임 서비스가 호출하는 보상 지급. 즉시 완료되며 키가 있으면 한 번만 지급된다.

        상한은 배수 적용 전 기본 보상에 걸고, 프리미엄이 활성 상태면 배수를 곱해 지급한다.
        """
        require_game_service(principal)
        ensure_positive_amount(amount)
        games = self._config.games
        if amount > games.max_reward_per_award:
            raise PolicyViolation(
                f"maximum game reward per award is {games.max_reward_per_award}"
            )

        premium = self._ownership.premium_status(user_id, now=self._clock())
        multiplier = games.premium_multiplier if premium.is_premium else 1
        description = f"Game reward: {game}"
        if multiplier > 1:
            description += f" (x{multiplier} premium)"

        return self._ledger.initiate(
            user_id,
            TransactionType.GAME_REWARD,
            amount * multiplier,
            TransactionIntent(
                description=description,
                reference=self._reference("GAME", user_id, game),
                idempotency_key=idempotency_key,
            ),
        )


def get_purchase_service(
    ledger: LedgerService = Depends(get_ledger_service),
    ownership: OwnershipService = Depends(get_ownership_service),
    theme_repo: ThemeRepositoryInterface = Depends(get_theme_repository),
    store_item_repo: StoreItemRepositoryInterface = Depends(get_store_item_repository),
    config: AppConfig = Depends(get_config),
) -> PurchaseService:
    """FastAPI DI용 PurchaseService 팩토리."""

    return PurchaseService(
        ledger=ledger,
        ownership=ownership,
        theme_repo=theme_repo,
        store_item_repo=store_item_repo,
        config=config,
    )
