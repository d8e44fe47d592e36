from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pymongo.errors import DuplicateKeyError, PyMongoError

from common.eventbus.core import Event
from ledger_service.app.config import AppConfig
from ledger_service.app.models.audit import AuditLog
from ledger_service.app.models.catalog import StoreItem, Theme
from ledger_service.app.models.ownership import (
    ThemeSale,
    UserItemOwnership,
    UserThemeOwnership,
)
from ledger_service.app.models.referral import Referral, ReferralStatus, RewardType
from ledger_service.app.models.transaction import (
    PlanType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_service.app.models.user import LedgerUser
from ledger_service.app.models.wallet import Wallet
from ledger_service.app.repositories.unit_of_work import MongoUnitOfWork
from ledger_service.app.services.admin_service import AdminApprovalService
from ledger_service.app.services.catalog_service import CatalogService
from ledger_service.app.services.ledger_service import LedgerService
from ledger_service.app.services.ownership_service import OwnershipService
from ledger_service.app.services.purchase_service import PurchaseService
from ledger_service.app.services.referral_service import ReferralService
from ledger_service.app.services.users_service import UsersService
from ledger_service.app.services.wallet_service import WalletService


FIXED_NOW = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)

THEME_BLUE = Theme(id="theme-blue", name="Ocean Blue", price=149)
THEME_GOLD = Theme(id="theme-gold", name="Gold Theme", price=299)
THEME_RETIRED = Theme(id="theme-old", name="Retired", price=99, is_active=False)
ITEM_AVATAR = StoreItem(id="item-avatar", name="Neon Avatar", price=79, category="avatar")


def _paginate(items: list, page: int, page_size: int) -> tuple[list, int]:
    page_size = min(max(page_size, 1), 100)
    page = max(page, 1)
    start = (page - 1) * page_size
    return items[start : start + page_size], len(items)


class _Snapshotting:
    """FakeUnitOfWork 롤백용 상태 스냅샷."""

    _state_attrs: tuple[str, ...] = ()

    def snapshot(self) -> dict:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._state_attrs}

    def restore(self, state: dict) -> None:
        for name, value in state.items():
            setattr(self, name, value)


class FakeWalletRepository(_Snapshotting):
    """도큐먼트 하나에 대한 갱신은 원자적이라는 MongoDB 성질을 락으로 흉내 낸다."""

    _state_attrs = ("wallets",)

    def __init__(self) -> None:
        self.wallets: dict[str, Wallet] = {}
        self._lock = threading.RLock()

    def get_or_create(self, user_id: str, session=None) -> Wallet:
        with self._lock:
            if user_id not in self.wallets:
                self.wallets[user_id] = Wallet(
                    user_id=user_id, created_at=FIXED_NOW, updated_at=FIXED_NOW
                )
            return self.wallets[user_id].model_copy(deep=True)

    def credit(self, user_id, amount, transaction_id, count_as_deposit, session=None) -> Wallet:
        with self._lock:
            self.get_or_create(user_id)
            wallet = self.wallets[user_id]
            wallet.balance += amount
            if count_as_deposit:
                wallet.total_deposits += amount
            if transaction_id:
                wallet.transaction_ids.append(transaction_id)
            return wallet.model_copy(deep=True)

    def debit(self, user_id, amount, transaction_id, session=None) -> Wallet | None:
        with self._lock:
            self.get_or_create(user_id)
            wallet = self.wallets[user_id]
            if wallet.balance < amount:
                return None
            wallet.balance -= amount
            if transaction_id:
                wallet.transaction_ids.append(transaction_id)
            return wallet.model_copy(deep=True)

    def record_withdrawal(self, user_id, amount, session=None) -> Wallet:
        with self._lock:
            self.get_or_create(user_id)
            self.wallets[user_id].total_withdrawals += amount
            return self.wallets[user_id].model_copy(deep=True)

    def reset_all(self, session=None) -> int:
        changed = 0
        for wallet in self.wallets.values():
            if wallet.balance or wallet.total_deposits or wallet.total_withdrawals:
                changed += 1
            wallet.balance = 0
            wallet.total_deposits = 0
            wallet.total_withdrawals = 0
            wallet.transaction_ids = []
        return changed

    def balance(self, user_id: str) -> int:
        return self.wallets[user_id].balance if user_id in self.wallets else 0


class FakeTransactionRepository(_Snapshotting):
    _state_attrs = ("transactions",)

    def __init__(self) -> None:
        self.transactions: dict[str, Transaction] = {}
        self._seq = 0
        self._lock = threading.RLock()

    def new_id(self) -> str:
        with self._lock:
            self._seq += 1
            return f"tx-{self._seq:04d}"

    def insert(self, tx: Transaction, session=None) -> Transaction:
        with self._lock:
            if tx.idempotency_key and any(
                t.idempotency_key == tx.idempotency_key for t in self.transactions.values()
            ):
                raise DuplicateKeyError("duplicate idempotency_key")
            stored = tx if tx.id else tx.model_copy(update={"id": self.new_id()})
            self.transactions[str(stored.id)] = stored.model_copy(deep=True)
            return stored

    def insert_if_absent(self, tx: Transaction, session=None) -> tuple[Transaction, bool]:
        with self._lock:
            if tx.idempotency_key:
                for existing in self.transactions.values():
                    if existing.idempotency_key == tx.idempotency_key:
                        return existing.model_copy(deep=True), False
            return self.insert(tx, session=session), True

    def find_by_id(self, transaction_id: str, session=None) -> Transaction | None:
        tx = self.transactions.get(transaction_id)
        return tx.model_copy(deep=True) if tx else None

    def claim_pending(
        self, transaction_id, status, verified_by, failure_reason, now, session=None
    ) -> Transaction | None:
        with self._lock:
            tx = self.transactions.get(transaction_id)
            if tx is None or tx.status != TransactionStatus.PENDING:
                return None
            updated = tx.model_copy(
                update={
                    "status": status,
                    "verified": True,
                    "verified_at": now,
                    "verified_by": verified_by,
                    "failure_reason": failure_reason,
                    "updated_at": now,
                }
            )
            self.transactions[transaction_id] = updated
            return updated.model_copy(deep=True)

    def attach_proof(self, transaction_id, proof_ref, now, session=None) -> Transaction | None:
        tx = self.transactions.get(transaction_id)
        if tx is None or tx.status != TransactionStatus.PENDING or tx.proof_ref is not None:
            return None
        updated = tx.model_copy(
            update={"proof_ref": proof_ref, "proof_submitted_at": now, "updated_at": now}
        )
        self.transactions[transaction_id] = updated
        return updated.model_copy(deep=True)

    def _sorted(self) -> list[Transaction]:
        return sorted(self.transactions.values(), key=lambda t: t.created_at, reverse=True)

    def list_by_user(self, user_id, tx_type, page, page_size):
        items = [
            t
            for t in self._sorted()
            if t.user_id == user_id and (tx_type is None or t.type == tx_type)
        ]
        return _paginate(items, page, page_size)

    def list(self, tx_type, status, page, page_size):
        items = [
            t
            for t in self._sorted()
            if (tx_type is None or t.type == tx_type) and (status is None or t.status == status)
        ]
        return _paginate(items, page, page_size)

    def list_pending_before(self, cutoff, limit) -> list[Transaction]:
        items = [
            t
            for t in self.transactions.values()
            if t.status == TransactionStatus.PENDING and t.created_at < cutoff
        ]
        return sorted(items, key=lambda t: t.created_at)[:limit]

    def count_completed(self, user_id, tx_type) -> int:
        return sum(
            1
            for t in self.transactions.values()
            if t.user_id == user_id
            and t.type == tx_type
            and t.status == TransactionStatus.COMPLETED
        )

    def sum_amounts(self, user_id) -> dict[tuple[TransactionType, TransactionStatus], int]:
        sums: dict[tuple[TransactionType, TransactionStatus], int] = {}
        for t in self.transactions.values():
            if t.user_id == user_id:
                key = (t.type, t.status)
                sums[key] = sums.get(key, 0) + t.amount
        return sums

    def delete_all(self, session=None) -> int:
        count = len(self.transactions)
        self.transactions = {}
        return count

    def by_key(self, idempotency_key: str) -> list[Transaction]:
        return [t for t in self.transactions.values() if t.idempotency_key == idempotency_key]


class FakeUserRepository(_Snapshotting):
    _state_attrs = ("users",)

    def __init__(self) -> None:
        self.users: dict[str, LedgerUser] = {}

    def add(self, user_id: str, referral_code: str | None = None, **fields) -> LedgerUser:
        user = LedgerUser(
            user_id=user_id,
            username=user_id,
            referral_code=referral_code or f"SPELINX{user_id[-6:]}".upper(),
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
            **fields,
        )
        self.users[user_id] = user
        return user

    def find(self, user_id, session=None) -> LedgerUser | None:
        user = self.users.get(user_id)
        return user.model_copy(deep=True) if user else None

    def find_by_referral_code(self, referral_code) -> LedgerUser | None:
        for user in self.users.values():
            if user.referral_code == referral_code:
                return user.model_copy(deep=True)
        return None

    def upsert_profile(self, user_id, username, referral_code) -> LedgerUser:
        user = self.users.get(user_id)
        if user is None:
            user = self.add(user_id, referral_code=referral_code)
        user.username = username
        return user.model_copy(deep=True)

    def set_premium(self, user_id, plan: PlanType, expires_at, session=None):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.is_premium = True
        user.premium_plan = plan
        user.premium_expires_at = expires_at
        return user.model_copy(deep=True)

    def set_active_theme(self, user_id, theme_id, session=None) -> None:
        if user_id in self.users:
            self.users[user_id].active_theme_id = theme_id

    def apply_referral_reward(self, user_id, referral_id, credits, count_increment, session=None):
        user = self.users.get(user_id)
        if user is None:
            return None, False
        if referral_id in user.rewarded_referral_ids:
            return user.model_copy(deep=True), False
        user.referral_count += count_increment
        user.credits += credits
        user.rewarded_referral_ids.append(referral_id)
        return user.model_copy(deep=True), True

    def list_top_referrers(self, sort_by, limit) -> list[LedgerUser]:
        ranked = sorted(
            (u for u in self.users.values() if u.referral_count > 0),
            key=lambda u: (-getattr(u, sort_by.value), -u.referral_count, u.user_id),
        )
        return [u.model_copy(deep=True) for u in ranked[:limit]]


class FakeUserThemeRepository(_Snapshotting):
    _state_attrs = ("rows",)

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], UserThemeOwnership] = {}

    def find(self, user_id, theme_id, session=None):
        row = self.rows.get((user_id, theme_id))
        return row.model_copy(deep=True) if row else None

    def insert_if_absent(self, ownership: UserThemeOwnership, session=None) -> bool:
        key = (ownership.user_id, ownership.theme_id)
        if key in self.rows:
            return False
        self.rows[key] = ownership.model_copy(deep=True)
        return True

    def activate(self, user_id, theme_id, session=None) -> None:
        for (owner, tid), row in self.rows.items():
            if owner == user_id:
                row.active = tid == theme_id

    def list_by_user(self, user_id):
        return [row for (owner, _), row in self.rows.items() if owner == user_id]


class FakeUserItemRepository(_Snapshotting):
    _state_attrs = ("rows",)

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], UserItemOwnership] = {}

    def find(self, user_id, item_id, session=None):
        return self.rows.get((user_id, item_id))

    def insert_if_absent(self, ownership: UserItemOwnership, session=None) -> bool:
        key = (ownership.user_id, ownership.item_id)
        if key in self.rows:
            return False
        self.rows[key] = ownership
        return True

    def list_by_user(self, user_id):
        return [row for (owner, _), row in self.rows.items() if owner == user_id]


class FakeThemeSaleRepository(_Snapshotting):
    _state_attrs = ("sales",)

    def __init__(self) -> None:
        self.sales: dict[str, ThemeSale] = {}

    def upsert(self, sale: ThemeSale, session=None) -> bool:
        if sale.transaction_id in self.sales:
            return False
        self.sales[sale.transaction_id] = sale
        return True

    def find_by_transaction_id(self, transaction_id):
        return self.sales.get(transaction_id)

    def delete_all(self, session=None) -> int:
        count = len(self.sales)
        self.sales = {}
        return count


class FakeReferralRepository(_Snapshotting):
    _state_attrs = ("referrals",)

    def __init__(self) -> None:
        self.referrals: dict[str, Referral] = {}
        self._seq = 0

    def insert(self, referral: Referral, session=None) -> Referral:
        if any(r.referee_id == referral.referee_id for r in self.referrals.values()):
            raise DuplicateKeyError("duplicate referee_id")
        self._seq += 1
        stored = referral.model_copy(update={"id": f"ref-{self._seq:04d}"})
        self.referrals[str(stored.id)] = stored
        return stored.model_copy(deep=True)

    def find_by_referee(self, referee_id, session=None) -> Referral | None:
        for referral in self.referrals.values():
            if referral.referee_id == referee_id:
                return referral.model_copy(deep=True)
        return None

    def mark_rewarded(self, referral_id, reward_type: RewardType, now, session=None):
        referral = self.referrals.get(referral_id)
        if referral is None or referral.reward_given:
            return None
        updated = referral.model_copy(
            update={
                "reward_given": True,
                "status": ReferralStatus.COMPLETED,
                "reward_type": reward_type,
                "rewarded_at": now,
                "updated_at": now,
            }
        )
        self.referrals[referral_id] = updated
        return updated.model_copy(deep=True)

    def list_by_referrer(self, referrer_id):
        return [r for r in self.referrals.values() if r.referrer_id == referrer_id]

    def list(self, page, page_size):
        items = sorted(self.referrals.values(), key=lambda r: r.created_at, reverse=True)
        return _paginate(items, page, page_size)

    def delete_all(self, session=None) -> int:
        count = len(self.referrals)
        self.referrals = {}
        return count


class FakeThemeRepository(_Snapshotting):
    _state_attrs = ("themes",)

    def __init__(self, themes: list[Theme]) -> None:
        self.themes = {theme.id: theme for theme in themes}
        self._seq = 0

    def find_by_id(self, theme_id, session=None):
        return self.themes.get(theme_id)

    def find_by_name(self, name, session=None):
        for theme in self.themes.values():
            if theme.name == name:
                return theme
        return None

    def list_active(self):
        return [theme for theme in self.themes.values() if theme.is_active]

    def create(self, name, price, now, session=None) -> Theme:
        self._seq += 1
        theme = Theme(
            id=f"theme-new-{self._seq}", name=name, price=price, created_at=now, updated_at=now
        )
        self.themes[theme.id] = theme
        return theme

    def update(self, theme_id, fields, now, session=None) -> Theme | None:
        theme = self.themes.get(theme_id)
        if theme is None:
            return None
        updated = theme.model_copy(update={**fields, "updated_at": now})
        self.themes[theme_id] = updated
        return updated


class FakeStoreItemRepository(_Snapshotting):
    _state_attrs = ("items",)

    def __init__(self, items: list[StoreItem]) -> None:
        self.items = {item.id: item for item in items}
        self._seq = 0

    def find_by_id(self, item_id, session=None):
        return self.items.get(item_id)

    def list_active(self, category=None):
        return [
            item
            for item in self.items.values()
            if item.is_active and (category is None or item.category == category)
        ]

    def create(self, name, price, category, now, session=None) -> StoreItem:
        self._seq += 1
        item = StoreItem(
            id=f"item-new-{self._seq}",
            name=name,
            price=price,
            category=category,
            created_at=now,
            updated_at=now,
        )
        self.items[item.id] = item
        return item

    def update(self, item_id, fields, now, session=None) -> StoreItem | None:
        item = self.items.get(item_id)
        if item is None:
            return None
        updated = item.model_copy(update={**fields, "updated_at": now})
        self.items[item_id] = updated
        return updated


class FakeAuditLogRepository(_Snapshotting):
    _state_attrs = ("entries",)

    def __init__(self) -> None:
        self.entries: list[AuditLog] = []

    def create(self, entry: AuditLog, session=None) -> AuditLog:
        stored = entry.model_copy(update={"id": f"audit-{len(self.entries) + 1}"})
        self.entries.append(stored)
        return stored

    def list(self, page, page_size):
        return _paginate(list(reversed(self.entries)), page, page_size)

    def actions(self) -> list[str]:
        return [entry.action for entry in self.entries]


class FakeUnitOfWork:
    """in-memory 롤백을 흉내 내는 Unit of Work.

    가장 바깥 작업에서 예외가 나면 참여한 레포지토리 상태를 시작 시점으로 되돌린다.
    TransientTransactionError 라벨이 붙은 오류는 MongoDB 드라이버처럼 작업 전체를 다시 실행한다.
    """

    SESSION = object()
    MAX_ATTEMPTS = 3

    def __init__(self, repos: list[_Snapshotting]) -> None:
        self._repos = repos
        self._lock = threading.RLock()
        self.commits = 0
        self.rollbacks = 0
        self.retries = 0

    def run(self, work, session=None):
        if session is not None:
            return work(session)

        with self._lock:
            attempt = 0
            while True:
                attempt += 1
                snapshots = [repo.snapshot() for repo in self._repos]
                try:
                    result = work(self.SESSION)
                except BaseException as exc:
                    for repo, state in zip(self._repos, snapshots):
                        repo.restore(state)
                    self.rollbacks += 1
                    if (
                        isinstance(exc, PyMongoError)
                        and exc.has_error_label("TransientTransactionError")
                        and attempt < self.MAX_ATTEMPTS
                    ):
                        self.retries += 1
                        continue
                    raise
                self.commits += 1
                return result


class FakePublisher:
    def __init__(self) -> None:
        self.published: list[tuple[str, Event]] = []
        self.fail = False

    def publish(self, topic: str, event: Event) -> None:
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.published.append((topic, event))

    def payloads(self, event_type: str | None = None) -> list[dict]:
        return [
            evt.payload
            for _, evt in self.published
            if event_type is None or evt.payload.get("type") == event_type
        ]


class Clock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class LedgerFixture:
    config: AppConfig
    clock: Clock
    wallets: FakeWalletRepository
    transactions: FakeTransactionRepository
    users: FakeUserRepository
    user_themes: FakeUserThemeRepository
    user_items: FakeUserItemRepository
    theme_sales: FakeThemeSaleRepository
    referrals: FakeReferralRepository
    themes: FakeThemeRepository
    store_items: FakeStoreItemRepository
    audit_logs: FakeAuditLogRepository
    uow: FakeUnitOfWork | MongoUnitOfWork
    publisher: FakePublisher
    wallet_service: WalletService
    ownership: OwnershipService
    ledger: LedgerService
    referral_service: ReferralService
    purchase: PurchaseService
    admin: AdminApprovalService
    catalog: CatalogService
    users_service: UsersService

    def deposit(self, user_id: str, amount: int) -> Transaction:
        """입금을 개시하고 관리자 승인까지 끝낸다."""
        tx = self.purchase.initiate_deposit(user_id, amount).transaction
        return self.ledger.settle(str(tx.id), TransactionStatus.COMPLETED, approver="admin-1")


def build_fixture(config: AppConfig | None = None, uow=None) -> LedgerFixture:
    """in-memory 레포지토리로 서비스 그래프를 조립한다.

    uow 를 넘기면 FakeUnitOfWork 대신 사용한다 (전역 락 없이 동시 실행을 재현할 때).
    """
    config = config or AppConfig()
    clock = Clock()

    wallets = FakeWalletRepository()
    transactions = FakeTransactionRepository()
    users = FakeUserRepository()
    user_themes = FakeUserThemeRepository()
    user_items = FakeUserItemRepository()
    theme_sales = FakeThemeSaleRepository()
    referrals = FakeReferralRepository()
    audit_logs = FakeAuditLogRepository()
    themes = FakeThemeRepository([THEME_BLUE, THEME_GOLD, THEME_RETIRED])
    store_items = FakeStoreItemRepository([ITEM_AVATAR])
    uow = uow or FakeUnitOfWork(
        [
            wallets,
            transactions,
            users,
            user_themes,
            user_items,
            theme_sales,
            referrals,
            audit_logs,
            themes,
            store_items,
        ]
    )
    publisher = FakePublisher()

    wallet_service = WalletService(wallets)
    ownership = OwnershipService(
        user_theme_repo=user_themes,
        user_item_repo=user_items,
        theme_sale_repo=theme_sales,
        user_repo=users,
        uow=uow,
    )
    ledger = LedgerService(
        tx_repo=transactions,
        wallet_service=wallet_service,
        ownership_service=ownership,
        theme_repo=themes,
        store_item_repo=store_items,
        user_repo=users,
        uow=uow,
        publisher=publisher,
        clock=clock,
    )
    referral_service = ReferralService(
        referral_repo=referrals,
        user_repo=users,
        ledger=ledger,
        ownership=ownership,
        theme_repo=themes,
        audit_repo=audit_logs,
        uow=uow,
        publisher=publisher,
        config=config.referral,
    )
    purchase = PurchaseService(
        ledger=ledger,
        ownership=ownership,
        theme_repo=themes,
        store_item_repo=store_items,
        config=config,
        clock=clock,
    )
    admin = AdminApprovalService(
        ledger=ledger,
        referral_service=referral_service,
        wallet_service=wallet_service,
        tx_repo=transactions,
        referral_repo=referrals,
        theme_sale_repo=theme_sales,
        audit_repo=audit_logs,
        uow=uow,
    )
    catalog = CatalogService(
        theme_repo=themes,
        store_item_repo=store_items,
        audit_repo=audit_logs,
        uow=uow,
        clock=clock,
    )
    users_service = UsersService(
        user_repo=users,
        referral_service=referral_service,
        code_prefix=config.referral.code_prefix,
    )

    return LedgerFixture(
        config=config,
        clock=clock,
        wallets=wallets,
        transactions=transactions,
        users=users,
        user_themes=user_themes,
        user_items=user_items,
        theme_sales=theme_sales,
        referrals=referrals,
        themes=themes,
        store_items=store_items,
        audit_logs=audit_logs,
        uow=uow,
        publisher=publisher,
        wallet_service=wallet_service,
        ownership=ownership,
        ledger=ledger,
        referral_service=referral_service,
        purchase=purchase,
        admin=admin,
        catalog=catalog,
        users_service=users_service,
    )
