"""FastAPI 밖(컨슈머, 스케줄러 스레드)에서 서비스 그래프를 조립한다."""

from __future__ import annotations

from pymongo import MongoClient
from pymongo.database import Database

from common.eventbus.core import EventPublisher

from ..config import AppConfig
from ..repositories.audit_log_repository import AuditLogRepository
from ..repositories.catalog_repository import StoreItemRepository, ThemeRepository
from ..repositories.ownership_repository import (
    ThemeSaleRepository,
    UserItemRepository,
    UserThemeRepository,
)
from ..repositories.referral_repository import ReferralRepository
from ..repositories.transaction_repository import TransactionRepository
from ..repositories.unit_of_work import MongoUnitOfWork
from ..repositories.user_repository import UserRepository
from ..repositories.wallet_repository import WalletRepository
from .ledger_service import LedgerService
from .ownership_service import OwnershipService
from .referral_service import ReferralService
from .wallet_service import WalletService


def _build_ledger(
    client: MongoClient,
    db: Database,
    publisher: EventPublisher,
    config: AppConfig,
) -> tuple[LedgerService, OwnershipService, MongoUnitOfWork]:
    uow = MongoUnitOfWork(client, use_transactions=config.ledger.use_transactions)
    user_repo = UserRepository(db)
    ownership = OwnershipService(
        user_theme_repo=UserThemeRepository(db),
        user_item_repo=UserItemRepository(db),
        theme_sale_repo=ThemeSaleRepository(db),
        user_repo=user_repo,
        uow=uow,
    )
    ledger = LedgerService(
        tx_repo=TransactionRepository(db),
        wallet_service=WalletService(WalletRepository(db)),
        ownership_service=ownership,
        theme_repo=ThemeRepository(db),
        store_item_repo=StoreItemRepository(db),
        user_repo=user_repo,
        uow=uow,
        publisher=publisher,
    )
    return ledger, ownership, uow


def build_ledger_service(
    client: MongoClient,
    db: Database,
    publisher: EventPublisher,
    config: AppConfig,
) -> LedgerService:
    ledger, _, _ = _build_ledger(client, db, publisher, config)
    return ledger


def build_referral_service(
    client: MongoClient,
    db: Database,
    publisher: EventPublisher,
    config: AppConfig,
) -> ReferralService:
    ledger, ownership, uow = _build_ledger(client, db, publisher, config)
    return ReferralService(
        referral_repo=ReferralRepository(db),
        user_repo=UserRepository(db),
        ledger=ledger,
        ownership=ownership,
        theme_repo=ThemeRepository(db),
        audit_repo=AuditLogRepository(db),
        uow=uow,
        publisher=publisher,
        config=config.referral,
    )
