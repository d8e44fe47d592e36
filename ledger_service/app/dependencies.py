"""FastAPI DI 용 인프라 팩토리 (레포지토리, Unit of Work, 이벤트 발행, 설정).

서비스 팩토리(get_xxx_service)는 각 서비스 모듈에 있고, 여기 팩토리들을 조합한다.
"""

from __future__ import annotations

from fastapi import Depends
from pymongo import MongoClient
from pymongo.database import Database

from common.eventbus.core import EventPublisher
from common.eventbus.kafka import get_kafka_event_bus
from common.mongo.client import get_client, get_database

from .config import AppConfig, get_app_config
from .repositories.audit_log_repository import AuditLogRepository
from .repositories.catalog_repository import StoreItemRepository, ThemeRepository
from .repositories.interfaces import (
    AuditLogRepositoryInterface,
    ReferralRepositoryInterface,
    StoreItemRepositoryInterface,
    ThemeRepositoryInterface,
    ThemeSaleRepositoryInterface,
    TransactionRepositoryInterface,
    UnitOfWorkInterface,
    UserItemRepositoryInterface,
    UserRepositoryInterface,
    UserThemeRepositoryInterface,
    WalletRepositoryInterface,
)
from .repositories.ownership_repository import (
    ThemeSaleRepository,
    UserItemRepository,
    UserThemeRepository,
)
from .repositories.referral_repository import ReferralRepository
from .repositories.transaction_repository import TransactionRepository
from .repositories.unit_of_work import MongoUnitOfWork
from .repositories.user_repository import UserRepository
from .repositories.wallet_repository import WalletRepository


def get_config() -> AppConfig:
    return get_app_config()


def get_mongo_client() -> MongoClient:
    return get_client()


def get_unit_of_work(
    client: MongoClient = Depends(get_mongo_client),
    config: AppConfig = Depends(get_config),
) -> UnitOfWorkInterface:
    """FastAPI DI용 MongoUnitOfWork 팩토리."""

    return MongoUnitOfWork(client, use_transactions=config.ledger.use_transactions)


def get_event_publisher() -> EventPublisher:
    return get_kafka_event_bus()


def get_wallet_repository(
    db: Database = Depends(get_database),
) -> WalletRepositoryInterface:
    return WalletRepository(db)


def get_transaction_repository(
    db: Database = Depends(get_database),
) -> TransactionRepositoryInterface:
    return TransactionRepository(db)


def get_user_repository(
    db: Database = Depends(get_database),
) -> UserRepositoryInterface:
    return UserRepository(db)


def get_user_theme_repository(
    db: Database = Depends(get_database),
) -> UserThemeRepositoryInterface:
    return UserThemeRepository(db)


def get_user_item_repository(
    db: Database = Depends(get_database),
) -> UserItemRepositoryInterface:
    return UserItemRepository(db)


def get_theme_sale_repository(
    db: Database = Depends(get_database),
) -> ThemeSaleRepositoryInterface:
    return ThemeSaleRepository(db)


def get_referral_repository(
    db: Database = Depends(get_database),
) -> ReferralRepositoryInterface:
    return ReferralRepository(db)


def get_theme_repository(
    db: Database = Depends(get_database),
) -> ThemeRepositoryInterface:
    return ThemeRepository(db)


def get_store_item_repository(
    db: Database = Depends(get_database),
) -> StoreItemRepositoryInterface:
    return StoreItemRepository(db)


def get_audit_log_repository(
    db: Database = Depends(get_database),
) -> AuditLogRepositoryInterface:
    return AuditLogRepository(db)
