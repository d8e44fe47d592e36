from __future__ import annotations

import logging
import threading
from typing import Optional

from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.database import Database

from .config import (
    get_max_pool_size,
    get_mongo_db_name,
    get_mongo_uri,
    get_server_selection_timeout_ms,
)


logger = logging.getLogger(__name__)


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


def connect() -> Database:
    """프로세스 시작 시 한 번 MongoDB 에 연결하고 기본 Database 를 반환한다.

    - MONGO_URI 에서 URI 를 읽어온다.
    - ping 으로 연결을 검증한다.
    - MONGO_DB_NAME 또는 URI 의 기본 DB 가 없으면 에러를 발생시킨다.
    - 원장 컬렉션에 필요한 인덱스를 생성한다.

    이미 연결되어 있으면 기존 Database 를 그대로 반환한다 (idempotent).
    """

    global _client, _db

    if _db is not None:
        return _db

    with _lock:
        if _db is not None:
            return _db

        uri = get_mongo_uri()
        client: MongoClient = MongoClient(
            uri,
            maxPoolSize=get_max_pool_size(),
            serverSelectionTimeoutMS=get_server_selection_timeout_ms(),
            tz_aware=True,
        )

        try:
            client.admin.command("ping")
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

        db_name = get_mongo_db_name()
        try:
            db = client[db_name] if db_name else client.get_default_database()
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(
                "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
            ) from exc

        try:
            ensure_indexes(db)
        except Exception as exc:  # noqa: BLE001
            # 유니크 인덱스가 없으면 멱등성 보장이 깨지므로 치명적 오류로 본다.
            logger.error("failed to ensure MongoDB indexes: %s", exc)
            client.close()
            raise

        _client = client
        _db = db
        logger.info("MongoDB connected and indexes ensured (db=%s)", db.name)
        return db


def is_ready() -> bool:
    """connect() 가 성공적으로 끝났는지 여부."""

    return _db is not None


def get_client() -> MongoClient:
    """connect() 로 생성된 MongoClient 를 반환한다.

    세션/트랜잭션이 필요한 곳(Unit of Work)에서 사용한다.
    """

    if _client is None:
        raise RuntimeError("MongoDB is not connected; call connect() at startup")
    return _client


def get_database() -> Database:
    """connect() 로 선택된 기본 Database 를 반환한다 (FastAPI DI 용)."""

    if _db is None:
        raise RuntimeError("MongoDB is not connected; call connect() at startup")
    return _db


def close() -> None:
    """연결을 닫고 상태를 초기화한다. 종료 훅과 테스트에서 사용한다."""

    global _client, _db

    with _lock:
        if _client is not None:
            _client.close()
        _client = None
        _db = None


def ensure_indexes(db: Database) -> None:
    """원장 컬렉션의 필수 인덱스를 생성한다.

    유니크 인덱스는 멱등성 계약(지갑 1개/유저, 테마 소유 1행, ThemeSale 키,
    추천 1회, 보상 거래 idempotency_key)을 DB 레벨에서 보장한다.
    중복 생성해도 MongoDB 가 처리하므로 idempotent 하다.
    """

    db["users"].create_indexes(
        [
            IndexModel([("user_id", ASCENDING)], name="uniq_user_id", unique=True),
            IndexModel(
                [("referral_code", ASCENDING)],
                name="uniq_referral_code",
                unique=True,
                sparse=True,
            ),
            IndexModel(
                [("referral_count", DESCENDING), ("user_id", ASCENDING)],
                name="idx_referral_count",
            ),
            IndexModel(
                [("credits", DESCENDING), ("referral_count", DESCENDING)],
                name="idx_credits",
            ),
        ]
    )

    db["wallets"].create_indexes(
        [IndexModel([("user_id", ASCENDING)], name="uniq_wallet_user_id", unique=True)]
    )

    db["transactions"].create_indexes(
        [
            IndexModel(
                [("user_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_user_created_at",
            ),
            IndexModel(
                [("type", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)],
                name="idx_type_status_created_at",
            ),
            IndexModel(
                [("status", ASCENDING), ("created_at", ASCENDING)],
                name="idx_status_created_at",
            ),
            IndexModel(
                [("idempotency_key", ASCENDING)],
                name="uniq_idempotency_key",
                unique=True,
                sparse=True,
            ),
        ]
    )

    db["user_themes"].create_indexes(
        [
            IndexModel(
                [("user_id", ASCENDING), ("theme_id", ASCENDING)],
                name="uniq_user_theme",
                unique=True,
            )
        ]
    )

    db["user_items"].create_indexes(
        [
            IndexModel(
                [("user_id", ASCENDING), ("item_id", ASCENDING)],
                name="uniq_user_item",
                unique=True,
            )
        ]
    )

    db["theme_sales"].create_indexes(
        [
            IndexModel(
                [("transaction_id", ASCENDING)],
                name="uniq_theme_sale_transaction_id",
                unique=True,
            )
        ]
    )

    db["referrals"].create_indexes(
        [
            IndexModel(
                [("referee_id", ASCENDING)], name="uniq_referee_id", unique=True
            ),
            IndexModel(
                [("referrer_id", ASCENDING), ("created_at", DESCENDING)],
                name="idx_referrer_created_at",
            ),
        ]
    )

    db["audit_logs"].create_indexes(
        [IndexModel([("created_at", DESCENDING)], name="idx_created_at_desc")]
    )
