from __future__ import annotations

import logging
from typing import Callable, TypeVar

from pymongo import MongoClient
from pymongo.client_session import ClientSession

from .interfaces import UnitOfWorkInterface


logger = logging.getLogger(__name__)

T = TypeVar("T")


class MongoUnitOfWork(UnitOfWorkInterface):
    """MongoDB 세션 + 멀티 도큐먼트 트랜잭션 기반 Unit of Work.

    - ClientSession.with_transaction 으로 실행한다. 같은 도큐먼트를 건드리는 트랜잭션끼리
      WriteConflict 가 나면 드라이버가 work 전체를 다시 실행하므로, 진 쪽은 갱신된 상태를
      다시 읽고 NotPending 같은 도메인 예외로 끝난다.
    - use_transactions=False 이면 세션 없이(None) 실행한다. 이 경우에도 원장의
      조건부 단일 도큐먼트 업데이트는 그대로 원자적이지만, 여러 컬렉션에 걸친
      쓰기는 부분 반영될 수 있다 (replica set 이 없는 개발 환경용).
    """

    def __init__(self, client: MongoClient | None, use_transactions: bool = True) -> None:
        self._client = client
        self._use_transactions = use_transactions

    def run(
        self,
        work: Callable[[ClientSession | None], T],
        session: ClientSession | None = None,
    ) -> T:
        if session is not None:
            # 바깥 트랜잭션에 참여한다.
            return work(session)

        if not self._use_transactions or self._client is None:
            return work(None)

        attempts = 0

        def _attempt(active: ClientSession) -> T:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                logger.warning(
                    "retrying unit of work after transient conflict attempt=%d", attempts
                )
            return work(active)

        with self._client.start_session() as new_session:
            return new_session.with_transaction(_attempt)
