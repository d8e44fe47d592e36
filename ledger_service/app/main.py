from __future__ import annotations

import os
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common.eventbus.kafka import close_kafka_event_bus
from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import close as close_mongo
from common.mongo.client import connect as connect_mongo

from .api.errors import register_exception_handlers
from .api.health import router as health_router
from .api.v1 import api_router
from .config import get_app_config
from .event_handlers.ledger_events_consumer import run_ledger_consumer
from .scheduler.pending_expiry_scheduler import (
    start_pending_expiry_scheduler,
    stop_pending_expiry_scheduler,
)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
    """애플리케이션 생명주기 동안 외부 연결과 백그라운드 작업을 관리한다.

    - MongoDB 연결과 인덱스 생성
    - pending 거래 만료 스케줄러 (ledger.pending_ttl_hours > 0 일 때)
    - 첫 입금 추천 보상 컨슈머 스레드 (referral.reward_on_first_deposit 일 때)
    """

    config = get_app_config()
    connect_mongo()
    start_pending_expiry_scheduler()

    consumer_stop_flag = [False]
    consumer_thread: threading.Thread | None = None
    if config.referral.reward_on_first_deposit:
        consumer_thread = threading.Thread(
            target=run_ledger_consumer,
            args=(consumer_stop_flag,),
            name="ledger-events-consumer",
            daemon=True,
        )
        consumer_thread.start()

    try:
        yield
    finally:
        consumer_stop_flag[0] = True
        if consumer_thread is not None:
            consumer_thread.join(timeout=10.0)
        stop_pending_expiry_scheduler()
        close_kafka_event_bus()
        close_mongo()


def create_app() -> FastAPI:
    setup_logger(name="ledger-service")
    app = FastAPI(
        title="SPELINX Ledger Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(RequestTraceMiddleware)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")
    register_exception_handlers(app)

    return app


app = create_app()


def main() -> None:
    """명령행에서 실행할 수 있도록 uvicorn 런처를 제공한다."""

    import uvicorn

    port = int(os.getenv("LEDGER_SERVICE_PORT", "8003"))
    uvicorn.run("ledger_service.app.main:app", host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
