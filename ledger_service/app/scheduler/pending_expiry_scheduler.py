from __future__ import annotations

import logging
import threading
from datetime import timedelta

from common.eventbus.kafka import get_kafka_event_bus
from common.mongo.client import get_client, get_database

from ..config import get_app_config
from ..services.factory import build_ledger_service
from ..services.ledger_service import LedgerService


logger = logging.getLogger(__name__)


_EXPIRY_THREAD: threading.Thread | None = None
_EXPIRY_STOP_EVENT: threading.Event | None = None


def run_expiry_once(service: LedgerService, ttl: timedelta) -> int:
    """TTL 을 넘긴 pending 거래를 한 번 정리하고 만료 처리한 건수를 반환한다."""

    expired = service.expire_pending(ttl)
    if expired:
        logger.info("expired %d pending transactions (ttl=%s)", len(expired), ttl)
    return len(expired)


def _run_scheduler_loop(stop_event: threading.Event, interval_seconds: float) -> None:
    config = get_app_config()
    ttl = timedelta(hours=config.ledger.pending_ttl_hours)
    logger.info(
        "pending expiry scheduler started (interval=%.0f seconds, ttl=%s)",
        interval_seconds,
        ttl,
    )

    service = build_ledger_service(
        get_client(), get_database(), get_kafka_event_bus(), config
    )

    try:
        while True:
            try:
                run_expiry_once(service, ttl)
            except Exception:  # noqa: BLE001
                logger.exception("pending expiry run failed")
            if stop_event.wait(interval_seconds):
                break
    finally:
        logger.info("pending expiry scheduler thread stopped")


def start_pending_expiry_scheduler() -> bool:
    """pending 만료 스케줄러 스레드를 시작한다.

    ledger.pending_ttl_hours 가 0 이면 만료 정책이 꺼진 것으로 보고 시작하지 않는다.
    """

    global _EXPIRY_THREAD, _EXPIRY_STOP_EVENT

    if _EXPIRY_THREAD and _EXPIRY_THREAD.is_alive():
        return True

    ledger_cfg = get_app_config().ledger
    if ledger_cfg.pending_ttl_hours <= 0:
        logger.info("pending expiry disabled (pending_ttl_hours=0)")
        return False

    stop_event = threading.Event()
    thread = threading.Thread(
        target=_run_scheduler_loop,
        args=(stop_event, ledger_cfg.expiry_sweep_interval_minutes * 60.0),
        name="pending-expiry-scheduler",
        daemon=True,
    )

    _EXPIRY_STOP_EVENT = stop_event
    _EXPIRY_THREAD = thread

    thread.start()
    return True


def stop_pending_expiry_scheduler() -> None:
    global _EXPIRY_THREAD, _EXPIRY_STOP_EVENT

    if _EXPIRY_THREAD is None or _EXPIRY_STOP_EVENT is None:
        return

    _EXPIRY_STOP_EVENT.set()
    _EXPIRY_THREAD.join(timeout=10.0)

    _EXPIRY_THREAD = None
    _EXPIRY_STOP_EVENT = None

    logger.info("pending expiry scheduler stopped by shutdown")
