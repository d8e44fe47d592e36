from __future__ import annotations

import logging
import signal
from typing import List

from common.eventbus.config import load_kafka_settings
from common.eventbus.core import Event
from common.eventbus.kafka import KafkaEventBus
from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerEventType, TransactionSettledEvent
from common.logger import setup_logger
from common.mongo.client import connect, get_client

from ..config import get_app_config
from ..models.transaction import TransactionStatus, TransactionType
from ..services.factory import build_referral_service
from ..services.referral_service import ReferralService


logger = logging.getLogger(__name__)

CONSUMER_GROUP_SUFFIX = "first-deposit-referral"


def _handle_event(evt: Event, *, service: ReferralService) -> None:
    payload = evt.payload
    if not isinstance(payload, dict):
        logger.error("unexpected payload type for event %s: %r", evt.id, type(payload))
        return

    if str(payload.get("type", "")) != LedgerEventType.TRANSACTION_SETTLED:
        logger.debug("ignoring event type=%s id=%s", payload.get("type"), evt.id)
        return

    try:
        settled = TransactionSettledEvent.from_dict(payload)
    except Exception:  # noqa: BLE001
        logger.exception(
            "failed to decode TransactionSettledEvent id=%s payload=%r",
            payload.get("id"),
            payload,
        )
        raise

    if (
        settled.transaction_type != TransactionType.DEPOSIT
        or settled.status != TransactionStatus.COMPLETED
    ):
        return

    result = service.settle_on_first_deposit(settled.user_id)
    if result is not None:
        logger.info(
            "referral settled on first deposit referral_id=%s transaction_id=%s",
            result.referral.id,
            settled.transaction_id,
            extra={"user_id": settled.user_id, "transaction_id": settled.transaction_id},
        )


def run_ledger_consumer(
    stop_flag: List[bool], service: ReferralService | None = None
) -> None:
    """transaction.settled 이벤트를 소비해 첫 입금 추천 보상을 정산한다.

    - stop_flag[0] 이 True 가 되면 루프를 종료한다.
    - 정산 자체가 멱등하므로 재전달된 이벤트는 아무 효과가 없다.
    """
    logger.info("ledger-events-consumer starting up")

    settings = load_kafka_settings()
    bus = KafkaEventBus(settings)
    if service is None:
        db = connect()
        service = build_referral_service(get_client(), db, bus, get_app_config())
    group_id = f"{settings.group_id}.{CONSUMER_GROUP_SUFFIX}"

    try:
        logger.info("subscribing to topic=%s group_id=%s", TOPIC_LEDGER.base, group_id)
        bus.subscribe(
            group_id=group_id,
            topic=TOPIC_LEDGER,
            handler=lambda evt: _handle_event(evt, service=service),
            stop_flag=stop_flag,
        )
    finally:
        bus.close()
        logger.info("ledger-events-consumer stopped")


def main() -> None:
    """단독 프로세스로 실행할 때 사용하는 엔트리 포인트."""

    setup_logger(name="ledger-events-consumer")
    stop_flag: List[bool] = [False]

    def _signal_handler(signum, frame) -> None:  # type: ignore[unused-argument]
        logger.info("received signal %s, shutting down ledger-events-consumer...", signum)
        stop_flag[0] = True

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    run_ledger_consumer(stop_flag)


if __name__ == "__main__":  # pragma: no cover
    main()
