from __future__ import annotations

import json
import logging
import threading
import time
from typing import Callable

from confluent_kafka import (
    TIMESTAMP_NOT_AVAILABLE,
    Consumer,
    KafkaError,
    Producer,
    TopicPartition,
)

from .config import KafkaSettings, load_kafka_settings
from .core import Event, MaxRetryExceededError, RetryDelays, Topic
from .helpers import event_to_dict

logger = logging.getLogger(__name__)


class KafkaEventBus:
    """Kafka 기반 EventBus 구현.

    - publish: JSON 직렬화 후 비동기 produce (전달 실패는 콜백에서 로그)
    - subscribe: 수동 커밋 컨슈머. 핸들러 실패 시 retry.N 토픽, 최대 재시도 초과 시 DLQ 로 보낸다.
      retry.N 토픽의 메시지는 발행 시각 + RetryDelays[N-1] 이 지날 때까지 파티션을 멈춰 둔다.
    """

    def __init__(
        self, settings: KafkaSettings, clock: Callable[[], float] = time.time
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._producer = Producer(settings.producer_config())

    def close(self) -> None:
        self._producer.flush()

    # 발행 -----------------------------------------------------------------
    def publish(self, topic: str, event: Event) -> None:
        payload = json.dumps(
            event_to_dict(event), ensure_ascii=False, default=str
        ).encode("utf-8")

        def _delivery_callback(err, msg) -> None:  # type: ignore[no-untyped-def]
            if err is not None:
                logger.error("failed to deliver message to %s: %s", msg.topic(), err)

        self._producer.produce(
            topic=topic,
            value=payload,
            key=event.id.encode("utf-8"),
            callback=_delivery_callback,
        )
        self._producer.poll(0)

    # 구독 -----------------------------------------------------------------
    def subscribe(
        self,
        group_id: str,
        topic: Topic,
        handler: Callable[[Event], None],
        *,
        poll_timeout: float = 0.1,
        stop_flag: list[bool] | None = None,
    ) -> None:
        consumer = Consumer(
            {
                "bootstrap.servers": self._settings.brokers,
                "group.id": group_id,
                "auto.offset.reset": "earliest",
                "enable.auto.commit": False,
            }
        )
        consumer.subscribe([topic.base, *topic.get_retry_topics()])
        # (topic, partition) -> (재개할 위치, 재개 시각)
        paused: dict[tuple[str, int], tuple[TopicPartition, float]] = {}

        try:
            logger.info(
                "Kafka consumer started. group_id=%s topic=%s", group_id, topic.base
            )
            while not (stop_flag and stop_flag[0]):
                self._resume_due_partitions(consumer, paused)
                msg = consumer.poll(poll_timeout)
                if msg is None:
                    continue
                if msg.error():
                    if msg.error().code() != KafkaError._PARTITION_EOF:
                        logger.error("consumer error: %s", msg.error())
                    continue

                due_at = self._retry_due_at(topic, msg)
                if due_at is not None and due_at > self._clock():
                    # 지연 시간이 지나기 전에는 처리하지 않고 같은 오프셋에서 다시 읽는다.
                    position = TopicPartition(msg.topic(), msg.partition(), msg.offset())
                    consumer.pause([position])
                    consumer.seek(position)
                    paused[(msg.topic(), msg.partition())] = (position, due_at)
                    continue

                try:
                    raw = json.loads(msg.value())
                except Exception as exc:  # noqa: BLE001
                    logger.error(
                        "invalid event payload on topic %s: %s", msg.topic(), exc
                    )
                    consumer.commit(message=msg, asynchronous=False)
                    continue

                evt = self._decode_event(raw)
                try:
                    handler(evt)
                except Exception as exc:  # noqa: BLE001
                    if not self._forward_failed_event(topic, evt, exc):
                        continue  # 커밋하지 않음 -> 다시 처리 시도

                try:
                    consumer.commit(message=msg, asynchronous=False)
                except Exception as exc:  # noqa: BLE001
                    logger.error("offset commit error: %s", exc)
        finally:
            consumer.close()

    def _resume_due_partitions(
        self,
        consumer: Consumer,
        paused: dict[tuple[str, int], tuple[TopicPartition, float]],
    ) -> None:
        now = self._clock()
        due = [key for key, (_, resume_at) in paused.items() if resume_at <= now]
        if not due:
            return
        consumer.resume([paused.pop(key)[0] for key in due])

    def _retry_due_at(self, topic: Topic, msg) -> float | None:  # type: ignore[no-untyped-def]
        """retry.N 토픽 메시지의 처리 가능 시각(epoch 초). base 토픽이면 None.

        재시도 토픽에 발행된 시각(메시지 타임스탬프)에 RetryDelays[N-1] 을 더한다.
        """

        retry_topics = topic.get_retry_topics()
        if msg.topic() not in retry_topics:
            return None
        timestamp_type, timestamp_ms = msg.timestamp()
        if timestamp_type == TIMESTAMP_NOT_AVAILABLE:
            return None
        return timestamp_ms / 1000.0 + RetryDelays[retry_topics.index(msg.topic())]

    def _forward_failed_event(self, topic: Topic, evt: Event, exc: Exception) -> bool:
        """실패한 이벤트를 재시도 토픽 또는 DLQ 로 넘긴다. 발행 성공 여부를 반환한다."""

        evt.last_error = str(exc)
        next_retry = evt.retry + 1
        try:
            target = topic.get_retry_topic(next_retry)
        except MaxRetryExceededError:
            target = topic.dlq()
            logger.error(
                "event %s exceeded max retry, sending to DLQ %s: %s",
                evt.id,
                target,
                exc,
            )
        else:
            evt.retry = next_retry
            logger.warning(
                "event %s failed, scheduling retry %d/%d to %s",
                evt.id,
                evt.retry,
                evt.max_retry,
                target,
            )

        try:
            self.publish(target, evt)
        except Exception as pub_exc:  # noqa: BLE001
            logger.error("failed to publish event %s to %s: %s", evt.id, target, pub_exc)
            return False
        return True

    @staticmethod
    def _decode_event(raw: dict) -> Event:
        return Event(
            id=str(raw.get("id", "")),
            payload=raw.get("payload"),
            retry=int(raw.get("retry", 0)),
            max_retry=int(raw.get("max_retry", 0)),
            last_error=raw.get("last_error"),
        )


_bus: KafkaEventBus | None = None
_bus_lock = threading.Lock()


def get_kafka_event_bus() -> KafkaEventBus:
    """프로세스 전역 발행용 KafkaEventBus 를 반환한다 (FastAPI DI 용)."""

    global _bus

    if _bus is not None:
        return _bus

    with _bus_lock:
        if _bus is None:
            _bus = KafkaEventBus(load_kafka_settings())
        return _bus


def close_kafka_event_bus() -> None:
    global _bus

    with _bus_lock:
        if _bus is not None:
            _bus.close()
        _bus = None
