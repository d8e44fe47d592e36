from __future__ import annotations

import os
from dataclasses import dataclass


KAFKA_BOOTSTRAP_SERVERS_ENV = "KAFKA_BOOTSTRAP_SERVERS"
KAFKA_GROUP_ID_ENV = "KAFKA_GROUP_ID"
KAFKA_MESSAGE_MAX_BYTES_ENV = "KAFKA_MESSAGE_MAX_BYTES"


@dataclass(slots=True)
class KafkaSettings:
    """Kafka 접속 설정."""

    brokers: str
    group_id: str
    message_max_bytes: int | None = None

    def producer_config(self) -> dict[str, object]:
        config: dict[str, object] = {"bootstrap.servers": self.brokers}
        if self.message_max_bytes is not None:
            config["message.max.bytes"] = self.message_max_bytes
        return config


def get_brokers() -> str:
    value = os.getenv(KAFKA_BOOTSTRAP_SERVERS_ENV)
    if not value:
        raise RuntimeError(
            f"{KAFKA_BOOTSTRAP_SERVERS_ENV} environment variable is required"
        )
    return value


def get_group_id() -> str:
    value = os.getenv(KAFKA_GROUP_ID_ENV)
    if not value:
        raise RuntimeError(f"{KAFKA_GROUP_ID_ENV} environment variable is required")
    return value


def get_message_max_bytes() -> int | None:
    """producer 의 message.max.bytes 값을 반환한다.

    - 비어 있거나 0 이하이면 None (라이브러리 기본값 사용)
    - 정수가 아니면 설정 오류를 조기에 드러내기 위해 RuntimeError
    """

    raw_value = os.getenv(KAFKA_MESSAGE_MAX_BYTES_ENV, "").strip()
    if not raw_value:
        return None

    try:
        value = int(raw_value)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(
            f"{KAFKA_MESSAGE_MAX_BYTES_ENV} must be an integer value, got: {raw_value!r}"
        ) from exc

    return value if value > 0 else None


def load_kafka_settings() -> KafkaSettings:
    return KafkaSettings(
        brokers=get_brokers(),
        group_id=get_group_id(),
        message_max_bytes=get_message_max_bytes(),
    )
