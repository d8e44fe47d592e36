from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


# 핸들러 실패 시 재시도 토픽으로 넘기는 간격(초). 길이가 곧 최대 재시도 횟수다.
RetryDelays: list[float] = [
    60.0,
    300.0,
    600.0,
    1800.0,
    3600.0,
]


class MaxRetryExceededError(Exception):
    """최대 재시도 횟수를 초과한 경우 사용되는 예외."""


@dataclass(slots=True)
class Event:
    """Kafka 메시지의 메타데이터와 페이로드를 표현하는 이벤트.

    payload 는 JSON 직렬화 직전/직후의 dict 를 저장하고,
    실제 Kafka I/O 레이어에서 JSON 인코딩/디코딩을 담당한다.
    """

    id: str
    payload: Any
    retry: int = 0
    max_retry: int = 0
    last_error: str | None = None

    def __post_init__(self) -> None:
        if self.max_retry <= 0 or self.max_retry > len(RetryDelays):
            self.max_retry = len(RetryDelays)


@dataclass(frozen=True, slots=True)
class Topic:
    base: str

    def dlq(self) -> str:
        return f"{self.base}.dlq"

    def get_retry_topics(self) -> list[str]:
        return [
            f"{self.base}.retry.{index}" for index in range(1, len(RetryDelays) + 1)
        ]

    def get_retry_topic(self, retry_count: int) -> str:
        if retry_count <= 0 or retry_count > len(RetryDelays):
            raise MaxRetryExceededError()
        return f"{self.base}.retry.{retry_count}"


class EventPublisher(Protocol):
    """이벤트 발행자 계약.

    서비스 레이어는 이 인터페이스에만 의존하고, Kafka 구현은 몰라도 된다.
    """

    def publish(self, topic: str, event: Event) -> None:  # pragma: no cover - Protocol
        ...
