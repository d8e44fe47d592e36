from __future__ import annotations

from pydantic import BaseModel, Field, StrictInt


class GameRewardRequest(BaseModel):
    """게임 서비스의 보상 지급 요청. idempotency_key 가 같으면 한 번만 지급된다.

    user_id 는 보상을 받을 플레이어이며, 요청 주체(게임 서비스)와 다르다.
    """

    user_id: str = Field(min_length=1, max_length=64)
    amount: StrictInt
    game: str = Field(min_length=1, max_length=64)
    idempotency_key: str | None = Field(default=None, max_length=128)
