from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """요청 주체. 인증 게이트웨이가 전달한 헤더에서 만들어진다."""

    user_id: str
    is_admin: bool = False
    is_game_service: bool = False
