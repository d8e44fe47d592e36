from __future__ import annotations

from typing import Annotated

from fastapi import Header, HTTPException, status

from ..models.principal import Principal


ADMIN_ROLE = "admin"
GAME_ROLE = "game"


def get_principal(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Principal:
    """게이트웨이가 전달한 X-User-Id / X-User-Role 헤더로 요청 주체를 만든다.

    인증 자체는 게이트웨이 책임이다. 관리자(admin)와 게임 서비스(game) 역할만 인식하며,
    판정을 바꾸려면 이 의존성을 override 한다.
    """

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "X-User-Id header is required"},
        )
    role = (x_user_role or "").strip().lower()
    return Principal(
        user_id=user_id,
        is_admin=role == ADMIN_ROLE,
        is_game_service=role == GAME_ROLE,
    )
