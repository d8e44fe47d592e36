from __future__ import annotations

import logging
import uuid

from fastapi import Depends

from ..config import AppConfig
from ..dependencies import get_config, get_user_repository
from ..exceptions import UserNotFound
from ..models.referral import Referral
from ..models.user import LedgerUser
from ..repositories.interfaces import UserRepositoryInterface
from .referral_service import ReferralService, get_referral_service


logger = logging.getLogger(__name__)


def generate_referral_code(user_id: str, prefix: str = "SPELINX") -> str:
    """<prefix><user_id 마지막 6자리, 대문자> 형태의 추천 코드."""

    return f"{prefix}{user_id[-6:]}".upper()


class UsersService:
    """원장 유저 프로젝션 등록과 가입 시 추천 연결.

    - 인증/프로필의 원본은 외부 인증 서비스에 있고, 여기서는 user_id 를 그대로 받는다.
    - 추천 코드가 잘못되었더라도 가입(등록)은 실패하지 않는다.
    """

    def __init__(
        self,
        user_repo: UserRepositoryInterface,
        referral_service: ReferralService,
        code_prefix: str = "SPELINX",
    ) -> None:
        self._user_repo = user_repo
        self._referrals = referral_service
        self._code_prefix = code_prefix

    def register(
        self,
        user_id: str,
        username: str,
        referral_code: str | None = None,
    ) -> tuple[LedgerUser, Referral | None]:
        existing = self._user_repo.find(user_id)
        if existing is not None:
            user = self._user_repo.upsert_profile(
                user_id, username, existing.referral_code or self._new_code(user_id)
            )
            return user, None

        user = self._user_repo.upsert_profile(user_id, username, self._new_code(user_id))
        logger.info(
            "user registered user_id=%s referral_code=%s",
            user_id,
            user.referral_code,
            extra={"user_id": user_id},
        )
        referral = self._referrals.record_signup_referral(referral_code, user_id)
        return user, referral

    def _new_code(self, user_id: str) -> str:
        code = generate_referral_code(user_id, self._code_prefix)
        owner = self._user_repo.find_by_referral_code(code)
        if owner is None or owner.user_id == user_id:
            return code
        # 마지막 6자리가 겹치는 경우에만 난수 접미사를 붙인다.
        return f"{code}{uuid.uuid4().hex[:4].upper()}"

    def get_profile(self, user_id: str) -> LedgerUser:
        user = self._user_repo.find(user_id)
        if user is None:
            raise UserNotFound(f"user {user_id} not found")
        return user


def get_users_service(
    user_repo: UserRepositoryInterface = Depends(get_user_repository),
    referral_service: ReferralService = Depends(get_referral_service),
    config: AppConfig = Depends(get_config),
) -> UsersService:
    """FastAPI DI용 UsersService 팩토리."""

    return UsersService(
        user_repo=user_repo,
        referral_service=referral_service,
        code_prefix=config.referral.code_prefix,
    )
