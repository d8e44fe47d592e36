"""소유권 서비스.

테마/아이템 소유, 테마 판매 기록, 활성 테마, 프리미엄 상태를 관리한다.
부여 연산은 모두 멱등하며, 원장 정산(LedgerService)과 추천 보상(ReferralService)이
같은 세션으로 호출할 수 있도록 session 인자를 받는다.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from pymongo.client_session import ClientSession

from ..dependencies import (
    get_theme_sale_repository,
    get_unit_of_work,
    get_user_item_repository,
    get_user_repository,
    get_user_theme_repository,
)
from ..exceptions import NotOwned, UserNotFound
from ..models.ownership import (
    OwnershipSource,
    ThemeSale,
    UserItemOwnership,
    UserThemeOwnership,
)
from ..models.transaction import PlanType
from ..models.user import LedgerUser, PremiumStatus
from ..repositories.interfaces import (
    ThemeSaleRepositoryInterface,
    UnitOfWorkInterface,
    UserItemRepositoryInterface,
    UserRepositoryInterface,
    UserThemeRepositoryInterface,
)


logger = logging.getLogger(__name__)


# 일 단위 플랜. 월 단위 플랜은 달력 기준으로 더한다.
_PLAN_DAYS: dict[PlanType, int] = {
    PlanType.DAILY: 1,
    PlanType.WEEKLY: 7,
}
_PLAN_MONTHS: dict[PlanType, int] = {
    PlanType.MONTHLY: 1,
    PlanType.QUARTERLY: 3,
    PlanType.SEMI_ANNUAL: 6,
    PlanType.YEARLY: 12,
}


def add_months(value: datetime, months: int) -> datetime:
    """달력 기준으로 months 개월을 더한다. 말일을 넘으면 그 달의 마지막 날로 맞춘다.

    예) 1/31 + 1개월 -> 2/28 (윤년이면 2/29)
    """

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_premium_expiry(plan: PlanType, now: datetime) -> datetime | None:
    """플랜별 만료 시각. lifetime 은 None (만료 없음)."""

    if plan == PlanType.LIFETIME:
        return None
    if plan in _PLAN_DAYS:
        return now + timedelta(days=_PLAN_DAYS[plan])
    return add_months(now, _PLAN_MONTHS[plan])


class OwnershipService:
    def __init__(
        self,
        user_theme_repo: UserThemeRepositoryInterface,
        user_item_repo: UserItemRepositoryInterface,
        theme_sale_repo: ThemeSaleRepositoryInterface,
        user_repo: UserRepositoryInterface,
        uow: UnitOfWorkInterface,
    ) -> None:
        self._user_theme_repo = user_theme_repo
        self._user_item_repo = user_item_repo
        self._theme_sale_repo = theme_sale_repo
        self._user_repo = user_repo
        self._uow = uow

    # 테마 / 아이템 -------------------------------------------------------
    def grant_theme(
        self,
        user_id: str,
        theme_id: str,
        source: OwnershipSource = OwnershipSource.PURCHASE,
        session: ClientSession | None = None,
    ) -> bool:
        """테마 소유권 부여. 이미 소유 중이면 아무것도 하지 않고 False."""
        now = datetime.now(timezone.utc)
        created = self._user_theme_repo.insert_if_absent(
            UserThemeOwnership(
                user_id=user_id,
                theme_id=theme_id,
                active=False,
                source=source,
                purchased_at=now,
                created_at=now,
                updated_at=now,
            ),
            session=session,
        )
        if created:
            logger.info(
                "theme granted user_id=%s theme_id=%s source=%s",
                user_id,
                theme_id,
                source,
                extra={"user_id": user_id},
            )
        return created

    def record_theme_sale(
        self,
        transaction_id: str,
        user_id: str,
        theme_id: str,
        amount: int,
        session: ClientSession | None = None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        return self._theme_sale_repo.upsert(
            ThemeSale(
                transaction_id=transaction_id,
                user_id=user_id,
                theme_id=theme_id,
                amount=amount,
                created_at=now,
                updated_at=now,
            ),
            session=session,
        )

    def grant_item(
        self, user_id: str, item_id: str, session: ClientSession | None = None
    ) -> bool:
        now = datetime.now(timezone.utc)
        created = self._user_item_repo.insert_if_absent(
            UserItemOwnership(
                user_id=user_id,
                item_id=item_id,
                purchased_at=now,
                created_at=now,
                updated_at=now,
            ),
            session=session,
        )
        if created:
            logger.info(
                "store item granted user_id=%s item_id=%s",
                user_id,
                item_id,
                extra={"user_id": user_id},
            )
        return created

    def owns_theme(self, user_id: str, theme_id: str) -> bool:
        return self._user_theme_repo.find(user_id, theme_id) is not None

    def owns_item(self, user_id: str, item_id: str) -> bool:
        return self._user_item_repo.find(user_id, item_id) is not None

    def activate_theme(self, user_id: str, theme_id: str) -> UserThemeOwnership:
        """소유한 테마 하나만 활성화한다. 유저당 활성 행은 항상 최대 1개."""
        def _activate(session: ClientSession | None) -> UserThemeOwnership:
            owned = self._user_theme_repo.find(user_id, theme_id, session=session)
            if owned is None:
                raise NotOwned(f"user {user_id} does not own theme {theme_id}")

            self._user_theme_repo.activate(user_id, theme_id, session=session)
            self._user_repo.set_active_theme(user_id, theme_id, session=session)
            return owned

        owned = self._uow.run(_activate)
        return owned.model_copy(update={"active": True})

    def list_themes(self, user_id: str) -> list[UserThemeOwnership]:
        return self._user_theme_repo.list_by_user(user_id)

    def list_items(self, user_id: str) -> list[UserItemOwnership]:
        return self._user_item_repo.list_by_user(user_id)

    # 프리미엄 -----------------------------------------------------------
    def activate_premium(
        self,
        user_id: str,
        plan_type: PlanType,
        now: datetime | None = None,
        session: ClientSession | None = None,
    ) -> LedgerUser:
        """프리미엄 활성화. 기존 만료 시각에 누적하지 않고 now 기준으로 덮어쓴다."""
        now = now or datetime.now(timezone.utc)
        expires_at = compute_premium_expiry(plan_type, now)
        user = self._user_repo.set_premium(user_id, plan_type, expires_at, session=session)
        if user is None:
            raise UserNotFound(f"user {user_id} not found")

        logger.info(
            "premium activated user_id=%s plan=%s expires_at=%s",
            user_id,
            plan_type,
            expires_at,
            extra={"user_id": user_id},
        )
        return user

    def premium_status(self, user_id: str, now: datetime | None = None) -> PremiumStatus:
        now = now or datetime.now(timezone.utc)
        user = self._user_repo.find(user_id)
        if user is None:
            raise UserNotFound(f"user {user_id} not found")

        active = user.is_premium and (
            user.premium_expires_at is None or user.premium_expires_at > now
        )
        return PremiumStatus(
            user_id=user_id,
            is_premium=active,
            plan=user.premium_plan if active else None,
            expires_at=user.premium_expires_at if active else None,
        )


def get_ownership_service(
    user_theme_repo: UserThemeRepositoryInterface = Depends(get_user_theme_repository),
    user_item_repo: UserItemRepositoryInterface = Depends(get_user_item_repository),
    theme_sale_repo: ThemeSaleRepositoryInterface = Depends(get_theme_sale_repository),
    user_repo: UserRepositoryInterface = Depends(get_user_repository),
    uow: UnitOfWorkInterface = Depends(get_unit_of_work),
) -> OwnershipService:
    """FastAPI DI용 OwnershipService 팩토리."""

    return OwnershipService(
        user_theme_repo=user_theme_repo,
        user_item_repo=user_item_repo,
        theme_sale_repo=theme_sale_repo,
        user_repo=user_repo,
        uow=uow,
    )
