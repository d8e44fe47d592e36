"""추천 보상 정산 서비스.

정산은 하나의 작업 단위 안에서 아래 단계를 실행하며, 각 단계가 개별적으로 멱등하다.
중간에 실패해 재시도되더라도 두 번 지급되지 않는다.

1. 추천인 보상 크레딧 (idempotency_key = referral:<id>:referrer)
2. 피추천인 보너스 크레딧 (idempotency_key = referral:<id>:referee)
3. 추천인 referral_count / credits 증가 (rewarded_referral_ids 로 1회 보장)
4. 추천 수가 기준에 도달하면 보너스 테마 부여 (멱등)
5. reward_given false -> true 조건부 전환 (경합에서 진 요청은 AlreadyRewarded)
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import Depends
from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError

from common.eventbus.core import EventPublisher
from common.eventbus.helpers import new_json_event
from common.eventbus.topics import TOPIC_REFERRAL
from common.events.ledger import LedgerEventType, ReferralRewardedEvent

from ..config import AppConfig, ReferralConfig
from ..dependencies import (
    get_audit_log_repository,
    get_config,
    get_event_publisher,
    get_referral_repository,
    get_theme_repository,
    get_unit_of_work,
    get_user_repository,
)
from ..exceptions import (
    AlreadyReferred,
    AlreadyRewarded,
    PolicyViolation,
    ReferralNotFound,
    SelfReferral,
    UserNotFound,
)
from ..models.audit import AuditAction, AuditLog
from ..models.ownership import OwnershipSource
from ..models.referral import (
    LeaderboardEntry,
    LeaderboardSort,
    Referral,
    ReferralSettlement,
    ReferralStats,
    ReferralStatus,
    RewardType,
)
from ..models.transaction import TransactionType
from ..repositories.interfaces import (
    AuditLogRepositoryInterface,
    ReferralRepositoryInterface,
    ThemeRepositoryInterface,
    UnitOfWorkInterface,
    UserRepositoryInterface,
)
from .ledger_service import EVENT_SOURCE, LedgerService, get_ledger_service
from .ownership_service import OwnershipService, get_ownership_service


logger = logging.getLogger(__name__)


def referral_reward_key(referral_id: str, role: str) -> str:
    return f"referral:{referral_id}:{role}"


class ReferralService:
    def __init__(
        self,
        referral_repo: ReferralRepositoryInterface,
        user_repo: UserRepositoryInterface,
        ledger: LedgerService,
        ownership: OwnershipService,
        theme_repo: ThemeRepositoryInterface,
        audit_repo: AuditLogRepositoryInterface,
        uow: UnitOfWorkInterface,
        publisher: EventPublisher,
        config: ReferralConfig,
    ) -> None:
        self._referral_repo = referral_repo
        self._user_repo = user_repo
        self._ledger = ledger
        self._ownership = ownership
        self._theme_repo = theme_repo
        self._audit_repo = audit_repo
        self._uow = uow
        self._publisher = publisher
        self._config = config

    # 등록 -----------------------------------------------------------------
    def register(self, referrer_id: str, referee_id: str) -> Referral:
        if referrer_id == referee_id:
            raise SelfReferral(f"user {referee_id} cannot refer themselves")
        if self._user_repo.find(referrer_id) is None:
            raise UserNotFound(f"referrer {referrer_id} not found")
        if self._referral_repo.find_by_referee(referee_id) is not None:
            raise AlreadyReferred(f"user {referee_id} has already been referred")

        now = datetime.now(timezone.utc)
        try:
            referral = self._referral_repo.insert(
                Referral(
                    referrer_id=referrer_id,
                    referee_id=referee_id,
                    reward_type=self._config.reward_type,
                    created_at=now,
                    updated_at=now,
                )
            )
        except DuplicateKeyError as exc:
            raise AlreadyReferred(f"user {referee_id} has already been referred") from exc

        logger.info(
            "referral registered id=%s referrer=%s referee=%s",
            referral.id,
            referrer_id,
            referee_id,
            extra={"referral_id": referral.id, "user_id": referee_id},
        )
        return referral

    def register_by_code(self, referral_code: str, referee_id: str) -> Referral:
        code = referral_code.strip().upper()
        referrer = self._user_repo.find_by_referral_code(code)
        if referrer is None:
            raise ReferralNotFound(f"referral code {code!r} not found")
        return self.register(referrer.user_id, referee_id)

    def record_signup_referral(
        self, referral_code: str | None, referee_id: str
    ) -> Referral | None:
        """가입 흐름용 래퍼. 추천 등록 실패가 가입을 막지 않도록 로그만 남긴다."""
        if not referral_code:
            return None
        try:
            return self.register_by_code(referral_code, referee_id)
        except Exception:  # noqa: BLE001
            logger.exception(
                "failed to record signup referral code=%s referee=%s",
                referral_code,
                referee_id,
                extra={"user_id": referee_id},
            )
            return None

    # 정산 -----------------------------------------------------------------
    def settle(
        self,
        referee_id: str,
        actor_id: str,
        reward_type: RewardType | None = None,
    ) -> ReferralSettlement:
        cfg = self._config

        def _settle(session: ClientSession | None) -> ReferralSettlement:
            referral = self._referral_repo.find_by_referee(referee_id, session=session)
            if referral is None:
                raise ReferralNotFound(f"no referral found for user {referee_id}")
            if referral.reward_given:
                raise AlreadyRewarded(f"referral {referral.id} was already rewarded")
            assert referral.id is not None

            effective_type = reward_type or referral.reward_type
            referrer_reward = (
                0 if effective_type == RewardType.THEME else cfg.reward_per_referral
            )
            referee_bonus = cfg.bonus_credits

            for user_id in (referral.referrer_id, referral.referee_id):
                if self._user_repo.find(user_id, session=session) is None:
                    raise UserNotFound(f"user {user_id} not found")

            if referrer_reward > 0:
                self._ledger.record_completed_credit(
                    referral.referrer_id,
                    TransactionType.REFERRAL_REWARD,
                    referrer_reward,
                    referral_reward_key(referral.id, "referrer"),
                    description=f"Referral reward for inviting {referee_id}",
                    session=session,
                )
            if referee_bonus > 0:
                self._ledger.record_completed_credit(
                    referral.referee_id,
                    TransactionType.REFERRAL_REWARD,
                    referee_bonus,
                    referral_reward_key(referral.id, "referee"),
                    description="Referral signup bonus",
                    session=session,
                )

            referrer, _ = self._user_repo.apply_referral_reward(
                referral.referrer_id,
                referral.id,
                credits=referrer_reward,
                count_increment=1,
                session=session,
            )
            self._user_repo.apply_referral_reward(
                referral.referee_id,
                referral.id,
                credits=referee_bonus,
                count_increment=0,
                session=session,
            )
            assert referrer is not None

            theme_unlocked = False
            if referrer.referral_count >= cfg.theme_unlock_after:
                theme_unlocked = self._grant_bonus_theme(referral.referrer_id, session)

            completed = self._referral_repo.mark_rewarded(
                referral.id, effective_type, datetime.now(timezone.utc), session=session
            )
            if completed is None:
                raise AlreadyRewarded(f"referral {referral.id} was already rewarded")

            self._audit_repo.create(
                AuditLog(
                    actor_id=actor_id,
                    action=AuditAction.REFERRAL_REWARDED,
                    details={
                        "referral_id": referral.id,
                        "referrer_id": referral.referrer_id,
                        "referee_id": referral.referee_id,
                        "referrer_reward": referrer_reward,
                        "referee_bonus": referee_bonus,
                        "theme_unlocked": theme_unlocked,
                    },
                    created_at=datetime.now(timezone.utc),
                    updated_at=datetime.now(timezone.utc),
                ),
                session=session,
            )
            return ReferralSettlement(
                referral=completed,
                referrer_reward=referrer_reward,
                referee_bonus=referee_bonus,
                referral_count=referrer.referral_count,
                theme_unlocked=theme_unlocked,
            )

        result = self._uow.run(_settle)
        referral = result.referral
        logger.info(
            "referral rewarded id=%s referrer=%s count=%d theme_unlocked=%s",
            referral.id,
            referral.referrer_id,
            result.referral_count,
            result.theme_unlocked,
            extra={"referral_id": referral.id, "user_id": referral.referrer_id},
        )
        self._publish_rewarded(result)
        return result

    def _grant_bonus_theme(self, referrer_id: str, session: ClientSession | None) -> bool:
        theme = self._theme_repo.find_by_name(self._config.bonus_theme_name, session=session)
        if theme is None:
            logger.warning(
                "bonus theme %r not found, skipping unlock for referrer=%s",
                self._config.bonus_theme_name,
                referrer_id,
                extra={"user_id": referrer_id},
            )
            return False
        return self._ownership.grant_theme(
            referrer_id, theme.id, OwnershipSource.REFERRAL_BONUS, session=session
        )

    def settle_on_first_deposit(self, user_id: str) -> ReferralSettlement | None:
        """첫 입금 완료 시 추천 보상 정책. 보상할 추천이 없거나 이미 보상됐으면 None."""
        if self._ledger.count_completed_deposits(user_id) == 0:
            return None
        try:
            return self.settle(user_id, actor_id="system:first-deposit")
        except (AlreadyRewarded, ReferralNotFound):
            return None

    # 조회 -----------------------------------------------------------------
    def list_for_referrer(self, referrer_id: str) -> list[Referral]:
        return self._referral_repo.list_by_referrer(referrer_id)

    def list_all(self, page: int = 1, page_size: int = 20) -> tuple[list[Referral], int]:
        return self._referral_repo.list(page, page_size)

    def stats(self, user_id: str) -> ReferralStats:
        """추천인 집계.

        total_earned 는 크레딧 보상으로 정산된 추천 수에 현재 reward_per_referral 을 곱한 값이다.
        테마 보상으로 정산된 추천은 크레딧을 받지 않았으므로 제외한다.
        """
        referrals = self._referral_repo.list_by_referrer(user_id)
        completed = [r for r in referrals if r.status == ReferralStatus.COMPLETED]
        credited = sum(1 for r in completed if r.reward_type == RewardType.CREDITS)
        return ReferralStats(
            user_id=user_id,
            total_referrals=len(referrals),
            completed_referrals=len(completed),
            total_earned=credited * self._config.reward_per_referral,
        )

    def leaderboard(
        self,
        sort_by: LeaderboardSort | str = LeaderboardSort.REFERRAL_COUNT,
        limit: int = 10,
    ) -> list[LeaderboardEntry]:
        try:
            order = LeaderboardSort(sort_by)
        except ValueError as exc:
            raise PolicyViolation(f"unknown leaderboard sort {sort_by!r}") from exc
        if limit < 1:
            raise PolicyViolation("leaderboard limit must be positive")

        users = self._user_repo.list_top_referrers(order, limit)
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=user.user_id,
                username=user.username,
                referral_count=user.referral_count,
                credits=user.credits,
                is_premium=user.is_premium,
            )
            for rank, user in enumerate(users, start=1)
        ]

    def _publish_rewarded(self, result: ReferralSettlement) -> None:
        referral = result.referral
        event = ReferralRewardedEvent(
            id=str(uuid.uuid4()),
            type=LedgerEventType.REFERRAL_REWARDED,
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=EVENT_SOURCE,
            version="1.0",
            referral_id=str(referral.id),
            referrer_id=referral.referrer_id,
            referee_id=referral.referee_id,
            referrer_reward=result.referrer_reward,
            referee_bonus=result.referee_bonus,
            referral_count=result.referral_count,
            theme_unlocked=result.theme_unlocked,
        )
        try:
            self._publisher.publish(TOPIC_REFERRAL.base, new_json_event(event))
        except Exception:  # noqa: BLE001
            logger.exception(
                "failed to publish referral.rewarded id=%s",
                referral.id,
                extra={"referral_id": referral.id},
            )


def get_referral_service(
    referral_repo: ReferralRepositoryInterface = Depends(get_referral_repository),
    user_repo: UserRepositoryInterface = Depends(get_user_repository),
    ledger: LedgerService = Depends(get_ledger_service),
    ownership: OwnershipService = Depends(get_ownership_service),
    theme_repo: ThemeRepositoryInterface = Depends(get_theme_repository),
    audit_repo: AuditLogRepositoryInterface = Depends(get_audit_log_repository),
    uow: UnitOfWorkInterface = Depends(get_unit_of_work),
    publisher: EventPublisher = Depends(get_event_publisher),
    config: AppConfig = Depends(get_config),
) -> ReferralService:
    """FastAPI DI용 ReferralService 팩토리."""

    return ReferralService(
        referral_repo=referral_repo,
        user_repo=user_repo,
        ledger=ledger,
        ownership=ownership,
        theme_repo=theme_repo,
        audit_repo=audit_repo,
        uow=uow,
        publisher=publisher,
        config=config.referral,
    )
