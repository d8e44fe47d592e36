from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    OptionalMongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.referral import Referral, ReferralStatus, RewardType


class ReferralDocument(BaseDocument):
    """MongoDB referrals 컬렉션 도큐먼트 모델."""

    referrer_id: str
    referee_id: str
    status: ReferralStatus = ReferralStatus.PENDING
    reward_given: bool = False
    reward_type: RewardType = RewardType.CREDITS
    rewarded_at: OptionalMongoDateTime = None

    @classmethod
    def from_domain(cls, referral: Referral) -> "ReferralDocument":
        return cls.model_validate(build_document_data_from_domain(referral))

    def to_domain(self) -> Referral:
        return Referral(
            id=from_object_id(self.id),
            referrer_id=self.referrer_id,
            referee_id=self.referee_id,
            status=self.status,
            reward_given=self.reward_given,
            reward_type=self.reward_type,
            rewarded_at=self.rewarded_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
