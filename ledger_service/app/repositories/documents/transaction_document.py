"""거래 MongoDB 도큐먼트."""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    OptionalMongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.transaction import (
    ItemType,
    PlanType,
    Transaction,
    TransactionStatus,
    TransactionType,
)


class TransactionDocument(BaseDocument):
    """MongoDB transactions 컬렉션 도큐먼트 모델."""

    user_id: str
    type: TransactionType
    amount: int
    status: TransactionStatus
    description: str = ""
    reference: str | None = None
    # 없는 필드는 sparse 유니크 인덱스에서 제외된다. None 으로 저장하지 않도록 주의.
    idempotency_key: str | None = None
    plan_type: PlanType | None = None
    item_type: ItemType | None = None
    item_id: str | None = None
    payout_upi_id: str | None = None
    proof_ref: str | None = None
    proof_submitted_at: OptionalMongoDateTime = None
    verified: bool = False
    verified_at: OptionalMongoDateTime = None
    verified_by: str | None = None
    failure_reason: str | None = None

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionDocument":
        data = build_document_data_from_domain(tx)
        return cls.model_validate(data)

    def to_mongo_record(self) -> dict:
        record = super().to_mongo_record()
        if record.get("idempotency_key") is None:
            record.pop("idempotency_key", None)
        return record

    def to_domain(self) -> Transaction:
        return Transaction(
            id=from_object_id(self.id),
            user_id=self.user_id,
            type=self.type,
            amount=self.amount,
            status=self.status,
            description=self.description,
            reference=self.reference,
            idempotency_key=self.idempotency_key,
            plan_type=self.plan_type,
            item_type=self.item_type,
            item_id=self.item_id,
            payout_upi_id=self.payout_upi_id,
            proof_ref=self.proof_ref,
            proof_submitted_at=self.proof_submitted_at,
            verified=self.verified,
            verified_at=self.verified_at,
            verified_by=self.verified_by,
            failure_reason=self.failure_reason,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
