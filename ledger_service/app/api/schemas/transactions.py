from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import OptionalUtcDateTime, UtcDateTime

from ...models.transaction import (
    ItemType,
    PlanType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ...services.payment_instruction import PaymentInstruction


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    type: TransactionType
    amount: int
    status: TransactionStatus
    description: str
    reference: str | None = None
    plan_type: PlanType | None = None
    item_type: ItemType | None = None
    item_id: str | None = None
    payout_upi_id: str | None = None
    proof_ref: str | None = None
    proof_submitted_at: OptionalUtcDateTime = None
    verified: bool
    verified_at: OptionalUtcDateTime = None
    verified_by: str | None = None
    failure_reason: str | None = None
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionResponse":
        data = tx.model_dump(exclude={"idempotency_key"})
        data["id"] = str(tx.id)
        return cls.model_validate(data)


class PaymentInstructionResponse(BaseModel):
    """pending 거래와 UPI 결제 안내."""

    transaction: TransactionResponse
    upi_link: str
    payee_upi_id: str
    merchant_name: str
    amount: int
    note: str

    @classmethod
    def from_domain(cls, instruction: PaymentInstruction) -> "PaymentInstructionResponse":
        return cls(
            transaction=TransactionResponse.from_domain(instruction.transaction),
            upi_link=instruction.upi_link,
            payee_upi_id=instruction.payee_upi_id,
            merchant_name=instruction.merchant_name,
            amount=instruction.amount,
            note=instruction.note,
        )


class AttachProofRequest(BaseModel):
    """결제 증빙 첨부 요청. proof_ref 는 업로드 서비스가 돌려준 불투명 참조값이다."""

    proof_ref: str = Field(min_length=1, max_length=1024)
