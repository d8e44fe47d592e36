from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import get_principal
from ..schemas.transactions import AttachProofRequest, TransactionResponse
from ...exceptions import NotTransactionOwner
from ...models.principal import Principal
from ...services.ledger_service import LedgerService, get_ledger_service


router = APIRouter()


@router.get("/{transaction_id}", response_model=TransactionResponse, summary="거래 조회")
def get_transaction(
    transaction_id: str,
    principal: Principal = Depends(get_principal),
    ledger: LedgerService = Depends(get_ledger_service),
) -> TransactionResponse:
    tx = ledger.get(transaction_id)
    if tx.user_id != principal.user_id and not principal.is_admin:
        raise NotTransactionOwner(f"transaction {transaction_id} belongs to another user")
    return TransactionResponse.from_domain(tx)


@router.post(
    "/{transaction_id}/proof",
    response_model=TransactionResponse,
    summary="결제 증빙 첨부 (거래당 1회)",
)
def attach_proof(
    transaction_id: str,
    body: AttachProofRequest,
    principal: Principal = Depends(get_principal),
    ledger: LedgerService = Depends(get_ledger_service),
) -> TransactionResponse:
    tx = ledger.attach_proof(transaction_id, principal.user_id, body.proof_ref)
    return TransactionResponse.from_domain(tx)
