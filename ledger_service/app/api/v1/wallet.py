from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_principal
from ..schemas.common import PaginatedResponse
from ..schemas.transactions import PaymentInstructionResponse, TransactionResponse
from ..schemas.wallet import DepositRequest, WalletResponse, WithdrawalRequest
from ...models.principal import Principal
from ...models.transaction import TransactionType
from ...services.ledger_service import LedgerService, get_ledger_service
from ...services.purchase_service import PurchaseService, get_purchase_service
from ...services.wallet_service import WalletService, get_wallet_service


router = APIRouter()


@router.get("", response_model=WalletResponse, summary="내 지갑 조회")
def get_wallet(
    principal: Principal = Depends(get_principal),
    service: WalletService = Depends(get_wallet_service),
) -> WalletResponse:
    return WalletResponse.from_domain(service.get_wallet(principal.user_id))


@router.get(
    "/transactions",
    response_model=PaginatedResponse[TransactionResponse],
    summary="내 거래 내역",
)
def list_my_transactions(
    type: TransactionType | None = Query(None, description="거래 타입 필터"),
    page: int = Query(1, ge=1, description="조회할 페이지 (1부터 시작)"),
    page_size: int = Query(20, ge=1, le=100, description="페이지당 아이템 개수 (1~100)"),
    principal: Principal = Depends(get_principal),
    ledger: LedgerService = Depends(get_ledger_service),
) -> PaginatedResponse[TransactionResponse]:
    items, total = ledger.list_by_user(principal.user_id, type, page, page_size)
    return PaginatedResponse(
        items=[TransactionResponse.from_domain(tx) for tx in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/deposits",
    response_model=PaymentInstructionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="입금 개시 (UPI 결제 안내 반환)",
)
def initiate_deposit(
    body: DepositRequest,
    principal: Principal = Depends(get_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> PaymentInstructionResponse:
    instruction = service.initiate_deposit(principal.user_id, body.amount)
    return PaymentInstructionResponse.from_domain(instruction)


@router.post(
    "/withdrawals",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="출금 요청 (잔액 선차감)",
)
def request_withdrawal(
    body: WithdrawalRequest,
    principal: Principal = Depends(get_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> TransactionResponse:
    tx = service.request_withdrawal(principal.user_id, body.amount, body.upi_id)
    return TransactionResponse.from_domain(tx)
