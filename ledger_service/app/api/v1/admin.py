"""관리자 승인 API.

모든 엔드포인트는 AdminApprovalService / CatalogService 에서 관리자 권한을 확인한다.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_principal
from ..schemas.admin import (
    AuditLogResponse,
    CatalogStoreItemResponse,
    CatalogThemeResponse,
    LedgerResetResponse,
    ReconcileResponse,
    RejectRequest,
    SettleReferralRequest,
    StoreItemCreateRequest,
    StoreItemUpdateRequest,
    ThemeCreateRequest,
    ThemeUpdateRequest,
    WalletAuditResponse,
)
from ..schemas.common import PaginatedResponse
from ..schemas.referrals import ReferralResponse, ReferralSettlementResponse
from ..schemas.transactions import TransactionResponse
from ...models.principal import Principal
from ...models.transaction import TransactionStatus, TransactionType
from ...services.admin_service import (
    AdminApprovalService,
    get_admin_approval_service,
)
from ...services.catalog_service import CatalogService, get_catalog_service


router = APIRouter()


@router.get(
    "/transactions",
    response_model=PaginatedResponse[TransactionResponse],
    summary="승인 대기열 / 거래 목록",
)
def list_transactions(
    type: TransactionType | None = Query(None, description="거래 타입 필터"),
    status: TransactionStatus | None = Query(
        TransactionStatus.PENDING, description="거래 상태 필터 (기본 pending)"
    ),
    page: int = Query(1, ge=1, description="조회할 페이지 (1부터 시작)"),
    page_size: int = Query(20, ge=1, le=100, description="페이지당 아이템 개수 (1~100)"),
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> PaginatedResponse[TransactionResponse]:
    items, total = service.pending_queue(principal, type, status, page, page_size)
    return PaginatedResponse(
        items=[TransactionResponse.from_domain(tx) for tx in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/transactions/{transaction_id}/approve",
    response_model=TransactionResponse,
    summary="거래 승인",
)
def approve_transaction(
    transaction_id: str,
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> TransactionResponse:
    return TransactionResponse.from_domain(service.approve(transaction_id, principal))


@router.post(
    "/transactions/{transaction_id}/reject",
    response_model=TransactionResponse,
    summary="거래 거절",
)
def reject_transaction(
    transaction_id: str,
    body: RejectRequest | None = None,
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> TransactionResponse:
    reason = body.reason if body else None
    tx = service.reject(transaction_id, principal, reason=reason)
    return TransactionResponse.from_domain(tx)


@router.post(
    "/transactions/{transaction_id}/reconcile",
    response_model=ReconcileResponse,
    summary="완료된 스토어 결제의 소유권/판매 기록 복구",
)
def reconcile_transaction(
    transaction_id: str,
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> ReconcileResponse:
    return ReconcileResponse.from_result(service.reconcile(transaction_id, principal))


@router.get(
    "/referrals",
    response_model=PaginatedResponse[ReferralResponse],
    summary="전체 추천 목록",
)
def list_referrals(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> PaginatedResponse[ReferralResponse]:
    items, total = service.list_referrals(principal, page, page_size)
    return PaginatedResponse(
        items=[ReferralResponse.from_domain(referral) for referral in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/referrals/{referee_id}/settle",
    response_model=ReferralSettlementResponse,
    summary="추천 보상 정산",
)
def settle_referral(
    referee_id: str,
    body: SettleReferralRequest | None = None,
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> ReferralSettlementResponse:
    reward_type = body.reward_type if body else None
    result = service.settle_referral(referee_id, principal, reward_type=reward_type)
    return ReferralSettlementResponse.from_domain(result)


@router.get(
    "/wallets/{user_id}/audit",
    response_model=WalletAuditResponse,
    summary="지갑 잔액과 거래 기록 대조",
)
def audit_wallet(
    user_id: str,
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> WalletAuditResponse:
    return WalletAuditResponse.from_domain(service.wallet_audit(user_id, principal))


@router.get(
    "/audit-logs",
    response_model=PaginatedResponse[AuditLogResponse],
    summary="감사 로그",
)
def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> PaginatedResponse[AuditLogResponse]:
    items, total = service.audit_logs(principal, page, page_size)
    return PaginatedResponse(
        items=[AuditLogResponse.from_domain(entry) for entry in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/ledger/reset",
    response_model=LedgerResetResponse,
    summary="원장 초기화 (거래/추천/판매 기록 삭제, 지갑 0)",
)
def reset_ledger(
    principal: Principal = Depends(get_principal),
    service: AdminApprovalService = Depends(get_admin_approval_service),
) -> LedgerResetResponse:
    return LedgerResetResponse.from_result(service.reset_ledger(principal))


@router.post(
    "/themes",
    response_model=CatalogThemeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="테마 등록",
)
def create_theme(
    body: ThemeCreateRequest,
    principal: Principal = Depends(get_principal),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogThemeResponse:
    theme = catalog.create_theme(principal, body.name, body.price)
    return CatalogThemeResponse.from_domain(theme)


@router.patch(
    "/themes/{theme_id}",
    response_model=CatalogThemeResponse,
    summary="테마 수정",
)
def update_theme(
    theme_id: str,
    body: ThemeUpdateRequest,
    principal: Principal = Depends(get_principal),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogThemeResponse:
    theme = catalog.update_theme(
        principal, theme_id, name=body.name, price=body.price, is_active=body.is_active
    )
    return CatalogThemeResponse.from_domain(theme)


@router.delete(
    "/themes/{theme_id}",
    response_model=CatalogThemeResponse,
    summary="테마 판매 중지 (삭제하지 않고 비활성화)",
)
def deactivate_theme(
    theme_id: str,
    principal: Principal = Depends(get_principal),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogThemeResponse:
    return CatalogThemeResponse.from_domain(catalog.deactivate_theme(principal, theme_id))


@router.post(
    "/store/items",
    response_model=CatalogStoreItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="스토어 아이템 등록",
)
def create_store_item(
    body: StoreItemCreateRequest,
    principal: Principal = Depends(get_principal),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogStoreItemResponse:
    item = catalog.create_store_item(principal, body.name, body.price, body.category)
    return CatalogStoreItemResponse.from_domain(item)


@router.patch(
    "/store/items/{item_id}",
    response_model=CatalogStoreItemResponse,
    summary="스토어 아이템 수정",
)
def update_store_item(
    item_id: str,
    body: StoreItemUpdateRequest,
    principal: Principal = Depends(get_principal),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogStoreItemResponse:
    item = catalog.update_store_item(
        principal,
        item_id,
        name=body.name,
        price=body.price,
        category=body.category,
        is_active=body.is_active,
    )
    return CatalogStoreItemResponse.from_domain(item)


@router.delete(
    "/store/items/{item_id}",
    response_model=CatalogStoreItemResponse,
    summary="스토어 아이템 판매 중지",
)
def deactivate_store_item(
    item_id: str,
    principal: Principal = Depends(get_principal),
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogStoreItemResponse:
    return CatalogStoreItemResponse.from_domain(
        catalog.deactivate_store_item(principal, item_id)
    )
