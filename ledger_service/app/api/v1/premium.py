from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_principal
from ..schemas.purchases import (
    PremiumPlanResponse,
    PremiumPurchaseRequest,
    PremiumStatusResponse,
)
from ..schemas.transactions import PaymentInstructionResponse
from ...models.principal import Principal
from ...services.ownership_service import OwnershipService, get_ownership_service
from ...services.purchase_service import PurchaseService, get_purchase_service


router = APIRouter()


@router.get("/plans", response_model=list[PremiumPlanResponse], summary="프리미엄 플랜 목록")
def list_plans(
    service: PurchaseService = Depends(get_purchase_service),
) -> list[PremiumPlanResponse]:
    return [PremiumPlanResponse.from_config(plan) for plan in service.list_premium_plans()]


@router.get("/status", response_model=PremiumStatusResponse, summary="내 프리미엄 상태")
def get_status(
    principal: Principal = Depends(get_principal),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> PremiumStatusResponse:
    return PremiumStatusResponse.from_domain(ownership.premium_status(principal.user_id))


@router.post(
    "/purchase",
    response_model=PaymentInstructionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="프리미엄 결제 개시",
)
def purchase_premium(
    body: PremiumPurchaseRequest,
    principal: Principal = Depends(get_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> PaymentInstructionResponse:
    instruction = service.initiate_premium(principal.user_id, body.plan_type)
    return PaymentInstructionResponse.from_domain(instruction)
