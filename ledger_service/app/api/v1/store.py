from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_principal
from ..schemas.purchases import OwnedItemResponse, StoreItemResponse
from ..schemas.transactions import PaymentInstructionResponse
from ...models.principal import Principal
from ...services.ownership_service import OwnershipService, get_ownership_service
from ...services.purchase_service import PurchaseService, get_purchase_service


router = APIRouter()


@router.get("/items", response_model=list[StoreItemResponse], summary="스토어 아이템 목록")
def list_items(
    category: str | None = Query(None, description="카테고리 필터"),
    service: PurchaseService = Depends(get_purchase_service),
) -> list[StoreItemResponse]:
    return [StoreItemResponse.from_domain(item) for item in service.list_store_items(category)]


@router.get(
    "/items/owned",
    response_model=list[OwnedItemResponse],
    summary="내 스토어 아이템 목록",
)
def list_owned_items(
    principal: Principal = Depends(get_principal),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> list[OwnedItemResponse]:
    return [
        OwnedItemResponse.from_domain(owned)
        for owned in ownership.list_items(principal.user_id)
    ]


@router.post(
    "/items/{item_id}/purchase",
    response_model=PaymentInstructionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="스토어 아이템 구매 개시",
)
def purchase_item(
    item_id: str,
    principal: Principal = Depends(get_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> PaymentInstructionResponse:
    instruction = service.purchase_store_item(principal.user_id, item_id)
    return PaymentInstructionResponse.from_domain(instruction)
