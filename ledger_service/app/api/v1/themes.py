from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_principal
from ..schemas.purchases import OwnedThemeResponse, ThemeResponse
from ..schemas.transactions import PaymentInstructionResponse
from ...models.principal import Principal
from ...services.ownership_service import OwnershipService, get_ownership_service
from ...services.purchase_service import PurchaseService, get_purchase_service


router = APIRouter()


@router.get("", response_model=list[ThemeResponse], summary="판매 중인 테마 목록")
def list_themes(
    service: PurchaseService = Depends(get_purchase_service),
) -> list[ThemeResponse]:
    return [ThemeResponse.from_domain(theme) for theme in service.list_themes()]


@router.get("/owned", response_model=list[OwnedThemeResponse], summary="내 테마 목록")
def list_owned_themes(
    principal: Principal = Depends(get_principal),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> list[OwnedThemeResponse]:
    return [
        OwnedThemeResponse.from_domain(owned)
        for owned in ownership.list_themes(principal.user_id)
    ]


@router.post(
    "/{theme_id}/purchase",
    response_model=PaymentInstructionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="테마 구매 개시",
)
def purchase_theme(
    theme_id: str,
    principal: Principal = Depends(get_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> PaymentInstructionResponse:
    instruction = service.purchase_theme(principal.user_id, theme_id)
    return PaymentInstructionResponse.from_domain(instruction)


@router.post(
    "/{theme_id}/activate",
    response_model=OwnedThemeResponse,
    summary="소유한 테마 적용",
)
def activate_theme(
    theme_id: str,
    principal: Principal = Depends(get_principal),
    ownership: OwnershipService = Depends(get_ownership_service),
) -> OwnedThemeResponse:
    return OwnedThemeResponse.from_domain(
        ownership.activate_theme(principal.user_id, theme_id)
    )
