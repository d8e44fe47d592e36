from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_principal
from ..schemas.games import GameRewardRequest
from ..schemas.transactions import TransactionResponse
from ...models.principal import Principal
from ...services.purchase_service import PurchaseService, get_purchase_service


router = APIRouter()


@router.post(
    "/rewards",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="게임 보상 지급 (게임 서비스 전용, 즉시 완료)",
)
def award_game_reward(
    body: GameRewardRequest,
    principal: Principal = Depends(get_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> TransactionResponse:
    tx = service.award_game_reward(
        principal,
        body.user_id,
        body.amount,
        body.game,
        idempotency_key=body.idempotency_key,
    )
    return TransactionResponse.from_domain(tx)
