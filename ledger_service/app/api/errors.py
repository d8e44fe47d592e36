"""원장 예외 -> HTTP 응답 매핑."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import (
    AdminRequired,
    AlreadyOwned,
    AlreadyReferred,
    AlreadyRewarded,
    CatalogItemNotFound,
    CatalogNameTaken,
    GameServiceRequired,
    InsufficientBalance,
    InvalidAmount,
    InvalidPlan,
    InvalidTransactionType,
    LedgerError,
    NotOwned,
    NotPending,
    NotTransactionOwner,
    PolicyViolation,
    ProofAlreadySubmitted,
    ReferralNotFound,
    SelfReferral,
    SideEffectFailed,
    TransactionNotFound,
    UserNotFound,
)


logger = logging.getLogger(__name__)


# 서브클래스는 MRO 를 따라 가장 가까운 항목을 쓴다 (AlreadySettled -> NotPending).
STATUS_BY_ERROR: dict[type[LedgerError], int] = {
    InvalidAmount: status.HTTP_400_BAD_REQUEST,
    PolicyViolation: status.HTTP_400_BAD_REQUEST,
    InvalidTransactionType: status.HTTP_400_BAD_REQUEST,
    InvalidPlan: status.HTTP_400_BAD_REQUEST,
    SelfReferral: status.HTTP_400_BAD_REQUEST,
    InsufficientBalance: status.HTTP_402_PAYMENT_REQUIRED,
    NotOwned: status.HTTP_403_FORBIDDEN,
    NotTransactionOwner: status.HTTP_403_FORBIDDEN,
    AdminRequired: status.HTTP_403_FORBIDDEN,
    GameServiceRequired: status.HTTP_403_FORBIDDEN,
    TransactionNotFound: status.HTTP_404_NOT_FOUND,
    ReferralNotFound: status.HTTP_404_NOT_FOUND,
    CatalogItemNotFound: status.HTTP_404_NOT_FOUND,
    UserNotFound: status.HTTP_404_NOT_FOUND,
    NotPending: status.HTTP_409_CONFLICT,
    ProofAlreadySubmitted: status.HTTP_409_CONFLICT,
    AlreadyRewarded: status.HTTP_409_CONFLICT,
    AlreadyOwned: status.HTTP_409_CONFLICT,
    AlreadyReferred: status.HTTP_409_CONFLICT,
    CatalogNameTaken: status.HTTP_409_CONFLICT,
    SideEffectFailed: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def status_for(exc: LedgerError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ledger_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, LedgerError)
    status_code = status_for(exc)
    if status_code >= 500 or isinstance(exc, SideEffectFailed):
        logger.error(
            "ledger error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
            extra={"path": request.url.path, "status": status_code},
        )
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "message": exc.message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
