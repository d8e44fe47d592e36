from fastapi import APIRouter

from .admin import router as admin_router
from .games import router as games_router
from .premium import router as premium_router
from .referrals import router as referrals_router
from .store import router as store_router
from .themes import router as themes_router
from .transactions import router as transactions_router
from .users import router as users_router
from .wallet import router as wallet_router

api_router = APIRouter()
api_router.include_router(users_router, prefix="/users", tags=["users"])
api_router.include_router(wallet_router, prefix="/wallet", tags=["wallet"])
api_router.include_router(
    transactions_router, prefix="/transactions", tags=["transactions"]
)
api_router.include_router(premium_router, prefix="/premium", tags=["premium"])
api_router.include_router(themes_router, prefix="/themes", tags=["themes"])
api_router.include_router(store_router, prefix="/store", tags=["store"])
api_router.include_router(referrals_router, prefix="/referrals", tags=["referrals"])
api_router.include_router(games_router, prefix="/games", tags=["games"])
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])
