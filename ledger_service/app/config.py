from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from .models.referral import RewardType
from .models.transaction import PlanType


DEFAULT_CONFIG_FILE_NAME = "config.yaml"

UPI_ID_ENV = "SPELINX_UPI_ID"
MERCHANT_NAME_ENV = "SPELINX_MERCHANT_NAME"
MONGO_TRANSACTIONS_ENV = "LEDGER_MONGO_TRANSACTIONS"
PENDING_TTL_HOURS_ENV = "LEDGER_PENDING_TTL_HOURS"


@dataclass(slots=True)
class PaymentConfig:
    merchant_name: str = "SPELINX Gaming"
    upi_id: str = "merchant@fam"
    min_deposit: int = 10
    min_withdrawal: int = 100
    max_withdrawal: int = 10000


@dataclass(slots=True)
class PremiumPlanConfig:
    plan: PlanType
    name: str
    price: int


DEFAULT_PREMIUM_PLANS: dict[PlanType, tuple[str, int]] = {
    PlanType.DAILY: ("Daily Trial", 50),
    PlanType.WEEKLY: ("Weekly Pro", 200),
    PlanType.MONTHLY: ("Monthly Elite", 499),
    PlanType.QUARTERLY: ("Quarterly Master", 1200),
    PlanType.SEMI_ANNUAL: ("Semi-Annual Legend", 2200),
    PlanType.YEARLY: ("Yearly Champion", 3999),
    PlanType.LIFETIME: ("Lifetime Immortal", 10000),
}


def _default_plans() -> dict[PlanType, PremiumPlanConfig]:
    return {
        plan: PremiumPlanConfig(plan=plan, name=name, price=price)
        for plan, (name, price) in DEFAULT_PREMIUM_PLANS.items()
    }


@dataclass(slots=True)
class ReferralConfig:
    reward_per_referral: int = 100
    bonus_credits: int = 50
    theme_unlock_after: int = 5
    reward_type: RewardType = RewardType.CREDITS
    bonus_theme_name: str = "Gold Theme"
    code_prefix: str = "SPELINX"
    reward_on_first_deposit: bool = False


@dataclass(slots=True)
class GamesConfig:
    """게임 보상 정책.

    - max_reward_per_award: 한 번에 지급할 수 있는 기본 보상 상한 (배수 적용 전).
    - premium_multiplier: 프리미엄 활성 유저에게 곱하는 배수.
    """

    max_reward_per_award: int = 1000
    premium_multiplier: int = 2


@dataclass(slots=True)
class LedgerConfig:
    """원장 동작 설정.

    - pending_ttl_hours: 0 이면 pending 거래 자동 만료를 끈다.
    - use_transactions: MongoDB 멀티 도큐먼트 트랜잭션 사용 여부 (replica set 필요).
    """

    pending_ttl_hours: int = 0
    expiry_sweep_interval_minutes: int = 15
    use_transactions: bool = True


@dataclass(slots=True)
class AppConfig:
    """ledger-service 전체 설정 루트."""

    payment: PaymentConfig = field(default_factory=PaymentConfig)
    premium_plans: dict[PlanType, PremiumPlanConfig] = field(
        default_factory=_default_plans
    )
    referral: ReferralConfig = field(default_factory=ReferralConfig)
    games: GamesConfig = field(default_factory=GamesConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)


def _find_config_path() -> Path:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다."""

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate

    raise RuntimeError(
        f"{DEFAULT_CONFIG_FILE_NAME} not found. Place config.yaml in project root.",
    )


def _get_int(
    section: dict[str, Any],
    key: str,
    default: int,
    path: Path,
    *,
    prefix: str,
    minimum: int = 0,
) -> int:
    raw_value = section.get(key, default)
    if isinstance(raw_value, bool):
        raise RuntimeError(f"invalid {prefix}.{key} in {path}: {raw_value!r}")
    try:
        value = int(raw_value)
    except (TypeError, ValueError) as exc:  # noqa: TRY003
        raise RuntimeError(
            f"invalid {prefix}.{key} in {path}: {raw_value!r}",
        ) from exc
    if value < minimum:
        raise RuntimeError(f"{prefix}.{key} must be >= {minimum} in {path}: {value}")
    return value


def _parse_bool(raw_value: Any, name: str) -> bool:
    if isinstance(raw_value, bool):
        return raw_value
    normalized = str(raw_value).strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise RuntimeError(f"{name} must be a boolean value, got: {raw_value!r}")


def _load_payment(data: dict[str, Any], path: Path) -> PaymentConfig:
    section = data.get("payment") or {}
    defaults = PaymentConfig()
    payment = PaymentConfig(
        merchant_name=str(section.get("merchant_name") or defaults.merchant_name),
        upi_id=str(section.get("upi_id") or defaults.upi_id),
        min_deposit=_get_int(
            section, "min_deposit", defaults.min_deposit, path, prefix="payment", minimum=1
        ),
        min_withdrawal=_get_int(
            section,
            "min_withdrawal",
            defaults.min_withdrawal,
            path,
            prefix="payment",
            minimum=1,
        ),
        max_withdrawal=_get_int(
            section,
            "max_withdrawal",
            defaults.max_withdrawal,
            path,
            prefix="payment",
            minimum=1,
        ),
    )
    if payment.max_withdrawal < payment.min_withdrawal:
        raise RuntimeError(
            f"payment.max_withdrawal must be >= payment.min_withdrawal in {path}",
        )

    # 배포 환경 값은 환경 변수가 우선한다.
    upi_id = os.getenv(UPI_ID_ENV, "").strip()
    if upi_id:
        payment.upi_id = upi_id
    merchant_name = os.getenv(MERCHANT_NAME_ENV, "").strip()
    if merchant_name:
        payment.merchant_name = merchant_name
    return payment


def _load_premium_plans(
    data: dict[str, Any], path: Path
) -> dict[PlanType, PremiumPlanConfig]:
    section = (data.get("premium") or {}).get("plans")
    if not section:
        return _default_plans()
    if not isinstance(section, dict):
        raise RuntimeError(f"premium.plans must be a mapping in {path}")

    plans: dict[PlanType, PremiumPlanConfig] = {}
    for raw_plan, item in section.items():
        try:
            plan = PlanType(str(raw_plan))
        except ValueError as exc:
            raise RuntimeError(f"unknown premium plan {raw_plan!r} in {path}") from exc
        if not isinstance(item, dict):
            raise RuntimeError(f"premium.plans.{raw_plan} must be a mapping in {path}")
        plans[plan] = PremiumPlanConfig(
            plan=plan,
            name=str(item.get("name") or plan.value),
            price=_get_int(
                item, "price", 0, path, prefix=f"premium.plans.{raw_plan}", minimum=1
            ),
        )
    return plans


def _load_referral(data: dict[str, Any], path: Path) -> ReferralConfig:
    section = data.get("referral") or {}
    defaults = ReferralConfig()
    raw_reward_type = section.get("reward_type", defaults.reward_type.value)
    try:
        reward_type = RewardType(str(raw_reward_type))
    except ValueError as exc:
        raise RuntimeError(
            f"invalid referral.reward_type in {path}: {raw_reward_type!r}",
        ) from exc

    return ReferralConfig(
        reward_per_referral=_get_int(
            section,
            "reward_per_referral",
            defaults.reward_per_referral,
            path,
            prefix="referral",
        ),
        bonus_credits=_get_int(
            section, "bonus_credits", defaults.bonus_credits, path, prefix="referral"
        ),
        theme_unlock_after=_get_int(
            section,
            "theme_unlock_after",
            defaults.theme_unlock_after,
            path,
            prefix="referral",
            minimum=1,
        ),
        reward_type=reward_type,
        bonus_theme_name=str(
            section.get("bonus_theme_name") or defaults.bonus_theme_name
        ),
        code_prefix=str(section.get("code_prefix") or defaults.code_prefix),
        reward_on_first_deposit=_parse_bool(
            section.get("reward_on_first_deposit", False),
            "referral.reward_on_first_deposit",
        ),
    )


def _load_games(data: dict[str, Any], path: Path) -> GamesConfig:
    section = data.get("games") or {}
    defaults = GamesConfig()
    return GamesConfig(
        max_reward_per_award=_get_int(
            section,
            "max_reward_per_award",
            defaults.max_reward_per_award,
            path,
            prefix="games",
            minimum=1,
        ),
        premium_multiplier=_get_int(
            section,
            "premium_multiplier",
            defaults.premium_multiplier,
            path,
            prefix="games",
            minimum=1,
        ),
    )


def _load_ledger(data: dict[str, Any], path: Path) -> LedgerConfig:
    section = data.get("ledger") or {}
    defaults = LedgerConfig()
    ledger = LedgerConfig(
        pending_ttl_hours=_get_int(
            section,
            "pending_ttl_hours",
            defaults.pending_ttl_hours,
            path,
            prefix="ledger",
        ),
        expiry_sweep_interval_minutes=_get_int(
            section,
            "expiry_sweep_interval_minutes",
            defaults.expiry_sweep_interval_minutes,
            path,
            prefix="ledger",
            minimum=1,
        ),
        use_transactions=_parse_bool(
            section.get("use_transactions", defaults.use_transactions),
            "ledger.use_transactions",
        ),
    )

    raw_transactions = os.getenv(MONGO_TRANSACTIONS_ENV, "").strip()
    if raw_transactions:
        ledger.use_transactions = _parse_bool(raw_transactions, MONGO_TRANSACTIONS_ENV)

    raw_ttl = os.getenv(PENDING_TTL_HOURS_ENV, "").strip()
    if raw_ttl:
        try:
            ttl = int(raw_ttl)
        except ValueError as exc:  # noqa: TRY003
            raise RuntimeError(
                f"{PENDING_TTL_HOURS_ENV} must be an integer value, got: {raw_ttl!r}"
            ) from exc
        if ttl < 0:
            raise RuntimeError(f"{PENDING_TTL_HOURS_ENV} must be >= 0, got: {ttl}")
        ledger.pending_ttl_hours = ttl
    return ledger


def load_config(path: Path | None = None) -> AppConfig:
    """ledger-service 설정을 로드하여 AppConfig 로 반환한다."""

    config_path = path or _find_config_path()
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise RuntimeError(f"{config_path} must contain a mapping at the top level")

    return AppConfig(
        payment=_load_payment(data, config_path),
        premium_plans=_load_premium_plans(data, config_path),
        referral=_load_referral(data, config_path),
        games=_load_games(data, config_path),
        ledger=_load_ledger(data, config_path),
    )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """프로세스 전역 설정 (FastAPI DI 용)."""

    return load_config()
