from __future__ import annotations

from pathlib import Path

import pytest

from ledger_service.app import config as config_module
from ledger_service.app.config import load_config
from ledger_service.app.models.referral import RewardType
from ledger_service.app.models.transaction import PlanType


@pytest.fixture(autouse=True)
def clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        config_module.UPI_ID_ENV,
        config_module.MERCHANT_NAME_ENV,
        config_module.MONGO_TRANSACTIONS_ENV,
        config_module.PENDING_TTL_HOURS_ENV,
    ):
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    cfg = load_config(_write(tmp_path, ""))

    assert cfg.payment.min_deposit == 10
    assert cfg.payment.min_withdrawal == 100
    assert cfg.payment.max_withdrawal == 10000
    assert cfg.premium_plans[PlanType.LIFETIME].price == 10000
    assert cfg.referral.reward_per_referral == 100
    assert cfg.referral.theme_unlock_after == 5
    assert cfg.ledger.pending_ttl_hours == 0
    assert cfg.ledger.use_transactions is True
    assert cfg.games.max_reward_per_award == 1000
    assert cfg.games.premium_multiplier == 2


def test_repository_config_file_loads() -> None:
    root = Path(__file__).resolve().parents[2]

    cfg = load_config(root / "config.yaml")

    assert cfg.premium_plans[PlanType.SEMI_ANNUAL].name == "Semi-Annual Legend"
    assert cfg.referral.bonus_theme_name == "Gold Theme"


def test_sections_are_parsed(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
payment:
  upi_id: "shop@okicici"
  min_deposit: 20
premium:
  plans:
    monthly: { name: "Monthly", price: 300 }
referral:
  reward_type: theme
  reward_on_first_deposit: "yes"
ledger:
  pending_ttl_hours: 72
  use_transactions: false
games:
  max_reward_per_award: 250
  premium_multiplier: 3
""",
    )

    cfg = load_config(path)

    assert cfg.payment.upi_id == "shop@okicici"
    assert cfg.payment.min_deposit == 20
    assert list(cfg.premium_plans) == [PlanType.MONTHLY]
    assert cfg.referral.reward_type == RewardType.THEME
    assert cfg.referral.reward_on_first_deposit is True
    assert cfg.ledger.pending_ttl_hours == 72
    assert cfg.ledger.use_transactions is False
    assert cfg.games.max_reward_per_award == 250
    assert cfg.games.premium_multiplier == 3


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(config_module.UPI_ID_ENV, "prod@ybl")
    monkeypatch.setenv(config_module.MERCHANT_NAME_ENV, "SPELINX Prod")
    monkeypatch.setenv(config_module.MONGO_TRANSACTIONS_ENV, "false")
    monkeypatch.setenv(config_module.PENDING_TTL_HOURS_ENV, "12")

    cfg = load_config(_write(tmp_path, "payment:\n  upi_id: file@fam\n"))

    assert cfg.payment.upi_id == "prod@ybl"
    assert cfg.payment.merchant_name == "SPELINX Prod"
    assert cfg.ledger.use_transactions is False
    assert cfg.ledger.pending_ttl_hours == 12


@pytest.mark.parametrize(
    "body",
    [
        "payment:\n  min_deposit: ten\n",
        "payment:\n  min_deposit: true\n",
        "payment:\n  min_withdrawal: 500\n  max_withdrawal: 100\n",
        "premium:\n  plans:\n    fortnightly: { name: x, price: 10 }\n",
        "premium:\n  plans:\n    daily: { name: x, price: 0 }\n",
        "referral:\n  reward_type: cash\n",
        "referral:\n  theme_unlock_after: 0\n",
        "ledger:\n  use_transactions: maybe\n",
        "games:\n  max_reward_per_award: 0\n",
        "games:\n  premium_multiplier: 0\n",
        "- just\n- a list\n",
    ],
)
def test_invalid_values_raise(tmp_path: Path, body: str) -> None:
    with pytest.raises(RuntimeError):
        load_config(_write(tmp_path, body))


def test_invalid_ttl_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(config_module.PENDING_TTL_HOURS_ENV, "-1")

    with pytest.raises(RuntimeError):
        load_config(_write(tmp_path, ""))


def test_config_is_found_by_walking_up(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path, "payment:\n  min_deposit: 15\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert load_config().payment.min_deposit == 15
