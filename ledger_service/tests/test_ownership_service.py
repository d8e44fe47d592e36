from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ledger_service.app.exceptions import NotOwned, UserNotFound
from ledger_service.app.models.ownership import OwnershipSource
from ledger_service.app.models.transaction import PlanType
from ledger_service.app.services.ownership_service import add_months, compute_premium_expiry
from ledger_service.tests.fakes import FIXED_NOW, THEME_BLUE, THEME_GOLD, LedgerFixture


USER = "user-000001"


@pytest.mark.parametrize(
    ("start", "months", "expected"),
    [
        (datetime(2025, 1, 31, tzinfo=timezone.utc), 1, datetime(2025, 2, 28, tzinfo=timezone.utc)),
        (datetime(2024, 1, 31, tzinfo=timezone.utc), 1, datetime(2024, 2, 29, tzinfo=timezone.utc)),
        (datetime(2025, 11, 30, tzinfo=timezone.utc), 3, datetime(2026, 2, 28, tzinfo=timezone.utc)),
        (datetime(2025, 5, 15, tzinfo=timezone.utc), 12, datetime(2026, 5, 15, tzinfo=timezone.utc)),
    ],
)
def test_add_months_clamps_to_month_end(start, months, expected) -> None:
    assert add_months(start, months) == expected


@pytest.mark.parametrize(
    ("plan", "expected"),
    [
        (PlanType.DAILY, FIXED_NOW + timedelta(days=1)),
        (PlanType.WEEKLY, FIXED_NOW + timedelta(days=7)),
        (PlanType.MONTHLY, datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc)),
        (PlanType.QUARTERLY, datetime(2025, 4, 30, 12, 0, tzinfo=timezone.utc)),
        (PlanType.SEMI_ANNUAL, datetime(2025, 7, 31, 12, 0, tzinfo=timezone.utc)),
        (PlanType.YEARLY, datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)),
        (PlanType.LIFETIME, None),
    ],
)
def test_compute_premium_expiry(plan, expected) -> None:
    assert compute_premium_expiry(plan, FIXED_NOW) == expected


def test_grant_theme_twice_leaves_one_row(fx: LedgerFixture) -> None:
    assert fx.ownership.grant_theme(USER, THEME_BLUE.id) is True
    assert fx.ownership.grant_theme(USER, THEME_BLUE.id, OwnershipSource.REFERRAL_BONUS) is False

    rows = fx.ownership.list_themes(USER)
    assert len(rows) == 1
    assert rows[0].source == OwnershipSource.PURCHASE


def test_record_theme_sale_is_keyed(fx: LedgerFixture) -> None:
    assert fx.ownership.record_theme_sale("THEME_1_u_t", USER, THEME_BLUE.id, 149) is True
    assert fx.ownership.record_theme_sale("THEME_1_u_t", USER, THEME_BLUE.id, 149) is False
    assert len(fx.theme_sales.sales) == 1


def test_activate_theme_leaves_exactly_one_active(fx: LedgerFixture) -> None:
    fx.ownership.grant_theme(USER, THEME_BLUE.id)
    fx.ownership.grant_theme(USER, THEME_GOLD.id)

    fx.ownership.activate_theme(USER, THEME_BLUE.id)
    activated = fx.ownership.activate_theme(USER, THEME_GOLD.id)

    active = [row.theme_id for row in fx.ownership.list_themes(USER) if row.active]
    assert active == [THEME_GOLD.id]
    assert activated.active is True
    assert fx.users.users[USER].active_theme_id == THEME_GOLD.id


def test_activate_unowned_theme(fx: LedgerFixture) -> None:
    with pytest.raises(NotOwned):
        fx.ownership.activate_theme(USER, THEME_BLUE.id)


def test_premium_reactivation_overwrites_from_now(fx: LedgerFixture) -> None:
    fx.ownership.activate_premium(USER, PlanType.YEARLY, now=FIXED_NOW)
    later = FIXED_NOW + timedelta(days=10)

    user = fx.ownership.activate_premium(USER, PlanType.WEEKLY, now=later)

    assert user.premium_plan == PlanType.WEEKLY
    assert user.premium_expires_at == later + timedelta(days=7)


def test_premium_status_honours_expiry(fx: LedgerFixture) -> None:
    fx.ownership.activate_premium(USER, PlanType.DAILY, now=FIXED_NOW)

    assert fx.ownership.premium_status(USER, now=FIXED_NOW).is_premium is True
    expired = fx.ownership.premium_status(USER, now=FIXED_NOW + timedelta(days=2))
    assert expired.is_premium is False
    assert expired.plan is None


def test_lifetime_premium_never_expires(fx: LedgerFixture) -> None:
    fx.ownership.activate_premium(USER, PlanType.LIFETIME, now=FIXED_NOW)

    status = fx.ownership.premium_status(USER, now=FIXED_NOW + timedelta(days=3650))
    assert status.is_premium is True
    assert status.expires_at is None


def test_premium_for_unknown_user(fx: LedgerFixture) -> None:
    with pytest.raises(UserNotFound):
        fx.ownership.activate_premium("ghost", PlanType.DAILY)
