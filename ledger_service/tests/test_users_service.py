from __future__ import annotations

from ledger_service.app.services.users_service import generate_referral_code
from ledger_service.tests.fakes import LedgerFixture, build_fixture


def test_generate_referral_code() -> None:
    assert generate_referral_code("64fa0c9e1b2c3d4e5fab12cd") == "SPELINXAB12CD"
    assert generate_referral_code("abc", prefix="inx") == "INXABC"


def test_register_with_referral_code() -> None:
    fx = build_fixture()
    referrer, _ = fx.users_service.register("user-aaaaaa", "alice")

    user, referral = fx.users_service.register(
        "user-bbbbbb", "bob", referral_code=referrer.referral_code
    )

    assert user.referral_code == "SPELINXBBBBBB"
    assert referral is not None
    assert referral.referrer_id == "user-aaaaaa"


def test_register_with_bad_code_still_succeeds() -> None:
    fx = build_fixture()

    user, referral = fx.users_service.register("user-cccccc", "carol", referral_code="NOPE")

    assert user.user_id == "user-cccccc"
    assert referral is None


def test_reregister_keeps_code_and_skips_referral(fx: LedgerFixture) -> None:
    before = fx.users.users["user-000001"].referral_code

    user, referral = fx.users_service.register("user-000001", "renamed", referral_code="X")

    assert user.username == "renamed"
    assert user.referral_code == before
    assert referral is None


def test_colliding_codes_get_suffix() -> None:
    fx = build_fixture()
    first, _ = fx.users_service.register("a-123456", "a")
    second, _ = fx.users_service.register("b-123456", "b")

    assert first.referral_code == "SPELINX123456"
    assert second.referral_code is not None
    assert second.referral_code.startswith("SPELINX123456")
    assert second.referral_code != first.referral_code
