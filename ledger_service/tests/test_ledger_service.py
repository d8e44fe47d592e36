from __future__ import annotations

from datetime import timedelta

import pytest

from common.eventbus.topics import TOPIC_LEDGER
from common.events.ledger import LedgerEventType
from ledger_service.app.exceptions import (
    AlreadySettled,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransactionType,
    NotPending,
    NotTransactionOwner,
    PolicyViolation,
    ProofAlreadySubmitted,
    SideEffectFailed,
    TransactionNotFound,
)
from ledger_service.app.models.ownership import OwnershipSource
from ledger_service.app.models.transaction import (
    ItemType,
    TransactionIntent,
    TransactionStatus,
    TransactionType,
)
from ledger_service.app.models.principal import Principal
from ledger_service.app.services.ledger_service import EXPIRED_REASON, EXPIRY_ACTOR
from ledger_service.tests.fakes import FIXED_NOW, THEME_BLUE, LedgerFixture


USER = "user-000001"
ADMIN = Principal(user_id="admin-1", is_admin=True)
GAME = Principal(user_id="svc-games", is_game_service=True)


def _assert_wallet_consistent(fx: LedgerFixture, user_id: str = USER) -> None:
    audit = fx.ledger.wallet_audit(user_id)
    assert audit.consistent, audit


def test_deposit_is_credited_only_after_approval(fx: LedgerFixture) -> None:
    instruction = fx.purchase.initiate_deposit(USER, 100)
    tx = instruction.transaction

    assert tx.status == TransactionStatus.PENDING
    assert fx.wallets.balance(USER) == 0

    settled = fx.admin.approve(str(tx.id), ADMIN)

    wallet = fx.wallet_service.get_wallet(USER)
    assert settled.status == TransactionStatus.COMPLETED
    assert settled.verified is True
    assert settled.verified_by == "admin-1"
    assert wallet.balance == 100
    assert wallet.total_deposits == 100
    _assert_wallet_consistent(fx)


def test_settle_twice_applies_side_effect_once(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    fx.ledger.settle(str(tx.id), TransactionStatus.COMPLETED, approver="admin-1")

    with pytest.raises(NotPending):
        fx.ledger.settle(str(tx.id), TransactionStatus.COMPLETED, approver="admin-1")
    with pytest.raises(NotPending):
        fx.ledger.settle(str(tx.id), TransactionStatus.FAILED, approver="admin-1")

    assert fx.wallets.balance(USER) == 100
    assert fx.wallet_service.get_wallet(USER).total_deposits == 100


def test_lost_claim_raises_already_settled_without_side_effect(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    tx_id = str(tx.id)
    real_claim = fx.transactions.claim_pending

    def _racing_claim(*args, **kwargs):
        # 다른 요청이 먼저 정산한 상황을 만든다.
        real_claim(*args, **kwargs)
        return real_claim(*args, **kwargs)

    fx.transactions.claim_pending = _racing_claim  # type: ignore[method-assign]

    with pytest.raises(AlreadySettled):
        fx.ledger.settle(tx_id, TransactionStatus.COMPLETED, approver="admin-2")

    assert fx.wallets.balance(USER) == 0


def test_withdrawal_debits_up_front_and_reject_restores(fx: LedgerFixture) -> None:
    fx.deposit(USER, 150)

    tx = fx.purchase.request_withdrawal(USER, 100, "player@okaxis")
    assert tx.status == TransactionStatus.PENDING
    assert tx.payout_upi_id == "player@okaxis"
    assert fx.wallets.balance(USER) == 50
    _assert_wallet_consistent(fx)

    fx.admin.reject(str(tx.id), ADMIN, reason="upi mismatch")

    assert fx.wallets.balance(USER) == 150
    assert fx.transactions.transactions[str(tx.id)].failure_reason == "upi mismatch"
    _assert_wallet_consistent(fx)

    with pytest.raises(NotPending):
        fx.admin.reject(str(tx.id), ADMIN)
    assert fx.wallets.balance(USER) == 150


def test_withdrawal_approval_only_bumps_counter(fx: LedgerFixture) -> None:
    fx.deposit(USER, 500)
    tx = fx.purchase.request_withdrawal(USER, 200, "player@okaxis")

    fx.admin.approve(str(tx.id), ADMIN)

    wallet = fx.wallet_service.get_wallet(USER)
    assert wallet.balance == 300
    assert wallet.total_withdrawals == 200
    _assert_wallet_consistent(fx)


def test_withdrawal_above_balance_leaves_nothing_behind(fx: LedgerFixture) -> None:
    fx.deposit(USER, 120)

    with pytest.raises(InsufficientBalance) as exc_info:
        fx.purchase.request_withdrawal(USER, 200, "player@okaxis")

    assert exc_info.value.available == 120
    assert exc_info.value.requested == 200
    assert fx.wallets.balance(USER) == 120
    withdrawals, total = fx.ledger.list_by_user(USER, TransactionType.WITHDRAWAL)
    assert withdrawals == [] and total == 0


def test_game_reward_is_self_settling_and_idempotent(fx: LedgerFixture) -> None:
    first = fx.purchase.award_game_reward(GAME, USER, 25, "snake", idempotency_key="run-1")
    second = fx.purchase.award_game_reward(GAME, USER, 25, "snake", idempotency_key="run-1")

    assert first.status == TransactionStatus.COMPLETED
    assert second.id == first.id
    assert fx.wallets.balance(USER) == 25
    settled = fx.publisher.payloads(LedgerEventType.TRANSACTION_SETTLED)
    assert len(settled) == 1
    assert settled[0]["transaction_type"] == "game_reward"
    _assert_wallet_consistent(fx)


def test_initiate_rejects_non_positive_and_bool_amounts(fx: LedgerFixture) -> None:
    for amount in (0, -5, True):
        with pytest.raises(InvalidAmount):
            fx.ledger.initiate(USER, TransactionType.DEPOSIT, amount)  # type: ignore[arg-type]


def test_referral_reward_cannot_be_initiated_directly(fx: LedgerFixture) -> None:
    with pytest.raises(InvalidTransactionType):
        fx.ledger.initiate(USER, TransactionType.REFERRAL_REWARD, 100)


def test_idempotency_key_only_for_self_settling_types(fx: LedgerFixture) -> None:
    with pytest.raises(PolicyViolation):
        fx.ledger.initiate(
            USER,
            TransactionType.DEPOSIT,
            100,
            TransactionIntent(idempotency_key="dup"),
        )


def test_record_completed_credit_is_keyed(fx: LedgerFixture) -> None:
    tx, created = fx.ledger.record_completed_credit(
        USER, TransactionType.REFERRAL_REWARD, 100, "referral:r1:referrer"
    )
    again, created_again = fx.ledger.record_completed_credit(
        USER, TransactionType.REFERRAL_REWARD, 100, "referral:r1:referrer"
    )

    assert created is True
    assert created_again is False
    assert again.id == tx.id
    assert fx.wallets.balance(USER) == 100


def test_theme_purchase_settles_into_ownership_and_sale(fx: LedgerFixture) -> None:
    fx.deposit(USER, 500)

    instruction = fx.purchase.purchase_theme(USER, THEME_BLUE.id)
    tx = instruction.transaction
    assert tx.item_type == ItemType.THEME
    assert tx.item_id == THEME_BLUE.id
    assert fx.wallets.balance(USER) == 500

    fx.admin.approve(str(tx.id), ADMIN)

    owned = fx.user_themes.find(USER, THEME_BLUE.id)
    assert owned is not None and owned.source == OwnershipSource.PURCHASE
    assert list(fx.theme_sales.sales) == [tx.id]
    assert fx.wallets.balance(USER) == 500

    with pytest.raises(NotPending):
        fx.admin.approve(str(tx.id), ADMIN)

    result = fx.admin.reconcile(str(tx.id), ADMIN)
    assert result.ownership_created is False
    assert result.sale_created is False
    assert len(fx.user_themes.rows) == 1
    assert len(fx.theme_sales.sales) == 1


def test_same_millisecond_theme_purchases_keep_separate_sales(fx: LedgerFixture) -> None:
    first = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    second = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    assert first.reference == second.reference

    fx.admin.approve(str(first.id), ADMIN)
    fx.admin.approve(str(second.id), ADMIN)

    assert sorted(fx.theme_sales.sales) == sorted([first.id, second.id])
    assert len(fx.user_themes.rows) == 1


def test_reconcile_repairs_missing_rows(fx: LedgerFixture) -> None:
    tx = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    fx.admin.approve(str(tx.id), ADMIN)
    fx.user_themes.rows.clear()
    fx.theme_sales.sales.clear()

    result = fx.admin.reconcile(str(tx.id), ADMIN)

    assert result.ownership_created is True
    assert result.sale_created is True
    assert fx.ownership.owns_theme(USER, THEME_BLUE.id)


def test_reconcile_requires_completed_store_payment(fx: LedgerFixture) -> None:
    tx = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    with pytest.raises(PolicyViolation):
        fx.admin.reconcile(str(tx.id), ADMIN)

    deposit = fx.deposit(USER, 100)
    with pytest.raises(InvalidTransactionType):
        fx.admin.reconcile(str(deposit.id), ADMIN)


def test_store_item_purchase_grants_item(fx: LedgerFixture) -> None:
    tx = fx.purchase.purchase_store_item(USER, "item-avatar").transaction

    fx.admin.approve(str(tx.id), ADMIN)

    assert fx.ownership.owns_item(USER, "item-avatar")
    assert fx.theme_sales.sales == {}


def test_missing_catalog_entry_keeps_transaction_pending(fx: LedgerFixture) -> None:
    tx = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    del fx.themes.themes[THEME_BLUE.id]

    with pytest.raises(SideEffectFailed):
        fx.admin.approve(str(tx.id), ADMIN)

    assert fx.transactions.transactions[str(tx.id)].status == TransactionStatus.PENDING
    assert fx.user_themes.rows == {}


def test_side_effect_failure_rolls_back_status_claim(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_premium(USER, "monthly").transaction

    def _boom(*args, **kwargs):
        raise RuntimeError("mongo write failed")

    fx.users.set_premium = _boom  # type: ignore[method-assign]

    with pytest.raises(RuntimeError):
        fx.admin.approve(str(tx.id), ADMIN)

    assert fx.transactions.transactions[str(tx.id)].status == TransactionStatus.PENDING
    assert fx.uow.rollbacks == 1


def test_premium_payment_activates_plan(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_premium(USER, "monthly").transaction
    assert tx.plan_type == "monthly"
    assert tx.amount == 499

    fx.admin.approve(str(tx.id), ADMIN)

    status = fx.ownership.premium_status(USER, now=FIXED_NOW)
    assert status.is_premium is True
    assert status.plan == "monthly"
    # 1/31 + 1개월 -> 2/28
    assert status.expires_at == FIXED_NOW.replace(month=2, day=28)


def test_attach_proof_once_by_owner_while_pending(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    tx_id = str(tx.id)

    with pytest.raises(NotTransactionOwner):
        fx.ledger.attach_proof(tx_id, "user-000002", "proofs/abc.png")

    updated = fx.ledger.attach_proof(tx_id, USER, "proofs/abc.png")
    assert updated.proof_ref == "proofs/abc.png"
    assert updated.proof_submitted_at == FIXED_NOW

    with pytest.raises(ProofAlreadySubmitted):
        fx.ledger.attach_proof(tx_id, USER, "proofs/other.png")


def test_attach_proof_rejects_settled_and_unsupported(fx: LedgerFixture) -> None:
    deposit = fx.deposit(USER, 200)
    with pytest.raises(NotPending):
        fx.ledger.attach_proof(str(deposit.id), USER, "proofs/late.png")

    withdrawal = fx.purchase.request_withdrawal(USER, 100, "player@okaxis")
    with pytest.raises(InvalidTransactionType):
        fx.ledger.attach_proof(str(withdrawal.id), USER, "proofs/w.png")


def test_get_unknown_transaction(fx: LedgerFixture) -> None:
    with pytest.raises(TransactionNotFound):
        fx.ledger.get("missing")


def test_expire_pending_fails_old_transactions(fx: LedgerFixture) -> None:
    fx.deposit(USER, 300)
    old_withdrawal = fx.purchase.request_withdrawal(USER, 100, "player@okaxis")
    fx.clock.advance(hours=30)
    fresh_deposit = fx.purchase.initiate_deposit(USER, 50).transaction

    expired = fx.ledger.expire_pending(timedelta(hours=24))

    assert [tx.id for tx in expired] == [old_withdrawal.id]
    assert expired[0].failure_reason == EXPIRED_REASON
    assert expired[0].verified_by == EXPIRY_ACTOR
    assert fx.wallets.balance(USER) == 300
    assert fx.transactions.transactions[str(fresh_deposit.id)].status == (
        TransactionStatus.PENDING
    )


def test_settlement_publishes_after_commit(fx: LedgerFixture) -> None:
    fx.deposit(USER, 100)

    topic, event = fx.publisher.published[-1]
    assert topic == TOPIC_LEDGER.base
    assert event.payload["status"] == "completed"
    assert event.payload["amount"] == 100


def test_publish_failure_does_not_undo_settlement(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    fx.publisher.fail = True

    settled = fx.admin.approve(str(tx.id), ADMIN)

    assert settled.status == TransactionStatus.COMPLETED
    assert fx.wallets.balance(USER) == 100


def test_settle_rejects_pending_outcome(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    with pytest.raises(ValueError):
        fx.ledger.settle(str(tx.id), TransactionStatus.PENDING, approver="admin-1")
