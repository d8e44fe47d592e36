from __future__ import annotations

import pytest

from ledger_service.app.exceptions import AdminRequired
from ledger_service.app.models.audit import AuditAction
from ledger_service.app.models.principal import Principal
from ledger_service.app.models.transaction import TransactionStatus, TransactionType
from ledger_service.tests.fakes import THEME_BLUE, LedgerFixture


USER = "user-000001"
ADMIN = Principal(user_id="admin-1", is_admin=True)
PLAYER = Principal(user_id=USER)


def test_every_operation_requires_admin(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    tx_id = str(tx.id)

    calls = [
        lambda: fx.admin.approve(tx_id, PLAYER),
        lambda: fx.admin.reject(tx_id, PLAYER),
        lambda: fx.admin.reconcile(tx_id, PLAYER),
        lambda: fx.admin.pending_queue(PLAYER),
        lambda: fx.admin.settle_referral("user-000002", PLAYER),
        lambda: fx.admin.list_referrals(PLAYER),
        lambda: fx.admin.wallet_audit(USER, PLAYER),
        lambda: fx.admin.audit_logs(PLAYER),
        lambda: fx.admin.reset_ledger(PLAYER),
    ]
    for call in calls:
        with pytest.raises(AdminRequired):
            call()

    assert fx.transactions.transactions[tx_id].status == TransactionStatus.PENDING
    assert fx.audit_logs.entries == []


def test_pending_queue_filters(fx: LedgerFixture) -> None:
    fx.purchase.initiate_deposit(USER, 100)
    fx.purchase.purchase_theme(USER, THEME_BLUE.id)
    fx.deposit(USER, 200)

    pending, total = fx.admin.pending_queue(ADMIN)
    deposits, deposit_total = fx.admin.pending_queue(ADMIN, TransactionType.DEPOSIT)
    everything, all_total = fx.admin.pending_queue(ADMIN, status=None)

    assert total == 2
    assert all(tx.status == TransactionStatus.PENDING for tx in pending)
    assert deposit_total == 1 and deposits[0].amount == 100
    assert all_total == 3 and len(everything) == 3


def test_approve_and_reject_are_audited(fx: LedgerFixture) -> None:
    first = fx.purchase.initiate_deposit(USER, 100).transaction
    second = fx.purchase.initiate_deposit(USER, 50).transaction

    fx.admin.approve(str(first.id), ADMIN)
    fx.admin.reject(str(second.id), ADMIN, reason="no payment received")

    logs, total = fx.admin.audit_logs(ADMIN)
    assert total == 2
    assert [entry.action for entry in logs] == [
        AuditAction.TRANSACTION_REJECTED,
        AuditAction.TRANSACTION_APPROVED,
    ]
    assert logs[0].details["reason"] == "no payment received"
    assert all(entry.actor_id == "admin-1" for entry in logs)


def _failing_audit(*args, **kwargs):
    raise RuntimeError("audit_logs write failed")


def test_audit_write_failure_rolls_back_approval(fx: LedgerFixture) -> None:
    tx = fx.purchase.initiate_deposit(USER, 100).transaction
    fx.audit_logs.create = _failing_audit  # type: ignore[method-assign]

    with pytest.raises(RuntimeError):
        fx.admin.approve(str(tx.id), ADMIN)

    assert fx.transactions.transactions[str(tx.id)].status == TransactionStatus.PENDING
    assert fx.wallets.balance(USER) == 0
    assert fx.publisher.published == []


def test_audit_write_failure_rolls_back_reconcile_and_reset(fx: LedgerFixture) -> None:
    tx = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    fx.admin.approve(str(tx.id), ADMIN)
    fx.theme_sales.sales.clear()
    fx.audit_logs.create = _failing_audit  # type: ignore[method-assign]

    with pytest.raises(RuntimeError):
        fx.admin.reconcile(str(tx.id), ADMIN)
    assert fx.theme_sales.sales == {}

    with pytest.raises(RuntimeError):
        fx.admin.reset_ledger(ADMIN)
    assert str(tx.id) in fx.transactions.transactions


def test_settle_referral_through_gateway(fx: LedgerFixture) -> None:
    fx.referral_service.register(USER, "user-000002")

    result = fx.admin.settle_referral("user-000002", ADMIN)
    referrals, total = fx.admin.list_referrals(ADMIN)

    assert result.referral.reward_given is True
    assert total == 1 and referrals[0].reward_given is True


def test_wallet_audit_detects_drift(fx: LedgerFixture) -> None:
    fx.deposit(USER, 100)
    assert fx.admin.wallet_audit(USER, ADMIN).consistent is True

    fx.wallets.wallets[USER].balance += 7

    audit = fx.admin.wallet_audit(USER, ADMIN)
    assert audit.consistent is False
    assert audit.balance - audit.expected_balance == 7


def test_reset_ledger_clears_records_but_keeps_ownership(fx: LedgerFixture) -> None:
    fx.deposit(USER, 500)
    theme_tx = fx.purchase.purchase_theme(USER, THEME_BLUE.id).transaction
    fx.admin.approve(str(theme_tx.id), ADMIN)
    fx.referral_service.register(USER, "user-000002")

    result = fx.admin.reset_ledger(ADMIN)

    assert result.transactions_deleted == 2
    assert result.referrals_deleted == 1
    assert result.theme_sales_deleted == 1
    assert result.wallets_reset == 1
    assert fx.transactions.transactions == {}
    assert fx.wallets.balance(USER) == 0
    assert fx.ownership.owns_theme(USER, THEME_BLUE.id)
    assert fx.audit_logs.actions()[-1] == AuditAction.LEDGER_RESET
    assert fx.admin.wallet_audit(USER, ADMIN).consistent is True
