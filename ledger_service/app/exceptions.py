from __future__ import annotations


class LedgerError(Exception):
    """Base exception for all ledger-service errors.

    code 는 API 응답에 그대로 노출되는 안정적인 식별자다.
    """

    code = "ledger_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class InvalidAmount(LedgerError):
    """Amount must be a positive integer."""

    code = "invalid_amount"


class PolicyViolation(LedgerError):
    """Request violates the payment policy (minimums, bounds, UPI id format)."""

    code = "policy_violation"


class InsufficientBalance(LedgerError):
    """Wallet balance is lower than the requested debit."""

    code = "insufficient_balance"

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            f"insufficient balance: available={available} requested={requested}"
        )
        self.available = available
        self.requested = requested


class NotPending(LedgerError):
    """Transaction is no longer pending."""

    code = "not_pending"


class AlreadySettled(NotPending):
    """Transaction was settled by a concurrent request."""

    code = "already_settled"


class ProofAlreadySubmitted(LedgerError):
    """Payment proof was already attached to this transaction."""

    code = "proof_already_submitted"


class AlreadyRewarded(LedgerError):
    """Referral reward was already given."""

    code = "already_rewarded"


class SideEffectFailed(LedgerError):
    """Settlement side effect could not be applied; transaction left pending."""

    code = "side_effect_failed"


class NotOwned(LedgerError):
    """User does not own the requested theme."""

    code = "not_owned"


class NotTransactionOwner(LedgerError):
    """Transaction belongs to another user."""

    code = "not_transaction_owner"


class AdminRequired(LedgerError):
    """Admin capability is required."""

    code = "admin_required"


class GameServiceRequired(LedgerError):
    """Only the game service may award game rewards."""

    code = "game_service_required"


class InvalidTransactionType(LedgerError):
    """Operation is not allowed for this transaction type."""

    code = "invalid_transaction_type"


class InvalidPlan(LedgerError):
    """Unknown premium plan."""

    code = "invalid_plan"


class TransactionNotFound(LedgerError):
    """Transaction not found."""

    code = "transaction_not_found"


class ReferralNotFound(LedgerError):
    """Referral not found."""

    code = "referral_not_found"


class UserNotFound(LedgerError):
    """User not found."""

    code = "user_not_found"


class CatalogItemNotFound(LedgerError):
    """Theme or store item not found or not on sale."""

    code = "catalog_item_not_found"


class CatalogNameTaken(LedgerError):
    """Another theme already uses this name."""

    code = "catalog_name_taken"


class AlreadyOwned(LedgerError):
    """Item is already owned by the user."""

    code = "already_owned"


class SelfReferral(LedgerError):
    """Users cannot refer themselves."""

    code = "self_referral"


class AlreadyReferred(LedgerError):
    """User has already been referred."""

    code = "already_referred"
