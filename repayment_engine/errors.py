"""
Error Taxonomy

Exceptions raised by the repayment engine and the structured rejection reasons
returned by the payment submission handler.
"""

from enum import Enum
from typing import Optional


class RejectionReason(Enum):
    """Recoverable reasons a payment submission can be refused"""
    ALREADY_PAID = "already_paid"
    AMOUNT_MISMATCH = "amount_mismatch"
    INVALID_SLOT = "invalid_slot"
    SLOT_ALREADY_PAID = "slot_already_paid"
    AMOUNT_EXCEEDS_OUTSTANDING = "amount_exceeds_outstanding"
    INVALID_AMOUNT = "invalid_amount"
    STALE_LEDGER = "stale_ledger"
    PROOF_MISSING = "proof_missing"

    @property
    def default_message(self) -> str:
        return _DEFAULT_MESSAGES[self]


_DEFAULT_MESSAGES = {
    RejectionReason.ALREADY_PAID: "This loan has already been paid in full",
    RejectionReason.AMOUNT_MISMATCH: "Payment amount does not match the amount due",
    RejectionReason.INVALID_SLOT: "Installment number is not part of this loan's schedule",
    RejectionReason.SLOT_ALREADY_PAID: "This installment has already been paid",
    RejectionReason.AMOUNT_EXCEEDS_OUTSTANDING: "Payment amount exceeds the outstanding balance",
    RejectionReason.INVALID_AMOUNT: "Payment amount must be a positive whole number",
    RejectionReason.STALE_LEDGER: "The ledger changed since it was read; reload and try again",
    RejectionReason.PROOF_MISSING: "A proof of payment is required",
}


class RepaymentError(Exception):
    """Base exception for all repayment engine errors."""


class InvalidLoanTerms(RepaymentError, ValueError):
    """Raised when loan terms are malformed or missing required fields."""


class LedgerInconsistency(RepaymentError):
    """Raised when a persisted ledger violates an invariant the engine relies on."""

    def __init__(self, message: str, report_id: Optional[str] = None):
        super().__init__(message)
        self.report_id = report_id


class SubmissionRejected(RepaymentError):
    """Raised on request when a payment submission was rejected."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None):
        super().__init__(message or reason.default_message)
        self.reason = reason


class ReportNotFound(RepaymentError, KeyError):
    """Raised when no loan terms are registered for a report."""

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return str(self.args[0]) if self.args else ""
