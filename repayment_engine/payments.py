"""
Payment Submission Handler

Validates a payment request against the current reconciliation of a loan and,
when it is accepted, returns the ledger with the new record appended. The
handler never writes anything itself; persisting the returned ledger (with a
version check) is the caller's job.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union
import logging
import uuid

from .dates import utc_now
from .errors import LedgerInconsistency, RejectionReason, SubmissionRejected
from .ledger import materialize_slot, merge_schedule
from .reconciliation import reconcile
from .records import (
    InstallmentLedger, InstallmentSlot, Ledger, OpenPaymentLedger, OpenPaymentRecord,
    SinglePaymentLedger, SinglePaymentRecord, SlotStatus, ledger_to_dict
)
from .terms import Installment, LoanTerms, OpenPayment, SinglePayment


logger = logging.getLogger("repayment.payments")


@dataclass(frozen=True)
class PaymentRequest:
    """A proof-backed payment submitted against one loan"""
    proof_ref: Optional[str]
    amount: Optional[int] = None
    slot_number: Optional[int] = None       # Installment plans only
    note: Optional[str] = None
    expected_version: Optional[int] = None  # Ledger version the caller last saw


PaymentRecord = Union[InstallmentSlot, OpenPaymentRecord, SinglePaymentRecord]


@dataclass(frozen=True)
class SubmissionResult:
    """Structured outcome of a payment submission"""
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    ledger: Optional[Ledger] = None
    record: Optional[PaymentRecord] = None

    @classmethod
    def accept(cls, ledger: Ledger, record: PaymentRecord) -> 'SubmissionResult':
        return cls(accepted=True, ledger=ledger, record=record)

    @classmethod
    def reject(cls, reason: RejectionReason, message: Optional[str] = None) -> 'SubmissionResult':
        return cls(accepted=False, reason=reason, message=message or reason.default_message)

    def raise_for_rejection(self) -> 'SubmissionResult':
        """Raise SubmissionRejected if the submission was rejected"""
        if not self.accepted:
            raise SubmissionRejected(self.reason, self.message)
        return self

    def to_dict(self) -> Dict[str, Any]:
        if not self.accepted:
            return {
                'accepted': False,
                'reason': self.reason.value,
                'message': self.message,
            }
        return {
            'accepted': True,
            'ledgerVersion': self.ledger.version,
            'updatedLedger': ledger_to_dict(self.ledger),
        }


def submit_payment(
    terms: LoanTerms,
    ledger: Ledger,
    request: PaymentRequest,
    now: Optional[datetime] = None
) -> SubmissionResult:
    """
    Validate a payment and append it to a ledger snapshot

    Args:
        terms: Loan terms
        ledger: Current ledger snapshot
        request: Payment request
        now: Timestamp recorded on the new record (defaults to current UTC time)

    Returns:
        SubmissionResult carrying either the updated ledger or the rejection reason

    Raises:
        LedgerInconsistency: If the snapshot itself is inconsistent
    """
    if now is None:
        now = utc_now()

    if request.expected_version is not None and request.expected_version != ledger.version:
        return SubmissionResult.reject(
            RejectionReason.STALE_LEDGER,
            f"Ledger is at version {ledger.version}, request was based on version {request.expected_version}"
        )

    # Reconciling first surfaces any inconsistency before validation
    view = reconcile(terms, ledger, as_of=now.date())

    plan = terms.plan
    if isinstance(plan, SinglePayment):
        result = _submit_single(terms, ledger, request, now)
    elif isinstance(plan, Installment):
        result = _submit_installment(terms, ledger, request, now)
    elif isinstance(plan, OpenPayment):
        result = _submit_open(ledger, request, now, view.remaining_balance)
    else:
        raise LedgerInconsistency(f"Unsupported repayment plan: {plan!r}")

    if result.accepted:
        logger.info(f"Accepted payment, ledger now at version {result.ledger.version}")
    else:
        logger.info(f"Rejected payment: {result.reason.value}")
    return result


def _submit_single(
    terms: LoanTerms,
    ledger: SinglePaymentLedger,
    request: PaymentRequest,
    now: datetime
) -> SubmissionResult:
    if ledger.record is not None and ledger.record.is_paid:
        return SubmissionResult.reject(RejectionReason.ALREADY_PAID)

    if request.amount != terms.principal or isinstance(request.amount, bool):
        return SubmissionResult.reject(
            RejectionReason.AMOUNT_MISMATCH,
            f"Single payment must be exactly {terms.principal}, got {request.amount}"
        )

    record = SinglePaymentRecord(
        amount=terms.principal,
        timestamp=now,
        proof_ref=request.proof_ref,
        status=SlotStatus.PAID
    )
    return SubmissionResult.accept(ledger.with_record(record), record)


def _submit_installment(
    terms: LoanTerms,
    ledger: InstallmentLedger,
    request: PaymentRequest,
    now: datetime
) -> SubmissionResult:
    number = request.slot_number
    if isinstance(number, bool) or not isinstance(number, int):
        return SubmissionResult.reject(
            RejectionReason.INVALID_SLOT, "An installment number is required"
        )

    slot = merge_schedule(terms, ledger).slot(number)
    if slot is None:
        return SubmissionResult.reject(
            RejectionReason.INVALID_SLOT,
            f"Installment {number} is outside 1..{terms.plan.count}"
        )

    if slot.is_paid:
        return SubmissionResult.reject(RejectionReason.SLOT_ALREADY_PAID)

    # Installment amounts are fixed once scheduled; only the proof is attached
    if request.amount is not None and request.amount != slot.amount:
        return SubmissionResult.reject(
            RejectionReason.AMOUNT_MISMATCH,
            f"Installment {number} is due for {slot.amount}, got {request.amount}"
        )

    paid_slot = materialize_slot(slot, request.proof_ref, now)
    return SubmissionResult.accept(ledger.with_slot(paid_slot), paid_slot)


def _submit_open(
    ledger: OpenPaymentLedger,
    request: PaymentRequest,
    now: datetime,
    outstanding: int
) -> SubmissionResult:
    amount = request.amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        return SubmissionResult.reject(RejectionReason.INVALID_AMOUNT)

    if amount > outstanding:
        return SubmissionResult.reject(
            RejectionReason.AMOUNT_EXCEEDS_OUTSTANDING,
            f"Payment of {amount} exceeds outstanding balance of {outstanding}"
        )

    record = OpenPaymentRecord(
        id=str(uuid.uuid4()),
        amount=amount,
        timestamp=now,
        running_balance_after=outstanding - amount,
        proof_ref=request.proof_ref,
        note=request.note
    )
    return SubmissionResult.accept(ledger.with_payment(record), record)
