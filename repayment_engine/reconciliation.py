"""
Reconciliation Engine

Computes the point-in-time repayment view of a loan from its terms and its
payment ledger: total paid, remaining balance, completion percentage,
overdue state and the plan-specific detail. Stateless and side-effect free.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple, Union
import logging

from .currency import completion_percentage, sum_amounts
from .dates import utc_today
from .errors import LedgerInconsistency
from .ledger import merge_schedule
from .records import (
    InstallmentLedger, InstallmentSlot, Ledger, OpenPaymentLedger, OpenPaymentRecord,
    SinglePaymentLedger, SinglePaymentRecord, SlotStatus
)
from .schedule import overdue_slots
from .terms import Installment, LoanTerms, OpenPayment, SinglePayment, plan_code


logger = logging.getLogger("repayment.reconciliation")


@dataclass(frozen=True)
class InstallmentDetail:
    slots: Tuple[InstallmentSlot, ...]
    overdue_numbers: Tuple[int, ...] = ()

    def to_dict(self, as_of: date) -> Dict[str, Any]:
        return {
            'installments': [
                dict(slot.to_dict(), isOverdue=slot.is_overdue(as_of))
                for slot in self.slots
            ],
            'overdueInstallments': list(self.overdue_numbers),
        }


@dataclass(frozen=True)
class OpenPaymentDetail:
    payments: Tuple[OpenPaymentRecord, ...]

    def to_dict(self, as_of: date) -> Dict[str, Any]:
        return {'payments': [record.to_dict() for record in self.payments]}


@dataclass(frozen=True)
class SinglePaymentDetail:
    status: SlotStatus
    record: Optional[SinglePaymentRecord] = None

    def to_dict(self, as_of: date) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'payment': self.record.to_dict() if self.record else None,
        }


ReconciliationDetail = Union[InstallmentDetail, OpenPaymentDetail, SinglePaymentDetail]


@dataclass(frozen=True)
class ReconciledView:
    """Derived repayment state of one loan. Never persisted."""
    plan: str
    principal: int
    total_paid: int
    remaining_balance: int
    completion_percentage: int
    detail: ReconciliationDetail
    as_of: date
    ledger_version: int = 0
    payment_count: int = 0
    last_payment_at: Optional[datetime] = None
    next_due_date: Optional[date] = None
    overdue_amount: int = 0
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_completed(self) -> bool:
        return self.remaining_balance == 0 and self.total_paid > 0

    @property
    def is_overdue(self) -> bool:
        return self.overdue_amount > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'plan': self.plan,
            'principal': self.principal,
            'totalPaid': self.total_paid,
            'remainingBalance': self.remaining_balance,
            'completionPercentage': self.completion_percentage,
            'isCompleted': self.is_completed,
            'paymentCount': self.payment_count,
            'lastPaymentAt': self.last_payment_at.isoformat() if self.last_payment_at else None,
            'nextDueDate': self.next_due_date.isoformat() if self.next_due_date else None,
            'overdueAmount': self.overdue_amount,
            'ledgerVersion': self.ledger_version,
            'asOf': self.as_of.isoformat(),
            'warnings': list(self.warnings),
            'detail': self.detail.to_dict(self.as_of),
        }


def reconcile(terms: LoanTerms, ledger: Ledger, as_of: Optional[date] = None) -> ReconciledView:
    """
    Reconcile a loan's terms against its payment ledger

    Args:
        terms: Loan terms
        ledger: Ledger variant matching the repayment plan
        as_of: Date used for overdue checks (defaults to today, UTC)

    Returns:
        ReconciledView

    Raises:
        LedgerInconsistency: If the ledger does not match the plan or breaks an invariant
    """
    if as_of is None:
        as_of = utc_today()

    plan = terms.plan
    if isinstance(plan, SinglePayment):
        view = _reconcile_single(terms, _expect(ledger, SinglePaymentLedger, plan), as_of)
    elif isinstance(plan, Installment):
        view = _reconcile_installments(terms, _expect(ledger, InstallmentLedger, plan), as_of)
    elif isinstance(plan, OpenPayment):
        view = _reconcile_open(terms, _expect(ledger, OpenPaymentLedger, plan), as_of)
    else:
        raise LedgerInconsistency(f"Unsupported repayment plan: {plan!r}")

    logger.debug(
        f"Reconciled {view.plan} loan: paid={view.total_paid} "
        f"remaining={view.remaining_balance} ({view.completion_percentage}%)"
    )
    return view


def _expect(ledger: Ledger, ledger_type: type, plan) -> Any:
    if not isinstance(ledger, ledger_type):
        raise LedgerInconsistency(
            f"{type(ledger).__name__} cannot be reconciled against a {plan_code(plan)} plan"
        )
    return ledger


def _reconcile_single(terms: LoanTerms, ledger: SinglePaymentLedger, as_of: date) -> ReconciledView:
    record = ledger.record
    if record is not None and record.amount != terms.principal:
        raise LedgerInconsistency(
            f"Single payment of {record.amount} does not equal principal {terms.principal}"
        )

    paid = record is not None and record.is_paid
    total_paid = terms.principal if paid else 0
    remaining = terms.principal - total_paid

    overdue = not paid and terms.due_date is not None and terms.due_date < as_of

    return ReconciledView(
        plan=plan_code(terms.plan),
        principal=terms.principal,
        total_paid=total_paid,
        remaining_balance=remaining,
        completion_percentage=completion_percentage(total_paid, remaining),
        detail=SinglePaymentDetail(
            status=SlotStatus.PAID if paid else SlotStatus.UNPAID,
            record=record
        ),
        as_of=as_of,
        ledger_version=ledger.version,
        payment_count=1 if paid else 0,
        last_payment_at=record.timestamp if paid else None,
        next_due_date=None if paid else terms.due_date,
        overdue_amount=remaining if overdue else 0
    )


def _reconcile_installments(terms: LoanTerms, ledger: InstallmentLedger, as_of: date) -> ReconciledView:
    merged = merge_schedule(terms, ledger)

    paid_slots = [slot for slot in merged.slots if slot.is_paid]
    unpaid_slots = [slot for slot in merged.slots if not slot.is_paid]
    overdue = overdue_slots(merged.slots, as_of)

    total_paid = sum_amounts(slot.amount for slot in paid_slots)
    remaining = sum_amounts(slot.amount for slot in unpaid_slots)

    paid_times = [slot.paid_at for slot in paid_slots if slot.paid_at]

    return ReconciledView(
        plan=plan_code(terms.plan),
        principal=terms.principal,
        total_paid=total_paid,
        remaining_balance=remaining,
        completion_percentage=completion_percentage(total_paid, remaining),
        detail=InstallmentDetail(
            slots=merged.slots,
            overdue_numbers=tuple(slot.number for slot in overdue)
        ),
        as_of=as_of,
        ledger_version=ledger.version,
        payment_count=len(paid_slots),
        last_payment_at=max(paid_times) if paid_times else None,
        next_due_date=min((slot.due_date for slot in unpaid_slots), default=None),
        overdue_amount=sum_amounts(slot.amount for slot in overdue),
        warnings=merged.warnings
    )


def _reconcile_open(terms: LoanTerms, ledger: OpenPaymentLedger, as_of: date) -> ReconciledView:
    total_paid = 0
    for position, record in enumerate(ledger.payments, start=1):
        if isinstance(record.amount, bool) or not isinstance(record.amount, int) or record.amount <= 0:
            raise LedgerInconsistency(f"Open payment #{position} has invalid amount {record.amount!r}")
        total_paid += record.amount
        if record.running_balance_after != terms.principal - total_paid:
            raise LedgerInconsistency(
                f"Open payment #{position} records a balance of {record.running_balance_after}, "
                f"expected {terms.principal - total_paid}"
            )

    remaining = terms.principal - total_paid
    warnings = ()
    if remaining < 0:
        message = f"Open payments exceed principal by {-remaining}"
        logger.warning(message)
        warnings = (message,)
        remaining = 0

    overdue = remaining > 0 and terms.due_date is not None and terms.due_date < as_of

    return ReconciledView(
        plan=plan_code(terms.plan),
        principal=terms.principal,
        total_paid=total_paid,
        remaining_balance=remaining,
        completion_percentage=completion_percentage(total_paid, remaining),
        detail=OpenPaymentDetail(payments=ledger.payments),
        as_of=as_of,
        ledger_version=ledger.version,
        payment_count=len(ledger.payments),
        last_payment_at=ledger.payments[-1].timestamp if ledger.payments else None,
        next_due_date=terms.due_date if remaining > 0 else None,
        overdue_amount=remaining if overdue else 0,
        warnings=warnings
    )
