"""
Ledger Merger

Combines the generated installment schedule with the slots materialised in a
loan's ledger. This is the only place schedules and recorded payments are
merged; reconciliation, payment submission and the schedule endpoint all go
through it.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from .errors import LedgerInconsistency
from .records import InstallmentLedger, InstallmentSlot, SlotStatus
from .schedule import generate_schedule
from .terms import LoanTerms


logger = logging.getLogger("repayment.ledger")


@dataclass(frozen=True)
class MergedSchedule:
    """Authoritative per-installment state of a loan"""
    slots: Tuple[InstallmentSlot, ...]
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def slot(self, number: int) -> Optional[InstallmentSlot]:
        if 1 <= number <= len(self.slots):
            return self.slots[number - 1]
        return None


def merge_schedule(terms: LoanTerms, ledger: InstallmentLedger) -> MergedSchedule:
    """
    Merge generated slots with persisted overrides

    A persisted slot wins over the generated one for amount, status and due
    date. Persisted slots are never regenerated, even when they no longer add
    up to the principal; that case is reported as a warning.

    Args:
        terms: Loan terms with an Installment plan
        ledger: Persisted installment ledger

    Returns:
        MergedSchedule with exactly `count` slots numbered 1..count

    Raises:
        LedgerInconsistency: If an override references a slot outside 1..count
            or is stored under a different number than its own
    """
    skeleton = generate_schedule(terms)
    count = len(skeleton)

    for number, override in ledger.slots.items():
        if not 1 <= number <= count:
            raise LedgerInconsistency(
                f"Ledger references installment {number}, schedule has {count} installments"
            )
        if override.number != number:
            raise LedgerInconsistency(
                f"Installment stored under {number} claims to be installment {override.number}"
            )
        if isinstance(override.amount, bool) or not isinstance(override.amount, int) or override.amount < 0:
            raise LedgerInconsistency(f"Installment {number} has invalid amount {override.amount!r}")

    merged = tuple(ledger.slots.get(slot.number, slot) for slot in skeleton)

    warnings: List[str] = []
    scheduled_total = sum(slot.amount for slot in merged)
    if scheduled_total != terms.principal:
        message = (
            f"Installments sum to {scheduled_total} but principal is {terms.principal}; "
            f"recorded installments were kept as-is"
        )
        logger.warning(message)
        warnings.append(message)

    return MergedSchedule(slots=merged, warnings=tuple(warnings))


def materialize_slot(slot: InstallmentSlot, proof_ref: str, paid_at: datetime) -> InstallmentSlot:
    """Paid copy of a merged slot, ready to be stored as an override"""
    return replace(slot, status=SlotStatus.PAID, proof_ref=proof_ref, paid_at=paid_at)
