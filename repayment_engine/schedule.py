"""
Schedule Generator

Builds the ideal installment schedule for an installment loan from its terms
alone. The generator is pure: the same terms always produce the same slots.
"""

from datetime import date
from typing import List, Sequence, Tuple

from .currency import split_evenly
from .dates import add_months
from .errors import InvalidLoanTerms
from .records import InstallmentSlot, SlotStatus
from .terms import Installment, LoanTerms


def generate_schedule(terms: LoanTerms) -> Tuple[InstallmentSlot, ...]:
    """
    Generate the unpaid installment skeleton for a loan

    Slot amounts are floor(principal / count), with the remainder added to the
    last slot so the schedule always sums to the principal. Slot i is due i
    months after disbursement.

    Args:
        terms: Loan terms with an Installment plan

    Returns:
        Tuple of `count` slots numbered 1..count

    Raises:
        InvalidLoanTerms: If the plan is not an installment plan
    """
    if not isinstance(terms.plan, Installment):
        raise InvalidLoanTerms("Schedules are only generated for installment plans")

    amounts = split_evenly(terms.principal, terms.plan.count)

    return tuple(
        InstallmentSlot(
            number=number,
            amount=amount,
            due_date=add_months(terms.disbursement_date, number),
            status=SlotStatus.UNPAID
        )
        for number, amount in enumerate(amounts, start=1)
    )


def overdue_slots(slots: Sequence[InstallmentSlot], as_of: date) -> List[InstallmentSlot]:
    """Unpaid slots whose due date is before `as_of`"""
    return [slot for slot in slots if slot.is_overdue(as_of)]
