"""
Loan Terms Module

Static loan terms owned by a credit report: principal, repayment plan and
disbursement/due dates. The repayment plan is a closed set of variants; there
is no fallback plan for unknown input.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional, Union

from .dates import parse_iso_date
from .errors import InvalidLoanTerms


@dataclass(frozen=True)
class SinglePayment:
    """The whole principal is repaid in one lump sum"""


@dataclass(frozen=True)
class Installment:
    """Principal is repaid in `count` fixed monthly installments"""
    count: int

    def __post_init__(self):
        if isinstance(self.count, bool) or not isinstance(self.count, int) or self.count < 1:
            raise InvalidLoanTerms(f"Installment count must be a positive integer, got {self.count!r}")


@dataclass(frozen=True)
class OpenPayment:
    """Principal is repaid through arbitrary payments until nothing is outstanding"""


RepaymentPlan = Union[SinglePayment, Installment, OpenPayment]


PLAN_SINGLE = "single"
PLAN_INSTALLMENT = "installment"
PLAN_OPEN = "open"

# Codes used by older report records
_PLAN_ALIASES = {
    "single": PLAN_SINGLE,
    "single-payment": PLAN_SINGLE,
    "one-time": PLAN_SINGLE,
    "full": PLAN_SINGLE,
    "installment": PLAN_INSTALLMENT,
    "installments": PLAN_INSTALLMENT,
    "open": PLAN_OPEN,
    "open-payment": PLAN_OPEN,
}


def plan_from_code(code: str, installment_count: Optional[int] = None) -> RepaymentPlan:
    """
    Build a repayment plan from its external code

    Args:
        code: "single", "installment" or "open" (legacy aliases accepted)
        installment_count: Number of installments, required iff code is installment

    Returns:
        RepaymentPlan variant

    Raises:
        InvalidLoanTerms: For unknown codes or a misplaced/missing count
    """
    if not isinstance(code, str):
        raise InvalidLoanTerms(f"Repayment plan must be a string, got {code!r}")

    canonical = _PLAN_ALIASES.get(code.strip().lower())
    if canonical is None:
        raise InvalidLoanTerms(f"Unknown repayment plan '{code}'")

    if canonical == PLAN_INSTALLMENT:
        if installment_count is None:
            raise InvalidLoanTerms("installmentCount is required for installment plans")
        return Installment(count=installment_count)

    if installment_count is not None:
        raise InvalidLoanTerms(f"installmentCount is only valid for installment plans, not '{canonical}'")

    if canonical == PLAN_SINGLE:
        return SinglePayment()
    return OpenPayment()


def plan_code(plan: RepaymentPlan) -> str:
    """Canonical external code for a plan"""
    if isinstance(plan, SinglePayment):
        return PLAN_SINGLE
    if isinstance(plan, Installment):
        return PLAN_INSTALLMENT
    if isinstance(plan, OpenPayment):
        return PLAN_OPEN
    raise InvalidLoanTerms(f"Unsupported repayment plan: {plan!r}")


@dataclass(frozen=True)
class LoanTerms:
    """Loan terms as submitted with a credit report. Immutable once submitted."""
    principal: int                      # Smallest currency unit
    plan: RepaymentPlan
    disbursement_date: date
    due_date: Optional[date] = None     # Single and open payment plans only

    def __post_init__(self):
        if isinstance(self.principal, bool) or not isinstance(self.principal, int):
            raise InvalidLoanTerms(f"Principal must be an integer amount, got {self.principal!r}")
        if self.principal <= 0:
            raise InvalidLoanTerms("Principal must be positive")
        if not isinstance(self.plan, (SinglePayment, Installment, OpenPayment)):
            raise InvalidLoanTerms(f"Unsupported repayment plan: {self.plan!r}")
        if not isinstance(self.disbursement_date, date):
            raise InvalidLoanTerms("Disbursement date is required")
        if self.due_date is not None:
            if not isinstance(self.due_date, date):
                raise InvalidLoanTerms("Due date must be a date")
            if isinstance(self.plan, Installment):
                raise InvalidLoanTerms("Installment plans take their due dates from the schedule")

    @property
    def installment_count(self) -> Optional[int]:
        if isinstance(self.plan, Installment):
            return self.plan.count
        return None

    def validate_for_creation(self, today: date) -> None:
        """
        Checks that only apply when a report is first submitted

        Raises:
            InvalidLoanTerms: If the due date is already in the past or precedes disbursement
        """
        if self.due_date is None:
            return
        if self.due_date < today:
            raise InvalidLoanTerms(f"Due date {self.due_date.isoformat()} is in the past")
        if self.due_date < self.disbursement_date:
            raise InvalidLoanTerms("Due date cannot be before the disbursement date")

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'principal': self.principal,
            'plan': plan_code(self.plan),
            'disbursementDate': self.disbursement_date.isoformat(),
        }
        if self.installment_count is not None:
            result['installmentCount'] = self.installment_count
        if self.due_date:
            result['dueDate'] = self.due_date.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanTerms':
        """
        Build terms from the external shape
        {principal, plan, installmentCount?, disbursementDate, dueDate?}
        """
        if not isinstance(data, dict):
            raise InvalidLoanTerms("Loan terms must be an object")

        for required in ('principal', 'plan', 'disbursementDate'):
            if data.get(required) in (None, ""):
                raise InvalidLoanTerms(f"Missing required field '{required}'")

        try:
            disbursement_date = parse_iso_date(data['disbursementDate'])
            due_date = parse_iso_date(data.get('dueDate'))
        except ValueError as e:
            raise InvalidLoanTerms(f"Invalid date: {e}") from e

        return cls(
            principal=data['principal'],
            plan=plan_from_code(data['plan'], data.get('installmentCount')),
            disbursement_date=disbursement_date,
            due_date=due_date
        )
