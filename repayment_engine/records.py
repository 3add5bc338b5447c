"""
Ledger Records Module

Payment records and the per-plan ledgers that hold them. Records are frozen:
a submission produces a new ledger with a higher version instead of editing
an existing one, so the persisted ledger is an append-only audit trail.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .dates import parse_iso_date, parse_iso_datetime
from .errors import LedgerInconsistency
from .terms import Installment, OpenPayment, RepaymentPlan, SinglePayment


def _required(value, name: str):
    if value is None:
        raise ValueError(f"{name} is required")
    return value


class SlotStatus(Enum):
    """Payment status of an installment slot or a single payment"""
    UNPAID = "unpaid"
    PAID = "paid"


@dataclass(frozen=True)
class InstallmentSlot:
    """One scheduled installment, either generated or materialised from the ledger"""
    number: int
    amount: int
    due_date: date
    status: SlotStatus = SlotStatus.UNPAID
    proof_ref: Optional[str] = None
    paid_at: Optional[datetime] = None

    @property
    def is_paid(self) -> bool:
        return self.status == SlotStatus.PAID

    def is_overdue(self, as_of: date) -> bool:
        """Unpaid and past its due date"""
        return self.status == SlotStatus.UNPAID and self.due_date < as_of

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number': self.number,
            'amount': self.amount,
            'dueDate': self.due_date.isoformat(),
            'status': self.status.value,
            'proofRef': self.proof_ref,
            'paidAt': self.paid_at.isoformat() if self.paid_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InstallmentSlot':
        return cls(
            number=int(data['number']),
            amount=data['amount'],
            due_date=_required(parse_iso_date(data['dueDate']), 'dueDate'),
            status=SlotStatus(data.get('status', SlotStatus.UNPAID.value)),
            proof_ref=data.get('proofRef'),
            paid_at=parse_iso_datetime(data.get('paidAt'))
        )


@dataclass(frozen=True)
class OpenPaymentRecord:
    """A single open-plan payment with the balance left after it"""
    id: str
    amount: int
    timestamp: datetime
    running_balance_after: int
    proof_ref: str
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'timestamp': self.timestamp.isoformat(),
            'runningBalanceAfter': self.running_balance_after,
            'proofRef': self.proof_ref,
            'note': self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OpenPaymentRecord':
        return cls(
            id=data['id'],
            amount=data['amount'],
            timestamp=_required(parse_iso_datetime(data['timestamp']), 'timestamp'),
            running_balance_after=data['runningBalanceAfter'],
            proof_ref=data.get('proofRef'),
            note=data.get('note')
        )


@dataclass(frozen=True)
class SinglePaymentRecord:
    """The one lump-sum payment of a single-payment loan"""
    amount: int
    timestamp: datetime
    proof_ref: Optional[str]
    status: SlotStatus = SlotStatus.PAID

    @property
    def is_paid(self) -> bool:
        return self.status == SlotStatus.PAID

    def to_dict(self) -> Dict[str, Any]:
        return {
            'amount': self.amount,
            'timestamp': self.timestamp.isoformat(),
            'proofRef': self.proof_ref,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SinglePaymentRecord':
        return cls(
            amount=data['amount'],
            timestamp=_required(parse_iso_datetime(data['timestamp']), 'timestamp'),
            proof_ref=data.get('proofRef'),
            status=SlotStatus(data.get('status', SlotStatus.UNPAID.value))
        )


@dataclass(frozen=True)
class InstallmentLedger:
    """Materialised installment slots keyed by slot number"""
    slots: Mapping[int, InstallmentSlot] = field(default_factory=dict)
    version: int = 0

    def __post_init__(self):
        # Read-only view so callers cannot edit a snapshot in place
        object.__setattr__(self, 'slots', MappingProxyType(dict(self.slots)))

    def with_slot(self, slot: InstallmentSlot) -> 'InstallmentLedger':
        slots = dict(self.slots)
        slots[slot.number] = slot
        return InstallmentLedger(slots=slots, version=self.version + 1)


@dataclass(frozen=True)
class SinglePaymentLedger:
    record: Optional[SinglePaymentRecord] = None
    version: int = 0

    def with_record(self, record: SinglePaymentRecord) -> 'SinglePaymentLedger':
        return SinglePaymentLedger(record=record, version=self.version + 1)


@dataclass(frozen=True)
class OpenPaymentLedger:
    """Open payments in submission order"""
    payments: Tuple[OpenPaymentRecord, ...] = ()
    version: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'payments', tuple(self.payments))

    def with_payment(self, record: OpenPaymentRecord) -> 'OpenPaymentLedger':
        return OpenPaymentLedger(payments=self.payments + (record,), version=self.version + 1)


Ledger = Union[InstallmentLedger, SinglePaymentLedger, OpenPaymentLedger]


LEDGER_KIND_INSTALLMENT = "installment"
LEDGER_KIND_SINGLE = "single"
LEDGER_KIND_OPEN = "open"


def empty_ledger_for(plan: RepaymentPlan) -> Ledger:
    """Version-0 ledger matching a repayment plan"""
    if isinstance(plan, Installment):
        return InstallmentLedger()
    if isinstance(plan, SinglePayment):
        return SinglePaymentLedger()
    if isinstance(plan, OpenPayment):
        return OpenPaymentLedger()
    raise ValueError(f"Unsupported repayment plan: {plan!r}")


def ledger_to_dict(ledger: Ledger) -> Dict[str, Any]:
    """Convert a ledger to its persisted dictionary form"""
    if isinstance(ledger, InstallmentLedger):
        return {
            'kind': LEDGER_KIND_INSTALLMENT,
            'version': ledger.version,
            'slots': {str(number): slot.to_dict() for number, slot in sorted(ledger.slots.items())},
        }
    if isinstance(ledger, SinglePaymentLedger):
        return {
            'kind': LEDGER_KIND_SINGLE,
            'version': ledger.version,
            'record': ledger.record.to_dict() if ledger.record else None,
        }
    if isinstance(ledger, OpenPaymentLedger):
        return {
            'kind': LEDGER_KIND_OPEN,
            'version': ledger.version,
            'payments': [record.to_dict() for record in ledger.payments],
        }
    raise ValueError(f"Unsupported ledger type: {type(ledger).__name__}")


def ledger_from_dict(data: Dict[str, Any]) -> Ledger:
    """
    Convert a persisted dictionary back into a ledger

    Raises:
        LedgerInconsistency: If the stored data cannot be read as a ledger
    """
    try:
        kind = data['kind']
        version = int(data.get('version', 0))

        if kind == LEDGER_KIND_INSTALLMENT:
            slots = {int(number): InstallmentSlot.from_dict(slot)
                     for number, slot in (data.get('slots') or {}).items()}
            return InstallmentLedger(slots=slots, version=version)

        if kind == LEDGER_KIND_SINGLE:
            record = data.get('record')
            return SinglePaymentLedger(
                record=SinglePaymentRecord.from_dict(record) if record else None,
                version=version
            )

        if kind == LEDGER_KIND_OPEN:
            payments = tuple(OpenPaymentRecord.from_dict(p) for p in data.get('payments') or [])
            return OpenPaymentLedger(payments=payments, version=version)

    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise LedgerInconsistency(f"Unreadable ledger: {e}") from e

    raise LedgerInconsistency(f"Unknown ledger kind '{data.get('kind')}'")
