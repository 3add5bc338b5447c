"""
Test suite for reconciliation engine

Tests totals, completion percentage, overdue detection and the plan-specific
detail for all three repayment plans, plus rejection of inconsistent ledgers.
"""

import pytest
from datetime import date, datetime, timezone

from repayment_engine.errors import LedgerInconsistency
from repayment_engine.ledger import materialize_slot
from repayment_engine.reconciliation import (
    InstallmentDetail, OpenPaymentDetail, SinglePaymentDetail, reconcile
)
from repayment_engine.records import (
    InstallmentLedger, InstallmentSlot, OpenPaymentLedger, OpenPaymentRecord,
    SinglePaymentLedger, SinglePaymentRecord, SlotStatus
)
from repayment_engine.schedule import generate_schedule
from repayment_engine.terms import Installment, LoanTerms, OpenPayment, SinglePayment


NOW = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


def open_record(record_id, amount, balance_after, timestamp=NOW):
    return OpenPaymentRecord(
        id=record_id, amount=amount, timestamp=timestamp,
        running_balance_after=balance_after, proof_ref=f"proof-{record_id}"
    )


@pytest.fixture
def installment_terms():
    return LoanTerms(principal=1000000, plan=Installment(count=3), disbursement_date=date(2024, 1, 1))


@pytest.fixture
def open_terms():
    return LoanTerms(
        principal=500000, plan=OpenPayment(),
        disbursement_date=date(2024, 1, 1), due_date=date(2024, 6, 30)
    )


@pytest.fixture
def single_terms():
    return LoanTerms(
        principal=750000, plan=SinglePayment(),
        disbursement_date=date(2024, 1, 1), due_date=date(2024, 3, 1)
    )


class TestInstallmentReconciliation:
    """Test reconciliation of installment loans"""

    def test_nothing_paid(self, installment_terms):
        view = reconcile(installment_terms, InstallmentLedger(), as_of=date(2024, 1, 15))

        assert view.plan == "installment"
        assert view.total_paid == 0
        assert view.remaining_balance == 1000000
        assert view.completion_percentage == 0
        assert view.payment_count == 0
        assert view.next_due_date == date(2024, 2, 1)
        assert not view.is_overdue
        assert not view.is_completed
        assert isinstance(view.detail, InstallmentDetail)
        assert len(view.detail.slots) == 3

    def test_first_slot_paid(self, installment_terms):
        """Test paying slot 1 of 1,000,000 over 3 installments"""
        slot = materialize_slot(generate_schedule(installment_terms)[0], "proof-1", NOW)
        ledger = InstallmentLedger(slots={1: slot}, version=1)

        view = reconcile(installment_terms, ledger, as_of=date(2024, 2, 1))

        assert view.total_paid == 333333
        assert view.remaining_balance == 666667
        assert view.completion_percentage == 33
        assert view.payment_count == 1
        assert view.last_payment_at == NOW
        assert view.next_due_date == date(2024, 3, 1)
        assert view.ledger_version == 1

    def test_all_slots_paid(self, installment_terms):
        """Test that a fully paid schedule is completed at 100%"""
        ledger = InstallmentLedger()
        for slot in generate_schedule(installment_terms):
            ledger = ledger.with_slot(materialize_slot(slot, f"proof-{slot.number}", NOW))

        view = reconcile(installment_terms, ledger, as_of=date(2024, 5, 1))

        assert view.total_paid == 1000000
        assert view.remaining_balance == 0
        assert view.completion_percentage == 100
        assert view.is_completed
        assert view.next_due_date is None
        assert view.overdue_amount == 0

    def test_overdue_installments(self, installment_terms):
        """Test that unpaid slots past their due date are flagged"""
        slot = materialize_slot(generate_schedule(installment_terms)[0], "proof-1", NOW)
        ledger = InstallmentLedger(slots={1: slot}, version=1)

        view = reconcile(installment_terms, ledger, as_of=date(2024, 3, 15))

        assert view.detail.overdue_numbers == (2,)
        assert view.overdue_amount == 333333
        assert view.is_overdue

    def test_paid_plus_remaining_equals_schedule(self, installment_terms):
        slot = materialize_slot(generate_schedule(installment_terms)[2], "proof-3", NOW)
        view = reconcile(installment_terms, InstallmentLedger(slots={3: slot}), as_of=date(2024, 1, 2))

        assert view.total_paid == 333334
        assert view.total_paid + view.remaining_balance == installment_terms.principal

    def test_drifted_override_surfaces_warning(self, installment_terms):
        legacy = InstallmentSlot(
            number=1, amount=333334, due_date=date(2024, 2, 1),
            status=SlotStatus.PAID, proof_ref="legacy", paid_at=NOW
        )
        view = reconcile(installment_terms, InstallmentLedger(slots={1: legacy}), as_of=date(2024, 2, 1))

        assert view.total_paid == 333334
        assert len(view.warnings) == 1

    def test_to_dict_shape(self, installment_terms):
        """Test the external shape of an installment view"""
        data = reconcile(installment_terms, InstallmentLedger(), as_of=date(2024, 2, 2)).to_dict()

        assert data['plan'] == 'installment'
        assert data['totalPaid'] == 0
        assert data['remainingBalance'] == 1000000
        assert data['asOf'] == '2024-02-02'
        assert data['detail']['overdueInstallments'] == [1]
        installments = data['detail']['installments']
        assert [i['amount'] for i in installments] == [333333, 333333, 333334]
        assert installments[0]['isOverdue'] is True
        assert installments[1]['isOverdue'] is False


class TestOpenReconciliation:
    """Test reconciliation of open payment loans"""

    def test_no_payments(self, open_terms):
        view = reconcile(open_terms, OpenPaymentLedger(), as_of=date(2024, 2, 1))

        assert view.total_paid == 0
        assert view.remaining_balance == 500000
        assert view.next_due_date == date(2024, 6, 30)
        assert view.last_payment_at is None
        assert isinstance(view.detail, OpenPaymentDetail)

    def test_partial_payments(self, open_terms):
        ledger = OpenPaymentLedger(payments=[open_record("a", 200000, 300000)], version=1)
        view = reconcile(open_terms, ledger, as_of=date(2024, 2, 1))

        assert view.total_paid == 200000
        assert view.remaining_balance == 300000
        assert view.completion_percentage == 40
        assert view.payment_count == 1

    def test_balance_non_increasing(self, open_terms):
        """Test that each appended payment lowers or keeps the balance"""
        amounts = [100000, 50000, 1, 149999, 200000]
        ledger = OpenPaymentLedger()
        balances = []
        running = open_terms.principal
        for position, amount in enumerate(amounts):
            running -= amount
            ledger = ledger.with_payment(open_record(str(position), amount, running))
            view = reconcile(open_terms, ledger, as_of=date(2024, 2, 1))
            assert view.total_paid + view.remaining_balance == open_terms.principal
            balances.append(view.remaining_balance)

        assert balances == sorted(balances, reverse=True)
        assert balances[-1] == 0
        assert view.completion_percentage == 100
        assert view.is_completed

    def test_overdue_after_due_date(self, open_terms):
        ledger = OpenPaymentLedger(payments=[open_record("a", 200000, 300000)], version=1)
        view = reconcile(open_terms, ledger, as_of=date(2024, 7, 1))

        assert view.is_overdue
        assert view.overdue_amount == 300000

    def test_running_balance_mismatch(self, open_terms):
        """Test that a recorded balance that disagrees with the sums is an inconsistency"""
        ledger = OpenPaymentLedger(payments=[open_record("a", 200000, 250000)], version=1)
        with pytest.raises(LedgerInconsistency, match="expected 300000"):
            reconcile(open_terms, ledger, as_of=date(2024, 2, 1))

    def test_non_positive_payment(self, open_terms):
        ledger = OpenPaymentLedger(payments=[open_record("a", 0, 500000)], version=1)
        with pytest.raises(LedgerInconsistency, match="invalid amount"):
            reconcile(open_terms, ledger, as_of=date(2024, 2, 1))

    def test_overpaid_ledger_floored(self):
        """Test that an overpaid legacy ledger reports zero remaining with a warning"""
        terms = LoanTerms(principal=100, plan=OpenPayment(), disbursement_date=date(2024, 1, 1))
        ledger = OpenPaymentLedger(payments=[open_record("a", 150, -50)], version=1)

        view = reconcile(terms, ledger, as_of=date(2024, 2, 1))

        assert view.remaining_balance == 0
        assert view.total_paid == 150
        assert view.completion_percentage == 100
        assert view.warnings


class TestSingleReconciliation:
    """Test reconciliation of single payment loans"""

    def test_unpaid(self, single_terms):
        view = reconcile(single_terms, SinglePaymentLedger(), as_of=date(2024, 2, 1))

        assert view.total_paid == 0
        assert view.remaining_balance == 750000
        assert view.detail == SinglePaymentDetail(status=SlotStatus.UNPAID)
        assert view.next_due_date == date(2024, 3, 1)
        assert not view.is_overdue

    def test_paid(self, single_terms):
        record = SinglePaymentRecord(amount=750000, timestamp=NOW, proof_ref="proof")
        view = reconcile(single_terms, SinglePaymentLedger(record=record, version=1), as_of=date(2024, 2, 1))

        assert view.total_paid == 750000
        assert view.remaining_balance == 0
        assert view.completion_percentage == 100
        assert view.detail.status == SlotStatus.PAID
        assert view.to_dict()['detail']['status'] == 'paid'

    def test_overdue(self, single_terms):
        view = reconcile(single_terms, SinglePaymentLedger(), as_of=date(2024, 3, 2))
        assert view.is_overdue
        assert view.overdue_amount == 750000

    def test_recorded_amount_must_equal_principal(self, single_terms):
        record = SinglePaymentRecord(amount=700000, timestamp=NOW, proof_ref="proof")
        with pytest.raises(LedgerInconsistency):
            reconcile(single_terms, SinglePaymentLedger(record=record, version=1))


class TestLedgerPlanMismatch:
    """Test that a ledger of the wrong kind is never reconciled"""

    def test_open_ledger_for_installment_terms(self, installment_terms):
        with pytest.raises(LedgerInconsistency, match="installment plan"):
            reconcile(installment_terms, OpenPaymentLedger())

    def test_installment_ledger_for_single_terms(self, single_terms):
        with pytest.raises(LedgerInconsistency):
            reconcile(single_terms, InstallmentLedger())
