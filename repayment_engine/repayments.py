"""
Repayment Service Module

Persists loan terms and ledgers for credit reports and runs payment
submissions end to end: proof check, validation against a ledger snapshot,
versioned write, audit. The engine functions stay pure; this is the only
component that touches storage.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
import uuid

from .audit import AuditTrail, AuditEventType
from .dates import utc_now, utc_today
from .errors import LedgerInconsistency, RejectionReason, ReportNotFound
from .ledger import MergedSchedule, merge_schedule
from .logging_config import get_logger, log_action
from .payments import PaymentRequest, SubmissionResult, submit_payment
from .reconciliation import ReconciledView, reconcile
from .records import InstallmentLedger, Ledger, empty_ledger_for, ledger_from_dict, ledger_to_dict
from .storage import StorageInterface
from .terms import Installment, LoanTerms, plan_code


logger = get_logger("repayment.service")


class RepaymentManager:
    """
    Manages loan terms and payment ledgers for credit reports
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        terms_table: str = "loan_terms",
        ledgers_table: str = "ledgers"
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.terms_table = terms_table
        self.ledgers_table = ledgers_table

    def register_report(
        self,
        terms: LoanTerms,
        report_id: Optional[str] = None,
        today: Optional[date] = None,
        user_id: Optional[str] = None
    ) -> str:
        """
        Register the loan terms of a newly submitted report

        Args:
            terms: Loan terms
            report_id: Report ID (generated when omitted)
            today: Date used to validate the due date (defaults to today, UTC)
            user_id: Reporter registering the loan

        Returns:
            Report ID

        Raises:
            InvalidLoanTerms: If the terms fail creation-time validation
            ValueError: If the report is already registered
        """
        terms.validate_for_creation(today or utc_today())
        report_id = report_id or str(uuid.uuid4())

        ledger_dict = ledger_to_dict(empty_ledger_for(terms.plan))
        with self.storage.atomic():
            if not self.storage.compare_and_swap(self.ledgers_table, report_id, ledger_dict, None):
                raise ValueError(f"Report {report_id} is already registered")
            self.storage.save(self.terms_table, report_id, dict(terms.to_dict(), report_id=report_id))

        self._audit(
            AuditEventType.REPORT_REGISTERED, report_id,
            {"principal": terms.principal, "plan": plan_code(terms.plan)},
            user_id=user_id
        )
        log_action(logger, "info", "Registered loan terms", report_id=report_id,
                   action="register", extra={"plan": plan_code(terms.plan)})
        return report_id

    def get_terms(self, report_id: str) -> LoanTerms:
        """Load the terms of a report"""
        data = self.storage.load(self.terms_table, report_id)
        if not data:
            raise ReportNotFound(f"Report {report_id} not found")
        return LoanTerms.from_dict(data)

    def get_ledger(self, report_id: str) -> Ledger:
        """Load the current ledger snapshot of a report"""
        data = self.storage.load(self.ledgers_table, report_id)
        if not data:
            raise ReportNotFound(f"Report {report_id} not found")
        try:
            return ledger_from_dict(data)
        except LedgerInconsistency as e:
            self._report_inconsistency(report_id, e)
            raise

    def load_snapshot(self, report_id: str) -> Tuple[LoanTerms, Ledger]:
        return self.get_terms(report_id), self.get_ledger(report_id)

    def reconcile(self, report_id: str, as_of: Optional[date] = None) -> ReconciledView:
        """Reconcile a report's ledger against its terms"""
        terms, ledger = self.load_snapshot(report_id)
        try:
            return reconcile(terms, ledger, as_of)
        except LedgerInconsistency as e:
            self._report_inconsistency(report_id, e)
            raise

    def get_schedule(self, report_id: str) -> MergedSchedule:
        """
        Merged installment schedule of a report

        Raises:
            ValueError: If the report is not on an installment plan
        """
        terms, ledger = self.load_snapshot(report_id)
        if not isinstance(terms.plan, Installment) or not isinstance(ledger, InstallmentLedger):
            raise ValueError(f"Report {report_id} is not on an installment plan")
        try:
            return merge_schedule(terms, ledger)
        except LedgerInconsistency as e:
            self._report_inconsistency(report_id, e)
            raise

    def submit_payment(
        self,
        report_id: str,
        request: PaymentRequest,
        now: Optional[datetime] = None,
        user_id: Optional[str] = None
    ) -> SubmissionResult:
        """
        Submit a payment proof for a report

        The ledger snapshot is written back only if nobody else wrote it in the
        meantime; a lost race is reported as STALE_LEDGER and nothing is stored.

        Args:
            report_id: Report ID
            request: Payment request
            now: Timestamp for the new record (defaults to current UTC time)
            user_id: User submitting the proof

        Returns:
            SubmissionResult
        """
        terms, ledger = self.load_snapshot(report_id)

        if not request.proof_ref or not str(request.proof_ref).strip():
            result = SubmissionResult.reject(RejectionReason.PROOF_MISSING)
            self._record_outcome(report_id, request, result, user_id)
            return result

        try:
            result = submit_payment(terms, ledger, request, now or utc_now())
        except LedgerInconsistency as e:
            self._report_inconsistency(report_id, e)
            raise

        if result.accepted:
            written = self.storage.compare_and_swap(
                self.ledgers_table, report_id, ledger_to_dict(result.ledger), ledger.version
            )
            if not written:
                result = SubmissionResult.reject(RejectionReason.STALE_LEDGER)

        self._record_outcome(report_id, request, result, user_id)
        return result

    def get_audit_events(self, report_id: str):
        if not self.audit_trail:
            return []
        return self.audit_trail.get_events_for_entity("report", report_id)

    def _record_outcome(
        self,
        report_id: str,
        request: PaymentRequest,
        result: SubmissionResult,
        user_id: Optional[str]
    ) -> None:
        metadata: Dict[str, Any] = {
            "amount": request.amount,
            "slot_number": request.slot_number,
            "proof_ref": request.proof_ref,
        }
        if result.accepted:
            metadata["ledger_version"] = result.ledger.version
            self._audit(AuditEventType.PAYMENT_ACCEPTED, report_id, metadata, user_id=user_id)
            log_action(logger, "info", "Payment accepted", report_id=report_id,
                       action="submit_payment", extra=metadata)
        else:
            metadata["reason"] = result.reason.value
            self._audit(AuditEventType.PAYMENT_REJECTED, report_id, metadata, user_id=user_id)
            log_action(logger, "info", f"Payment rejected: {result.message}",
                       report_id=report_id, action="submit_payment", extra=metadata)

    def _report_inconsistency(self, report_id: str, error: LedgerInconsistency) -> None:
        error.report_id = report_id
        self._audit(AuditEventType.LEDGER_INCONSISTENCY, report_id, {"error": str(error)})
        log_action(logger, "error", f"Ledger inconsistency: {error}",
                   report_id=report_id, action="reconcile")

    def _audit(
        self,
        event_type: AuditEventType,
        report_id: str,
        metadata: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> None:
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="report",
                entity_id=report_id,
                metadata=metadata,
                user_id=user_id
            )
