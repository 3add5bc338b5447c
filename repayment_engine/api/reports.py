"""
Report repayment endpoints
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.responses import JSONResponse

from .deps import RepaymentSystem, get_repayment_system
from .schemas import RegisterReportRequest, SubmitPaymentRequest
from ..dates import utc_today
from ..errors import InvalidLoanTerms, ReportNotFound
from ..terms import plan_code


router = APIRouter()


def _parse_as_of(as_of: Optional[str]) -> Optional[date]:
    if not as_of:
        return None
    try:
        return date.fromisoformat(as_of)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid as_of date '{as_of}'")


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_report(
    request: RegisterReportRequest,
    system: RepaymentSystem = Depends(get_repayment_system)
):
    """Register the loan terms of a submitted report"""
    try:
        terms = request.to_loan_terms()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        report_id = system.repayment_manager.register_report(terms, report_id=request.report_id)
    except InvalidLoanTerms as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {
        "report_id": report_id,
        "terms": terms.to_dict(),
        "message": "Report registered successfully"
    }


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    system: RepaymentSystem = Depends(get_repayment_system)
):
    """Get the loan terms and ledger version of a report"""
    try:
        terms, ledger = system.repayment_manager.load_snapshot(report_id)
    except ReportNotFound:
        raise HTTPException(status_code=404, detail="Report not found")

    return {
        "report_id": report_id,
        "plan": plan_code(terms.plan),
        "terms": terms.to_dict(),
        "ledger_version": ledger.version
    }


@router.get("/{report_id}/reconciliation")
async def get_reconciliation(
    report_id: str,
    as_of: Optional[str] = None,
    system: RepaymentSystem = Depends(get_repayment_system)
):
    """Get the reconciled repayment view of a report"""
    as_of_date = _parse_as_of(as_of)
    try:
        view = system.repayment_manager.reconcile(report_id, as_of_date)
    except ReportNotFound:
        raise HTTPException(status_code=404, detail="Report not found")

    return view.to_dict()


@router.get("/{report_id}/schedule")
async def get_schedule(
    report_id: str,
    as_of: Optional[str] = None,
    system: RepaymentSystem = Depends(get_repayment_system)
):
    """Get the merged installment schedule of a report"""
    as_of_date = _parse_as_of(as_of) or utc_today()
    try:
        schedule = system.repayment_manager.get_schedule(report_id)
    except ReportNotFound:
        raise HTTPException(status_code=404, detail="Report not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "schedule": [
            dict(slot.to_dict(), isOverdue=slot.is_overdue(as_of_date))
            for slot in schedule.slots
        ],
        "warnings": list(schedule.warnings)
    }


@router.post("/{report_id}/payments", status_code=status.HTTP_201_CREATED)
async def submit_payment(
    report_id: str,
    request: SubmitPaymentRequest,
    system: RepaymentSystem = Depends(get_repayment_system)
):
    """Submit a payment proof for a report"""
    try:
        payment_request = request.to_payment_request()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = system.repayment_manager.submit_payment(report_id, payment_request)
    except ReportNotFound:
        raise HTTPException(status_code=404, detail="Report not found")

    if not result.accepted:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=result.to_dict())

    body = result.to_dict()
    body["view"] = system.repayment_manager.reconcile(report_id).to_dict()
    return body


@router.get("/{report_id}/audit")
async def get_audit_events(
    report_id: str,
    system: RepaymentSystem = Depends(get_repayment_system)
):
    """Get the audit events recorded for a report"""
    events = system.repayment_manager.get_audit_events(report_id)
    return {
        "events": [
            {
                "id": event.id,
                "event_type": event.event_type.value,
                "metadata": event.metadata,
                "user_id": event.user_id,
                "created_at": event.created_at.isoformat()
            }
            for event in events
        ]
    }
