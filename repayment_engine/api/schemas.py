"""
Pydantic schemas for API requests and responses
"""

from typing import Optional, Union
from pydantic import BaseModel, Field

from ..currency import to_minor_units
from ..payments import PaymentRequest
from ..terms import LoanTerms


class RegisterReportRequest(BaseModel):
    report_id: Optional[str] = None
    principal: Union[int, str] = Field(..., description="Principal in minor units")
    plan: str = Field(..., description="Repayment plan (single, installment, open)")
    installment_count: Optional[int] = None
    disbursement_date: str = Field(..., description="ISO date")
    due_date: Optional[str] = Field(None, description="ISO date, single and open plans only")

    def to_loan_terms(self) -> LoanTerms:
        return LoanTerms.from_dict({
            'principal': to_minor_units(self.principal),
            'plan': self.plan,
            'installmentCount': self.installment_count,
            'disbursementDate': self.disbursement_date,
            'dueDate': self.due_date,
        })


class SubmitPaymentRequest(BaseModel):
    proof_ref: Optional[str] = Field(None, description="Handle of the uploaded proof document")
    amount: Optional[Union[int, str]] = Field(None, description="Amount in minor units")
    slot_number: Optional[int] = Field(None, description="Installment number (installment plans)")
    note: Optional[str] = None
    expected_version: Optional[int] = Field(None, description="Ledger version the client last saw")

    def to_payment_request(self) -> PaymentRequest:
        amount = None
        if self.amount is not None:
            amount = to_minor_units(self.amount)
        return PaymentRequest(
            proof_ref=self.proof_ref,
            amount=amount,
            slot_number=self.slot_number,
            note=self.note,
            expected_version=self.expected_version
        )
