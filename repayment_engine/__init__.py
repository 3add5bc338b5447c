"""
Repayment Plan & Reconciliation Engine

Turns a loan's static terms plus a ledger of submitted payment proofs into a
consistent point-in-time view of what is owed, what is paid and what is
overdue. All money is handled as integer minor units.
"""

__version__ = "1.0.0"
