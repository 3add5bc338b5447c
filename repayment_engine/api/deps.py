"""
Service wiring and FastAPI dependencies
"""

from typing import Optional

from ..audit import AuditTrail
from ..config import RepaymentConfig, get_config
from ..repayments import RepaymentManager
from ..storage import create_storage


class RepaymentSystem:
    """Repayment service with storage, audit trail and manager initialized"""

    def __init__(self, config: Optional[RepaymentConfig] = None):
        config = config or get_config()

        self.storage = create_storage(config.storage_backend, config.sqlite_path)
        self.audit_trail = None
        if config.enable_audit_logging:
            self.audit_trail = AuditTrail(self.storage, table_name=config.audit_table)
        self.repayment_manager = RepaymentManager(
            self.storage,
            self.audit_trail,
            terms_table=config.terms_table,
            ledgers_table=config.ledgers_table
        )


# Global repayment system instance, created on first use
repayment_system: Optional[RepaymentSystem] = None


def get_repayment_system() -> RepaymentSystem:
    global repayment_system
    if repayment_system is None:
        repayment_system = RepaymentSystem()
    return repayment_system
