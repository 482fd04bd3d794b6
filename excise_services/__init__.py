"""
excise_services -- imperative shell over the excise engines.

Each service takes a ``RegisterRepository`` (in-memory or SQLAlchemy),
an optional ``ExciseConfig`` and an optional ``Clock``, and runs
validate -> engine -> persist -> audit for one register.
"""

from excise_services.base import AuditAction, RegisterService
from excise_services.duty_service import DutyService
from excise_services.issue_service import IssueService
from excise_services.master_ledger_service import MasterLedgerService
from excise_services.production_fee_service import ProductionFeeService
from excise_services.production_service import ProductionService
from excise_services.receipt_service import ReceiptService
from excise_services.repository import InMemoryRegisterRepository, RegisterRepository
from excise_services.sql_repository import SqlRegisterRepository

__all__ = [
    "AuditAction",
    "DutyService",
    "InMemoryRegisterRepository",
    "IssueService",
    "MasterLedgerService",
    "ProductionFeeService",
    "ProductionService",
    "ReceiptService",
    "RegisterRepository",
    "RegisterService",
    "SqlRegisterRepository",
]
