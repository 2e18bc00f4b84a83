"""
BranchBooks - Services Package

Business logic services.
"""

from app.services.advance_service import AdvanceService
from app.services.audit_service import AuditDispatcher, AuditLogService
from app.services.debt_service import DebtService, PayableService, ReceivableService
from app.services.inventory_sub_unit_service import InventorySubUnitService
from app.services.salary_payment_service import SalaryPaymentService


__all__ = [
    "AdvanceService",
    "AuditDispatcher",
    "AuditLogService",
    "DebtService",
    "PayableService",
    "ReceivableService",
    "InventorySubUnitService",
    "SalaryPaymentService",
]
