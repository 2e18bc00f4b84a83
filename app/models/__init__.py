"""
BranchBooks - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, AuditMixin, SoftDeleteMixin
from app.models.branch import Branch
from app.models.user import UserRole
from app.models.contact import Contact, ContactType
from app.models.transaction import Transaction, TransactionType, PaymentMethod
from app.models.employee import (
    Employee,
    EmployeeStatus,
    EmployeeAdvance,
    AdvanceStatus,
    AdvanceDeduction,
    SalaryPayment,
    EmployeeBonus,
    SalaryIncrease,
)
from app.models.debt import (
    DebtStatus,
    AccountPayable,
    PayablePayment,
    AccountReceivable,
    ReceivablePayment,
)
from app.models.inventory import InventoryItem, InventorySubUnit
from app.models.audit import AuditLog, AuditAction, AuditEntityType


__all__ = [
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    "SoftDeleteMixin",
    "Branch",
    "UserRole",
    "Contact",
    "ContactType",
    "Transaction",
    "TransactionType",
    "PaymentMethod",
    "Employee",
    "EmployeeStatus",
    "EmployeeAdvance",
    "AdvanceStatus",
    "AdvanceDeduction",
    "SalaryPayment",
    "EmployeeBonus",
    "SalaryIncrease",
    "DebtStatus",
    "AccountPayable",
    "PayablePayment",
    "AccountReceivable",
    "ReceivablePayment",
    "InventoryItem",
    "InventorySubUnit",
    "AuditLog",
    "AuditAction",
    "AuditEntityType",
]
