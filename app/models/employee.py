"""
BranchBooks - Employee & Payroll Models

Employees, their salary advances, the deductions recorded against those
advances, salary payments, bonuses and the salary increase history.

Advance lifecycle:
    ACTIVE --(deductions until remaining hits 0)--> PAID
    ACTIVE --(cancel, no deductions yet)----------> CANCELLED
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, AuditMixin, SoftDeleteMixin
from app.models.branch import Branch
from app.models.transaction import Transaction


class EmployeeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AdvanceStatus(str, Enum):
    """Advances have no partial state; a partly repaid advance stays ACTIVE."""
    ACTIVE = "ACTIVE"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# ===========================================
# EMPLOYEE
# ===========================================

class Employee(BaseModel, AuditMixin, SoftDeleteMixin):
    """An employee on a branch payroll."""
    
    __tablename__ = "employees"
    
    branch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[str] = mapped_column(String(100), nullable=False)
    base_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    allowance: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    hire_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[EmployeeStatus] = mapped_column(
        SQLEnum(EmployeeStatus),
        default=EmployeeStatus.ACTIVE,
        nullable=False,
    )
    
    # Relationships
    branch: Mapped[Branch] = relationship(Branch)
    advances: Mapped[List["EmployeeAdvance"]] = relationship(
        "EmployeeAdvance",
        back_populates="employee",
    )
    
    @property
    def full_salary(self) -> Decimal:
        """Base salary plus allowance."""
        return (self.base_salary or Decimal("0")) + (self.allowance or Decimal("0"))
    
    def __repr__(self) -> str:
        return f"<Employee(name={self.name}, position={self.position})>"


# ===========================================
# EMPLOYEE ADVANCES
# ===========================================

class EmployeeAdvance(BaseModel, SoftDeleteMixin):
    """
    A salary advance repaid through deductions.
    
    ``amount`` is fixed at creation; ``remaining_amount`` only goes down and
    ``status`` always agrees with it.
    """
    
    __tablename__ = "employee_advances"
    
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Original advance amount",
    )
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    monthly_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    advance_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[AdvanceStatus] = mapped_column(
        SQLEnum(AdvanceStatus),
        default=AdvanceStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    # Relationships
    employee: Mapped[Employee] = relationship(Employee, back_populates="advances")
    deductions: Mapped[List["AdvanceDeduction"]] = relationship(
        "AdvanceDeduction",
        back_populates="advance",
        order_by="AdvanceDeduction.deduction_date",
    )
    
    def __repr__(self) -> str:
        return f"<EmployeeAdvance(amount={self.amount}, remaining={self.remaining_amount}, status={self.status})>"


class AdvanceDeduction(BaseModel):
    """
    One deduction event against an advance, from payroll or recorded manually.
    Never updated once written.
    """
    
    __tablename__ = "advance_deductions"
    
    advance_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("employee_advances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    salary_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("salary_payments.id", ondelete="SET NULL"),
        nullable=True,
        comment="Set when deducted via payroll",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    deduction_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    # Relationship
    advance: Mapped[EmployeeAdvance] = relationship(EmployeeAdvance, back_populates="deductions")
    
    def __repr__(self) -> str:
        return f"<AdvanceDeduction(advance_id={self.advance_id}, amount={self.amount}, date={self.deduction_date})>"


# ===========================================
# SALARY PAYMENTS
# ===========================================

class SalaryPayment(BaseModel, SoftDeleteMixin):
    """A payroll disbursement and its paired expense transaction."""
    
    __tablename__ = "salary_payments"
    
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
        comment="Amount entered by the payer",
    )
    total_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    net_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    # Relationships
    employee: Mapped[Employee] = relationship(Employee)
    transaction: Mapped[Optional[Transaction]] = relationship(Transaction)
    deductions: Mapped[List[AdvanceDeduction]] = relationship(AdvanceDeduction)
    
    def __repr__(self) -> str:
        return f"<SalaryPayment(employee_id={self.employee_id}, amount={self.amount}, date={self.payment_date})>"


# ===========================================
# BONUSES & SALARY INCREASES
# ===========================================

class EmployeeBonus(BaseModel, SoftDeleteMixin):
    """A one-off bonus, booked as an expense in the branch ledger."""
    
    __tablename__ = "employee_bonuses"
    
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    bonus_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    # Relationships
    employee: Mapped[Employee] = relationship(Employee)
    transaction: Mapped[Optional[Transaction]] = relationship(Transaction)
    
    def __repr__(self) -> str:
        return f"<EmployeeBonus(employee_id={self.employee_id}, amount={self.amount}, date={self.bonus_date})>"


class SalaryIncrease(BaseModel):
    """History row written whenever an employee's base salary is raised."""
    
    __tablename__ = "salary_increases"
    
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_salary: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    new_salary: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    increase_amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    # Relationship
    employee: Mapped[Employee] = relationship(Employee)
    
    def __repr__(self) -> str:
        return f"<SalaryIncrease(employee_id={self.employee_id}, {self.old_salary} -> {self.new_salary})>"
