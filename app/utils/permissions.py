"""
BranchBooks - Branch Scoping

Every service call receives a RequestContext describing who is calling and
which branch they are bound to. Branch restrictions are applied in one place:

| Role       | Reads                          | Writes                        |
|------------|--------------------------------|-------------------------------|
| ADMIN      | all branches, optional filter  | any branch (or head office)   |
| ACCOUNTANT | own branch only                | own branch only, must have one|
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Select
from sqlalchemy.orm import InstrumentedAttribute

from app.models.user import UserRole
from app.utils.error_handling import BranchAccessDeniedException, BusinessRuleException


@dataclass(frozen=True)
class RequestContext:
    """Caller identity and branch scope, threaded explicitly through services."""
    user_id: uuid.UUID
    role: UserRole
    branch_id: Optional[uuid.UUID] = None
    ip_address: Optional[str] = None
    
    @property
    def is_branch_restricted(self) -> bool:
        return self.role == UserRole.ACCOUNTANT


def scope_filter(
    context: RequestContext,
    stmt: Select,
    branch_column: InstrumentedAttribute,
    requested_branch_id: Optional[uuid.UUID] = None,
) -> Select:
    """
    Apply the branch restriction for ``context`` to a SELECT statement.
    
    Accountants are pinned to their own branch regardless of the requested
    branch; admins see everything unless they ask for a specific branch.
    """
    if context.is_branch_restricted:
        return stmt.where(branch_column == context.branch_id)
    if requested_branch_id is not None:
        return stmt.where(branch_column == requested_branch_id)
    return stmt


def ensure_branch_access(context: RequestContext, branch_id: Optional[uuid.UUID]) -> None:
    """Raise if the caller may not touch an entity that lives in ``branch_id``."""
    if context.is_branch_restricted and branch_id != context.branch_id:
        raise BranchAccessDeniedException(branch_id)


def resolve_write_branch(
    context: RequestContext,
    requested_branch_id: Optional[uuid.UUID] = None,
) -> Optional[uuid.UUID]:
    """
    Branch that a newly created record should belong to.
    
    Accountants always write into their own branch and must have one.
    Admins may pick a branch or leave it empty for head-office records.
    """
    if context.is_branch_restricted:
        if context.branch_id is None:
            raise BusinessRuleException(
                "An accountant must be assigned to a branch to perform this operation",
                rule="BRANCH_REQUIRED",
            )
        return context.branch_id
    return requested_branch_id
