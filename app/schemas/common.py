"""
BranchBooks - Shared Schemas

Response pieces reused across payroll, advances and debts.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    """Base for responses built from ORM rows or service result objects."""
    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    """Schema for simple message responses."""
    message: str
    success: bool = True


class ContactBrief(ORMModel):
    id: UUID
    name: str
    phone: Optional[str] = None


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ErrorDetail(BaseModel):
    """Shape of the ``detail`` object of every error response."""
    code: str
    message: str
    timestamp: datetime
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = Field(default=None)
