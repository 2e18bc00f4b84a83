"""
BranchBooks - Inventory Sub-Unit Schemas
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ORMModel


class SubUnitCreateRequest(BaseModel):
    inventory_item_id: UUID
    unit_name: str = Field(..., min_length=1, max_length=50)
    ratio: Decimal = Field(..., gt=0, description="Sub-units per base unit")
    selling_price: Decimal = Field(..., gt=0)


class SubUnitUpdateRequest(BaseModel):
    unit_name: Optional[str] = Field(None, min_length=1, max_length=50)
    ratio: Optional[Decimal] = Field(None, gt=0)
    selling_price: Optional[Decimal] = Field(None, gt=0)


class InventoryItemBrief(ORMModel):
    id: UUID
    name: str
    unit: str


class SubUnitResponse(ORMModel):
    id: UUID
    inventory_item_id: UUID
    unit_name: str
    ratio: Decimal
    selling_price: Decimal
    inventory_item: Optional[InventoryItemBrief] = None


class SubUnitListResponse(BaseModel):
    items: List[SubUnitResponse]
    total: int
