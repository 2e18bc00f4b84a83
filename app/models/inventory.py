"""
BranchBooks - Inventory Models

Inventory items and the alternative selling units (sub-units) they can be
sold in, e.g. a crate sold by the bottle.
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, AuditMixin, SoftDeleteMixin


class InventoryItem(BaseModel, AuditMixin, SoftDeleteMixin):
    """A stocked item in a branch."""
    
    __tablename__ = "inventory_items"
    
    branch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("branches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=3),
        default=Decimal("0"),
        nullable=False,
    )
    cost_per_unit: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    
    sub_units: Mapped[List["InventorySubUnit"]] = relationship(
        "InventorySubUnit",
        back_populates="inventory_item",
    )
    
    def __repr__(self) -> str:
        return f"<InventoryItem(name={self.name}, unit={self.unit})>"


class InventorySubUnit(BaseModel, AuditMixin, SoftDeleteMixin):
    """
    A smaller selling unit of an inventory item.
    ``ratio`` is how many sub-units make up one base unit.
    """
    
    __tablename__ = "inventory_sub_units"
    
    inventory_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit_name: Mapped[str] = mapped_column(String(50), nullable=False)
    ratio: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=3),
        nullable=False,
    )
    selling_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    
    inventory_item: Mapped[InventoryItem] = relationship(InventoryItem, back_populates="sub_units")
    
    def __repr__(self) -> str:
        return f"<InventorySubUnit(unit_name={self.unit_name}, ratio={self.ratio})>"
