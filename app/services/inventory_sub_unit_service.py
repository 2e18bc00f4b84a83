"""
BranchBooks - Inventory Sub-Unit Service

Alternative selling units for inventory items (a crate sold by the bottle,
a sack sold by the kilo). Unit names are unique per item among live rows.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.audit import AuditEntityType
from app.models.inventory import InventoryItem, InventorySubUnit
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.services.ledger import require_positive, to_money
from app.services.unit_of_work import atomic
from app.utils.error_handling import (
    DuplicateEntryException,
    InvalidAmountException,
    MissingFieldException,
    NotFoundException,
)
from app.utils.permissions import RequestContext, ensure_branch_access, scope_filter
from app.utils.query import LIKE_ESCAPE, contains_pattern


logger = logging.getLogger(__name__)


def _ratio(value) -> Decimal:
    if isinstance(value, float):
        raise InvalidAmountException(value, "ratio", message="Ratio must be a decimal string, not a float.")
    try:
        ratio = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountException(value, "ratio")
    if not ratio.is_finite() or ratio <= 0:
        raise InvalidAmountException(value, "ratio")
    return ratio


class InventorySubUnitService:
    """CRUD for inventory sub-units."""

    def __init__(self, db: AsyncSession, audit: Optional[AuditDispatcher] = None):
        self.db = db
        self.audit = audit or get_audit_dispatcher()

    async def _get_item(self, context: RequestContext, item_id: uuid.UUID) -> InventoryItem:
        result = await self.db.execute(
            select(InventoryItem).where(
                InventoryItem.id == item_id,
                InventoryItem.is_deleted.is_(False),
            )
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundException("Inventory item", item_id)
        ensure_branch_access(context, item.branch_id)
        return item

    async def _ensure_unique(
        self,
        item_id: uuid.UUID,
        unit_name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count(InventorySubUnit.id)).where(
            InventorySubUnit.inventory_item_id == item_id,
            func.lower(InventorySubUnit.unit_name) == unit_name.lower(),
            InventorySubUnit.is_deleted.is_(False),
        )
        if exclude_id is not None:
            query = query.where(InventorySubUnit.id != exclude_id)
        if await self.db.scalar(query):
            raise DuplicateEntryException("Inventory sub-unit", "unit_name", unit_name)

    async def get(self, context: RequestContext, sub_unit_id: uuid.UUID) -> InventorySubUnit:
        result = await self.db.execute(
            select(InventorySubUnit)
            .options(selectinload(InventorySubUnit.inventory_item))
            .where(
                InventorySubUnit.id == sub_unit_id,
                InventorySubUnit.is_deleted.is_(False),
            )
            .execution_options(populate_existing=True)
        )
        sub_unit = result.scalar_one_or_none()
        if not sub_unit:
            raise NotFoundException("Inventory sub-unit", sub_unit_id)
        ensure_branch_access(context, sub_unit.inventory_item.branch_id)
        return sub_unit

    async def create(
        self,
        context: RequestContext,
        inventory_item_id: uuid.UUID,
        unit_name: str,
        ratio,
        selling_price,
    ) -> InventorySubUnit:
        unit_name = (unit_name or "").strip()
        if not unit_name:
            raise MissingFieldException("unit_name")
        ratio = _ratio(ratio)
        selling_price = require_positive(to_money(selling_price, "selling_price"), "selling_price")

        async with atomic(self.db, "inventory sub-unit"):
            item = await self._get_item(context, inventory_item_id)
            await self._ensure_unique(item.id, unit_name)
            sub_unit = InventorySubUnit(
                inventory_item_id=item.id,
                unit_name=unit_name,
                ratio=ratio,
                selling_price=selling_price,
                created_by_id=context.user_id,
            )
            self.db.add(sub_unit)
            await self.db.flush()

        logger.info("Sub-unit %s (%s) added to inventory item %s", sub_unit.id, unit_name, item.id)
        self.audit.created(context, AuditEntityType.INVENTORY_SUB_UNIT, sub_unit.id, {
            "inventory_item_id": item.id,
            "unit_name": unit_name,
            "ratio": ratio,
            "selling_price": selling_price,
        })
        return await self.get(context, sub_unit.id)

    async def list(
        self,
        context: RequestContext,
        inventory_item_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> List[InventorySubUnit]:
        query = (
            select(InventorySubUnit)
            .join(InventoryItem, InventorySubUnit.inventory_item_id == InventoryItem.id)
            .options(selectinload(InventorySubUnit.inventory_item))
            .where(
                InventorySubUnit.is_deleted.is_(False),
                InventoryItem.is_deleted.is_(False),
            )
        )
        query = scope_filter(context, query, InventoryItem.branch_id)
        if inventory_item_id:
            query = query.where(InventorySubUnit.inventory_item_id == inventory_item_id)
        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    InventorySubUnit.unit_name.ilike(pattern, escape=LIKE_ESCAPE),
                    InventoryItem.name.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        query = query.order_by(InventoryItem.name, InventorySubUnit.unit_name)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update(
        self,
        context: RequestContext,
        sub_unit_id: uuid.UUID,
        unit_name: Optional[str] = None,
        ratio=None,
        selling_price=None,
    ) -> InventorySubUnit:
        async with atomic(self.db, "inventory sub-unit"):
            sub_unit = await self.get(context, sub_unit_id)
            before = {
                "unit_name": sub_unit.unit_name,
                "ratio": sub_unit.ratio,
                "selling_price": sub_unit.selling_price,
            }

            if unit_name is not None:
                unit_name = unit_name.strip()
                if not unit_name:
                    raise MissingFieldException("unit_name")
                if unit_name.lower() != sub_unit.unit_name.lower():
                    await self._ensure_unique(sub_unit.inventory_item_id, unit_name, exclude_id=sub_unit.id)
                sub_unit.unit_name = unit_name
            if ratio is not None:
                sub_unit.ratio = _ratio(ratio)
            if selling_price is not None:
                sub_unit.selling_price = require_positive(
                    to_money(selling_price, "selling_price"), "selling_price",
                )
            sub_unit.updated_by_id = context.user_id
            await self.db.flush()

        after = {
            "unit_name": sub_unit.unit_name,
            "ratio": sub_unit.ratio,
            "selling_price": sub_unit.selling_price,
        }
        self.audit.updated(context, AuditEntityType.INVENTORY_SUB_UNIT, sub_unit.id, before, after)
        return sub_unit

    async def delete(self, context: RequestContext, sub_unit_id: uuid.UUID) -> None:
        async with atomic(self.db, "inventory sub-unit"):
            sub_unit = await self.get(context, sub_unit_id)
            sub_unit.mark_deleted(context.user_id, datetime.now(timezone.utc))
            await self.db.flush()

        logger.info("Sub-unit %s deleted", sub_unit_id)
        self.audit.deleted(context, AuditEntityType.INVENTORY_SUB_UNIT, sub_unit_id, {
            "inventory_item_id": sub_unit.inventory_item_id,
            "unit_name": sub_unit.unit_name,
        })
