"""
BranchBooks - Inventory Sub-Unit Tests
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from app.models.audit import AuditAction
from app.services.inventory_sub_unit_service import InventorySubUnitService
from app.utils.error_handling import (
    BranchAccessDeniedException,
    DuplicateEntryException,
    InvalidAmountException,
    MissingFieldException,
    NotFoundException,
)


class TestCreateSubUnit:
    
    @pytest.mark.asyncio
    async def test_create(self, db_session, audit, accountant_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        
        sub_unit = await service.create(
            accountant_context,
            inventory_item_id=test_inventory_item.id,
            unit_name=" bottle ",
            ratio="24",
            selling_price=Decimal("1.50"),
        )
        
        assert sub_unit.unit_name == "bottle"
        assert sub_unit.ratio == Decimal("24")
        assert sub_unit.selling_price == Decimal("1.50")
        assert sub_unit.inventory_item.name == "Bottled Water"
        assert audit.entries[-1].action == AuditAction.CREATE
    
    @pytest.mark.asyncio
    async def test_duplicate_name_is_case_insensitive(self, db_session, audit, admin_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        item_id = test_inventory_item.id
        await service.create(admin_context, item_id, "bottle", "24", Decimal("1.50"))
        
        with pytest.raises(DuplicateEntryException):
            await service.create(admin_context, item_id, "Bottle", "12", Decimal("3.00"))
    
    @pytest.mark.asyncio
    async def test_blank_name(self, db_session, audit, admin_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        
        with pytest.raises(MissingFieldException):
            await service.create(admin_context, test_inventory_item.id, "   ", "24", Decimal("1.50"))
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("ratio", ["0", "-2", "abc", 2.5])
    async def test_invalid_ratio(self, db_session, audit, admin_context, test_inventory_item, ratio):
        service = InventorySubUnitService(db_session, audit=audit)
        
        with pytest.raises(InvalidAmountException):
            await service.create(admin_context, test_inventory_item.id, "bottle", ratio, Decimal("1.50"))
    
    @pytest.mark.asyncio
    async def test_unknown_item(self, db_session, audit, admin_context):
        service = InventorySubUnitService(db_session, audit=audit)
        
        with pytest.raises(NotFoundException):
            await service.create(admin_context, uuid4(), "bottle", "24", Decimal("1.50"))
    
    @pytest.mark.asyncio
    async def test_other_branch_denied(self, db_session, audit, other_accountant_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        item_id = test_inventory_item.id
        
        with pytest.raises(BranchAccessDeniedException):
            await service.create(other_accountant_context, item_id, "bottle", "24", Decimal("1.50"))


class TestManageSubUnits:
    
    @pytest.mark.asyncio
    async def test_update(self, db_session, audit, admin_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        sub_unit = await service.create(admin_context, test_inventory_item.id, "bottle", "24", Decimal("1.50"))
        
        updated = await service.update(admin_context, sub_unit.id, unit_name="Bottle", selling_price=Decimal("1.75"))
        
        assert updated.unit_name == "Bottle"
        assert updated.selling_price == Decimal("1.75")
        assert updated.ratio == Decimal("24")
        entry = audit.entries[-1]
        assert entry.action == AuditAction.UPDATE
        assert entry.changes["diff"]["selling_price"] == {"old": "1.50", "new": "1.75"}
    
    @pytest.mark.asyncio
    async def test_rename_onto_existing_name(self, db_session, audit, admin_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        item_id = test_inventory_item.id
        await service.create(admin_context, item_id, "bottle", "24", Decimal("1.50"))
        pack = await service.create(admin_context, item_id, "six-pack", "4", Decimal("8.00"))
        pack_id = pack.id
        
        with pytest.raises(DuplicateEntryException):
            await service.update(admin_context, pack_id, unit_name="BOTTLE")
    
    @pytest.mark.asyncio
    async def test_delete_frees_the_name(self, db_session, audit, admin_context, test_inventory_item):
        service = InventorySubUnitService(db_session, audit=audit)
        item_id = test_inventory_item.id
        sub_unit = await service.create(admin_context, item_id, "bottle", "24", Decimal("1.50"))
        sub_unit_id = sub_unit.id
        
        await service.delete(admin_context, sub_unit_id)
        
        with pytest.raises(NotFoundException):
            await service.get(admin_context, sub_unit_id)
        recreated = await service.create(admin_context, item_id, "bottle", "20", Decimal("1.60"))
        assert recreated.id != sub_unit_id
    
    @pytest.mark.asyncio
    async def test_list_scoped_and_searchable(
        self, db_session, audit, admin_context, accountant_context, other_accountant_context,
        test_inventory_item,
    ):
        service = InventorySubUnitService(db_session, audit=audit)
        await service.create(admin_context, test_inventory_item.id, "bottle", "24", Decimal("1.50"))
        await service.create(admin_context, test_inventory_item.id, "six-pack", "4", Decimal("8.00"))
        
        assert len(await service.list(accountant_context)) == 2
        assert await service.list(other_accountant_context) == []
        assert [s.unit_name for s in await service.list(admin_context, search="six")] == ["six-pack"]
        assert len(await service.list(admin_context, search="water")) == 2
        assert len(await service.list(admin_context, inventory_item_id=test_inventory_item.id)) == 2
