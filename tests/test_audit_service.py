"""
BranchBooks - Audit Trail Tests
"""

import logging
import uuid
from datetime import date
from decimal import Decimal

import pytest

from app.models.audit import AuditAction, AuditEntityType
from app.models.debt import DebtStatus
from app.services.audit_service import (
    AuditDispatcher,
    AuditEntry,
    AuditLogService,
    to_json_safe,
)


class TestJsonSafe:
    
    def test_converts_nested_values(self):
        advance_id = uuid.uuid4()
        value = to_json_safe({
            "amount": Decimal("50.00"),
            "status": DebtStatus.PARTIAL,
            "date": date(2025, 3, 1),
            "items": [{"advance_id": advance_id}],
        })
        
        assert value == {
            "amount": "50.00",
            "status": "PARTIAL",
            "date": "2025-03-01",
            "items": [{"advance_id": str(advance_id)}],
        }
    
    def test_calculate_changes(self):
        changes = AuditLogService.calculate_changes(
            {"remaining": "300.00", "status": "PARTIAL", "notes": None},
            {"remaining": "0.00", "status": "PAID", "notes": None},
        )
        
        assert changes == {
            "remaining": {"old": "300.00", "new": "0.00"},
            "status": {"old": "PARTIAL", "new": "PAID"},
        }


class TestAuditDispatcher:
    
    @pytest.mark.asyncio
    async def test_writes_entry_on_its_own_session(self, session_factory, admin_context):
        dispatcher = AuditDispatcher(session_factory)
        payable_id = uuid.uuid4()
        
        dispatcher.created(admin_context, AuditEntityType.PAYABLE, payable_id, {
            "original_amount": Decimal("500.00"),
            "status": DebtStatus.ACTIVE,
        })
        await dispatcher.drain()
        
        async with session_factory() as session:
            logs = await AuditLogService(session).get_audit_logs(entity_type=AuditEntityType.PAYABLE)
        
        assert len(logs) == 1
        assert logs[0].entity_id == str(payable_id)
        assert logs[0].action == AuditAction.CREATE
        assert logs[0].user_id == admin_context.user_id
        assert logs[0].changes == {"new": {"original_amount": "500.00", "status": "ACTIVE"}}
    
    @pytest.mark.asyncio
    async def test_failed_write_is_logged_not_raised(self, caplog, admin_context):
        def broken_factory():
            raise RuntimeError("database unavailable")
        
        dispatcher = AuditDispatcher(broken_factory)
        
        with caplog.at_level(logging.ERROR, logger="branchbooks.audit"):
            dispatcher.deleted(admin_context, AuditEntityType.PAYABLE, uuid.uuid4(), {})
            await dispatcher.drain()
        
        assert "Failed to write audit log" in caplog.text
    
    @pytest.mark.asyncio
    async def test_disabled_dispatcher_skips_writes(self, admin_context):
        def factory():
            raise AssertionError("no session should be opened")
        
        dispatcher = AuditDispatcher(factory, enabled=False)
        dispatcher.emit(AuditEntry(
            entity_type=AuditEntityType.ADVANCE,
            entity_id="x",
            action=AuditAction.CREATE,
        ))
        await dispatcher.drain()
    
    @pytest.mark.asyncio
    async def test_update_entry_carries_diff(self, admin_context):
        recorded = []
        
        class Capturing(AuditDispatcher):
            def emit(self, entry):
                recorded.append(entry)
        
        Capturing(session_factory=None).updated(
            admin_context,
            AuditEntityType.PAYABLE,
            uuid.uuid4(),
            {"status": DebtStatus.ACTIVE, "description": "Old"},
            {"status": DebtStatus.CANCELLED, "description": "Old"},
        )
        
        assert recorded[0].changes["diff"] == {"status": {"old": "ACTIVE", "new": "CANCELLED"}}
