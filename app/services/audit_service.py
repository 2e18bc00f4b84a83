"""
BranchBooks - Audit Trail Service

Audit logging is a best-effort side channel. Services hand entries to the
AuditDispatcher after their financial write has committed; the dispatcher
writes each entry on its own session in a background task. A failed audit
write is logged and dropped, never raised to the caller and never used to
roll anything back.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditAction, AuditEntityType, AuditLog
from app.utils.permissions import RequestContext


logger = logging.getLogger("branchbooks.audit")


def to_json_safe(value: Any) -> Any:
    """Recursively convert Decimals, UUIDs, dates and enums for a JSON column."""
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


@dataclass
class AuditEntry:
    """Audit log entry data."""
    entity_type: AuditEntityType
    entity_id: str
    action: AuditAction
    user_id: Optional[uuid.UUID] = None
    changes: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None


class AuditLogService:
    """Writes and reads audit log rows on a given session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(self, entry: AuditEntry) -> AuditLog:
        audit_log = AuditLog(
            user_id=entry.user_id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            changes=to_json_safe(entry.changes) if entry.changes is not None else None,
            ip_address=entry.ip_address,
        )
        self.db.add(audit_log)
        await self.db.flush()
        return audit_log

    @staticmethod
    def calculate_changes(
        old_values: Dict[str, Any],
        new_values: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Calculate what changed between old and new values."""
        changes = {}

        all_keys = set(old_values.keys()) | set(new_values.keys())

        for key in sorted(all_keys):
            old_val = old_values.get(key)
            new_val = new_values.get(key)

            if old_val != new_val:
                changes[key] = {
                    "old": old_val,
                    "new": new_val,
                }

        return changes

    async def get_audit_logs(
        self,
        entity_type: Optional[AuditEntityType] = None,
        entity_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        user_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Get audit logs with optional filtering, newest first."""
        query = select(AuditLog)

        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)

        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)

        if action:
            query = query.where(AuditLog.action == action)

        if user_id:
            query = query.where(AuditLog.user_id == user_id)

        query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())


class AuditDispatcher:
    """
    Fire-and-forget dispatch of audit entries.

    ``emit`` schedules the write and returns immediately. ``drain`` waits for
    outstanding writes (used on shutdown and in tests).
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        enabled: bool = True,
    ):
        self._session_factory = session_factory
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    def emit(self, entry: AuditEntry) -> None:
        if not self.enabled:
            return
        task = asyncio.get_running_loop().create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def created(
        self,
        context: RequestContext,
        entity_type: AuditEntityType,
        entity_id: Any,
        new_data: Dict[str, Any],
    ) -> None:
        self.emit(AuditEntry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=AuditAction.CREATE,
            user_id=context.user_id,
            changes={"new": new_data},
            ip_address=context.ip_address,
        ))

    def updated(
        self,
        context: RequestContext,
        entity_type: AuditEntityType,
        entity_id: Any,
        old_data: Dict[str, Any],
        new_data: Dict[str, Any],
    ) -> None:
        old_safe, new_safe = to_json_safe(old_data), to_json_safe(new_data)
        self.emit(AuditEntry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=AuditAction.UPDATE,
            user_id=context.user_id,
            changes={
                "old": old_safe,
                "new": new_safe,
                "diff": AuditLogService.calculate_changes(old_safe, new_safe),
            },
            ip_address=context.ip_address,
        ))

    def deleted(
        self,
        context: RequestContext,
        entity_type: AuditEntityType,
        entity_id: Any,
        deleted_data: Dict[str, Any],
    ) -> None:
        self.emit(AuditEntry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=AuditAction.DELETE,
            user_id=context.user_id,
            changes={"deleted": deleted_data},
            ip_address=context.ip_address,
        ))

    async def drain(self) -> None:
        """Wait for every scheduled audit write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _write(self, entry: AuditEntry) -> None:
        try:
            async with self._session_factory() as session:
                await AuditLogService(session).log(entry)
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write audit log for %s %s (%s)",
                entry.entity_type.value,
                entry.entity_id,
                entry.action.value,
            )


_dispatcher: Optional[AuditDispatcher] = None


def get_audit_dispatcher() -> AuditDispatcher:
    """Process-wide dispatcher bound to the application session factory."""
    global _dispatcher
    if _dispatcher is None:
        from app.config import settings
        from app.database import async_session_maker

        _dispatcher = AuditDispatcher(async_session_maker, enabled=settings.audit_log_enabled)
    return _dispatcher
