"""
BranchBooks - Unit of Work

Multi-row writes (balance + payment/deduction rows + paired transaction)
commit together or not at all. Storage-level conflicts such as lock
timeouts, serialization failures and deadlocks are rolled back and surfaced
as a retryable WriteConflictException; nothing is retried here.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.error_handling import WriteConflictException, is_write_conflict


logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(db: AsyncSession, resource_type: str) -> AsyncIterator[AsyncSession]:
    """Run the enclosed writes as one transaction on ``db``."""
    try:
        yield db
        await db.commit()
    except DBAPIError as exc:
        await db.rollback()
        if not is_write_conflict(exc):
            raise
        logger.warning("Write conflict on %s: %s", resource_type, exc)
        raise WriteConflictException(resource_type, original_error=exc)
    except BaseException:
        await db.rollback()
        raise
