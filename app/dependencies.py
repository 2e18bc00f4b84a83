"""
BranchBooks - FastAPI Dependencies

Shared dependencies for database sessions, the caller's RequestContext and
the audit dispatcher.

Authentication happens upstream: the gateway forwards the authenticated
identity in the ``X-User-Id``, ``X-User-Role`` and ``X-Branch-Id`` headers.
"""

import uuid
from typing import Optional

from fastapi import Header, Request

from app.models.user import UserRole
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.utils.error_handling import AuthenticationException
from app.utils.permissions import RequestContext


def _parse_uuid(value: str, header: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except (ValueError, AttributeError):
        raise AuthenticationException(f"Invalid {header} header")


async def get_request_context(
    request: Request,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_branch_id: Optional[str] = Header(None),
) -> RequestContext:
    """
    Build the RequestContext for the current request.
    
    Missing or malformed identity headers are rejected with 401.
    """
    if not x_user_id or not x_user_role:
        raise AuthenticationException("Missing caller identity headers")
    
    try:
        role = UserRole(x_user_role.strip().upper())
    except ValueError:
        raise AuthenticationException(f"Unknown role: {x_user_role}")
    
    return RequestContext(
        user_id=_parse_uuid(x_user_id, "X-User-Id"),
        role=role,
        branch_id=_parse_uuid(x_branch_id, "X-Branch-Id") if x_branch_id else None,
        ip_address=request.client.host if request.client else None,
    )


def get_audit() -> AuditDispatcher:
    """Audit dispatcher used by request handlers."""
    return get_audit_dispatcher()
