"""
BranchBooks - Payables & Receivables Routers

Both resources expose the same endpoints; ``build_debt_router`` wires one
router per DebtService subclass. Payables are settled with ``/pay``,
receivables with ``/collect``.
"""

import uuid
from datetime import date
from typing import Optional, Type

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_audit, get_request_context
from app.models.debt import DebtStatus
from app.schemas.common import MessageResponse, PaginationMeta
from app.schemas.debt import (
    DebtCreateRequest,
    DebtDetailResponse,
    DebtListResponse,
    DebtPaymentRequest,
    DebtPaymentResponse,
    DebtResponse,
    DebtSummaryResponse,
    DebtUpdateRequest,
    LedgerTransactionResponse,
    SettlementResponse,
)
from app.services.audit_service import AuditDispatcher
from app.services.debt_service import DebtService, PayableService, ReceivableService
from app.utils.permissions import RequestContext


def build_debt_router(service_cls: Type[DebtService], settle_path: str) -> APIRouter:
    """Create the CRUD + settlement router for one kind of debt."""
    router = APIRouter()
    label = service_cls.kind.label
    noun = label.lower()
    
    @router.post(
        "",
        response_model=DebtDetailResponse,
        status_code=status.HTTP_201_CREATED,
        summary=f"Create a {noun}",
    )
    async def create_debt(
        data: DebtCreateRequest,
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
        audit: AuditDispatcher = Depends(get_audit),
    ):
        service = service_cls(db, audit=audit)
        debt = await service.create(context, **data.model_dump())
        return DebtDetailResponse.model_validate(debt)
    
    @router.get(
        "",
        response_model=DebtListResponse,
        summary=f"List {noun}s",
        description="Paginated, newest first. Search matches description, invoice number and contact name.",
    )
    async def list_debts(
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
        search: Optional[str] = Query(None),
        status_filter: Optional[DebtStatus] = Query(None, alias="status"),
        contact_id: Optional[uuid.UUID] = Query(None),
        branch_id: Optional[uuid.UUID] = Query(None),
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
    ):
        service = service_cls(db)
        result = await service.list(
            context,
            page=page,
            limit=limit,
            search=search,
            status=status_filter,
            contact_id=contact_id,
            branch_id=branch_id,
            start_date=start_date,
            end_date=end_date,
        )
        return DebtListResponse(
            items=[DebtResponse.model_validate(d) for d in result.items],
            pagination=PaginationMeta(
                total=result.total,
                page=result.page,
                limit=result.limit,
                total_pages=result.total_pages,
            ),
        )
    
    @router.get(
        "/summary",
        response_model=DebtSummaryResponse,
        summary=f"{label} summary",
    )
    async def get_summary(
        branch_id: Optional[uuid.UUID] = Query(None),
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
    ):
        service = service_cls(db)
        return DebtSummaryResponse.model_validate(await service.get_summary(context, branch_id))
    
    @router.get(
        "/{debt_id}",
        response_model=DebtDetailResponse,
        summary=f"Get a {noun}",
    )
    async def get_debt(
        debt_id: uuid.UUID,
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
    ):
        service = service_cls(db)
        return DebtDetailResponse.model_validate(await service.get(context, debt_id))
    
    @router.patch(
        "/{debt_id}",
        response_model=DebtDetailResponse,
        summary=f"Update a {noun}",
        description="Amounts and contact are fixed; status can only be set to CANCELLED.",
    )
    async def update_debt(
        debt_id: uuid.UUID,
        data: DebtUpdateRequest,
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
        audit: AuditDispatcher = Depends(get_audit),
    ):
        service = service_cls(db, audit=audit)
        debt = await service.update(context, debt_id, **data.model_dump(exclude_unset=True))
        return DebtDetailResponse.model_validate(debt)
    
    @router.delete(
        "/{debt_id}",
        response_model=MessageResponse,
        summary=f"Delete a {noun}",
        description="Only allowed while no payments are recorded.",
    )
    async def delete_debt(
        debt_id: uuid.UUID,
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
        audit: AuditDispatcher = Depends(get_audit),
    ):
        service = service_cls(db, audit=audit)
        await service.delete(context, debt_id)
        return MessageResponse(message=f"{label} deleted")
    
    @router.post(
        f"/{{debt_id}}/{settle_path}",
        response_model=SettlementResponse,
        status_code=status.HTTP_201_CREATED,
        summary=f"Record a {noun} {'payment' if settle_path == 'pay' else 'collection'}",
        description="Apply an amount to the remaining balance and book the paired ledger transaction.",
    )
    async def settle_debt(
        debt_id: uuid.UUID,
        data: DebtPaymentRequest,
        db: AsyncSession = Depends(get_async_session),
        context: RequestContext = Depends(get_request_context),
        audit: AuditDispatcher = Depends(get_audit),
    ):
        service = service_cls(db, audit=audit)
        result = await service.settle(
            context,
            debt_id,
            amount_paid=data.amount_paid,
            payment_date=data.payment_date,
            payment_method=data.payment_method,
            notes=data.notes,
        )
        return SettlementResponse(
            debt=DebtDetailResponse.model_validate(result.debt),
            payment=DebtPaymentResponse.model_validate(result.payment),
            transaction=LedgerTransactionResponse.model_validate(result.transaction),
        )
    
    return router


payables_router = build_debt_router(PayableService, "pay")
receivables_router = build_debt_router(ReceivableService, "collect")
