"""
BranchBooks - Inventory Sub-Units Router
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_audit, get_request_context
from app.schemas.common import MessageResponse
from app.schemas.inventory import (
    SubUnitCreateRequest,
    SubUnitListResponse,
    SubUnitResponse,
    SubUnitUpdateRequest,
)
from app.services.audit_service import AuditDispatcher
from app.services.inventory_sub_unit_service import InventorySubUnitService
from app.utils.permissions import RequestContext


router = APIRouter()


@router.post(
    "",
    response_model=SubUnitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a sub-unit to an inventory item",
)
async def create_sub_unit(
    data: SubUnitCreateRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = InventorySubUnitService(db, audit=audit)
    sub_unit = await service.create(context, **data.model_dump())
    return SubUnitResponse.model_validate(sub_unit)


@router.get(
    "",
    response_model=SubUnitListResponse,
    summary="List sub-units",
)
async def list_sub_units(
    inventory_item_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = InventorySubUnitService(db)
    sub_units = await service.list(context, inventory_item_id=inventory_item_id, search=search)
    return SubUnitListResponse(
        items=[SubUnitResponse.model_validate(s) for s in sub_units],
        total=len(sub_units),
    )


@router.patch(
    "/{sub_unit_id}",
    response_model=SubUnitResponse,
    summary="Update a sub-unit",
)
async def update_sub_unit(
    sub_unit_id: uuid.UUID,
    data: SubUnitUpdateRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = InventorySubUnitService(db, audit=audit)
    sub_unit = await service.update(context, sub_unit_id, **data.model_dump(exclude_unset=True))
    return SubUnitResponse.model_validate(sub_unit)


@router.delete(
    "/{sub_unit_id}",
    response_model=MessageResponse,
    summary="Delete a sub-unit",
)
async def delete_sub_unit(
    sub_unit_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = InventorySubUnitService(db, audit=audit)
    await service.delete(context, sub_unit_id)
    return MessageResponse(message="Sub-unit deleted")
