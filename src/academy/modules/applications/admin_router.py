"""
Applications Admin Router

Read-only endpoints for the admin applications dashboard.

Endpoints:
- GET /admin/applications - List applications, newest first
- GET /admin/applications/{id} - Get application details
"""

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.auth import AdminUser, get_current_admin_user
from academy.core.database import get_db
from academy.modules.applications import service
from academy.modules.applications.errors import ApplicationServiceError
from academy.modules.applications.models import ApplicationStatus
from academy.modules.applications.schemas import (
    ApplicationDetailResponse,
    ApplicationListItem,
    ApplicationListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

StatusFilter = Literal["Pending", "Approved", "Rejected", "all"]


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List applications",
)
async def list_applications(
    status_filter: StatusFilter = Query("all", alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> ApplicationListResponse:
    status = None if status_filter == "all" else ApplicationStatus(status_filter)

    applications, total = await service.admin_get_applications_list(
        db, status=status, skip=skip, limit=limit
    )

    return ApplicationListResponse(
        items=[ApplicationListItem.model_validate(app) for app in applications],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    summary="Get application details",
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> ApplicationDetailResponse:
    try:
        application = await service.admin_get_application_detail(db, application_id)
    except ApplicationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e

    return ApplicationDetailResponse.model_validate(application)
