"""
Profiles Router

Public endpoints for newly approved students.

Endpoints:
- POST /profiles/setup-password - Set the initial password for an approved profile
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_db
from academy.modules.applications.errors import ApplicationServiceError
from academy.modules.profiles import service
from academy.modules.profiles.schemas import SetupPasswordRequest, SetupPasswordResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/setup-password",
    response_model=SetupPasswordResponse,
    status_code=status.HTTP_200_OK,
    summary="Set initial password",
    description="Set the first password for a profile created on application approval.",
)
async def setup_password(
    data: SetupPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> SetupPasswordResponse:
    try:
        profile = await service.setup_password(
            db,
            email=data.email,
            password=data.password,
            application_id=data.application_id,
        )
    except ApplicationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e
    except Exception as e:
        logger.error(f"Unexpected error during password setup: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "Failed to set password. Please try again.",
            },
        ) from e

    return SetupPasswordResponse(profile_id=profile.id, status=profile.status)
