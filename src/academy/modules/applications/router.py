"""
Applications Decision Router

Endpoints administrators call to decide on a student application.

Endpoints:
- POST /applications/approve - Approve and enroll the applicant
- POST /applications/reject - Reject the application

Security:
- Both endpoints require a valid JWT token with the admin role
- Rate limited per admin to stop runaway clients
- Retrying an approval after a failure or timeout is safe
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.auth import AdminUser, get_current_admin_user
from academy.core.database import get_db
from academy.core.rate_limit import RateLimitExceeded, check_rate_limit
from academy.modules.applications import service
from academy.modules.applications.errors import ApplicationServiceError
from academy.modules.applications.schemas import (
    ApproveRequest,
    ApproveResponse,
    RejectRequest,
    RejectResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_APPROVE = (10, 60)  # 10 approvals per minute
RATE_LIMIT_REJECT = (10, 60)  # 10 rejections per minute


async def _check_admin_rate_limit(
    admin: AdminUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for an admin action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"admin:{action}:{admin.id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for admin {admin.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: ApplicationServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": f"Failed to {action}. Please try again.",
        },
    )


# ============================================
# Endpoints
# ============================================


@router.post(
    "/approve",
    response_model=ApproveResponse,
    response_model_exclude_none=True,
    summary="Approve application",
    description=(
        "Approve a pending application: create or reuse the applicant's profile, "
        "enroll them as a student in their cohort, unlock the first chapter and "
        "email them. The email is best-effort and never undoes the approval."
    ),
)
async def approve_application(
    data: ApproveRequest,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> ApproveResponse:
    await _check_admin_rate_limit(admin, "approve", *RATE_LIMIT_APPROVE)

    approved_by = data.approved_by or admin.email
    logger.info(f"Admin {admin.id} approving application {data.application_id}")

    try:
        result = await service.approve_application(db, data.application_id, approved_by)
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("approve application", e) from e

    return ApproveResponse(
        profile_id=result.profile_id,
        is_existing_profile=result.is_existing_profile,
        needs_password_setup=result.needs_password_setup,
        email_sent=result.email_sent,
        email_error=result.email_error,
    )


@router.post(
    "/reject",
    response_model=RejectResponse,
    response_model_exclude_none=True,
    summary="Reject application",
    description="Reject a pending application and notify the applicant.",
)
async def reject_application(
    data: RejectRequest,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> RejectResponse:
    await _check_admin_rate_limit(admin, "reject", *RATE_LIMIT_REJECT)

    logger.info(f"Admin {admin.id} rejecting application {data.application_id}")

    try:
        result = await service.reject_application(
            db,
            data.application_id,
            rejected_reason=data.rejected_reason,
            rejected_by=admin.email,
        )
    except ApplicationServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        raise _internal_error("reject application", e) from e

    return RejectResponse(email_sent=result.email_sent, email_error=result.email_error)
