"""
Applications Schemas

Pydantic schemas for request validation and response serialization.
Field names are camelCase on the wire.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from academy.modules.applications.models import ApplicationStatus
from academy.modules.shared.schemas import CamelModel


# ============================================
# Decision Schemas
# ============================================


class ApproveRequest(CamelModel):
    """Request body for POST /applications/approve."""

    application_id: UUID
    approved_by: str | None = Field(None, max_length=255)


class ApproveResponse(CamelModel):
    """Structured outcome of an approval."""

    success: bool = True
    profile_id: UUID = Field(..., description="Canonical student identifier")
    is_existing_profile: bool = Field(
        ..., description="True if the applicant already had a profile"
    )
    needs_password_setup: bool = Field(
        ..., description="True if the profile has no password yet"
    )
    email_sent: bool
    email_error: str | None = None
    message: str = "Application approved successfully"


class RejectRequest(CamelModel):
    """Request body for POST /applications/reject."""

    application_id: UUID
    rejected_reason: str | None = Field(None, max_length=2000)


class RejectResponse(CamelModel):
    """Structured outcome of a rejection."""

    success: bool = True
    email_sent: bool
    email_error: str | None = None
    message: str = "Application rejected successfully"


# ============================================
# Admin Listing Schemas
# ============================================


class ApplicationListItem(CamelModel):
    """Application summary for the admin list view."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    country: str | None = None
    city: str | None = None
    preferred_cohort_id: UUID | None = None
    status: ApplicationStatus
    created_at: datetime


class ApplicationDetailResponse(ApplicationListItem):
    """Full application details for the admin detail view."""

    phone: str | None = None
    experience_level: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_reason: str | None = None
    rejected_at: datetime | None = None
    profile_id: UUID | None = None
    updated_at: datetime


class ApplicationListResponse(CamelModel):
    """Paginated list of applications."""

    items: list[ApplicationListItem]
    total: int
    skip: int
    limit: int
