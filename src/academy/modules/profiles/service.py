"""
Profile Service Layer

Password setup for profiles created by application approval.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.security import hash_password
from academy.modules.applications import repository as application_repository
from academy.modules.applications.errors import (
    ApplicationServiceError,
    ApplicationValidationError,
)
from academy.modules.applications.helpers import normalize_email
from academy.modules.applications.models import ApplicationStatus
from academy.modules.profiles.models import Profile
from academy.modules.profiles.repository import ProfileRepository

logger = logging.getLogger(__name__)


class ProfileNotFoundError(ApplicationServiceError):
    """Raised when no profile exists for an email."""

    def __init__(self):
        super().__init__(
            message="No account found for this email. Your application may still be under review.",
            error_code="PROFILE_NOT_FOUND",
            status_code=404,
        )


class PasswordAlreadySetError(ApplicationServiceError):
    """Raised when the profile already has a password."""

    def __init__(self):
        super().__init__(
            message="Password already set. Please sign in instead.",
            error_code="PASSWORD_ALREADY_SET",
            status_code=400,
        )


async def setup_password(
    db: AsyncSession,
    email: str,
    password: str,
    application_id: UUID | None = None,
) -> Profile:
    """
    Set the initial password for a profile and activate it.

    Args:
        db: Database session
        email: Email the profile was created with (any case)
        password: Plain-text password, already strength-checked by the schema
        application_id: Optional approved application the profile must be linked to

    Returns:
        The updated Profile with status Active

    Raises:
        ProfileNotFoundError: No profile for this email
        PasswordAlreadySetError: The profile already has a password
        ApplicationValidationError: The application is not approved for this profile
    """
    normalized = normalize_email(email)
    profile = await ProfileRepository.get_by_email(db, normalized)

    if profile is None:
        logger.warning("Password setup requested for unknown email")
        raise ProfileNotFoundError()

    if profile.has_password:
        logger.info(f"Password already set for profile {profile.id}")
        raise PasswordAlreadySetError()

    if application_id is not None:
        application = await application_repository.get_by_id(db, application_id)
        if (
            application is None
            or application.status != ApplicationStatus.APPROVED
            or application.profile_id != profile.id
        ):
            logger.warning(
                f"Password setup for profile {profile.id} referenced application "
                f"{application_id} which is not approved for it"
            )
            raise ApplicationValidationError(
                "Application not found or not approved for this account.",
            )

    profile = await ProfileRepository.set_password(db, profile, hash_password(password))

    logger.info(f"Password set for profile {profile.id}")
    return profile
