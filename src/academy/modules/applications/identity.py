"""
Identity Resolution

Decides which Profile an application attaches to and therefore which
canonical student identifier every downstream record receives.

A profile is looked up by normalized email. When none exists it is created
with the application's own id as its primary key; the unique constraint on
email arbitrates concurrent creation, and the losing request continues with
the winner's profile.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.config import settings
from academy.core.storage import (
    ForeignKeyViolation,
    NotNullViolation,
    StorageError,
    UniqueViolation,
    resolve_or_create,
)
from academy.modules.applications.errors import (
    ApplicationValidationError,
    CohortReferenceError,
    EmailNotVerifiedError,
    ProfileConflictError,
    StorageFailureError,
)
from academy.modules.applications.helpers import get_applicant_email, get_applicant_name
from academy.modules.applications.models import Application
from academy.modules.profiles.models import Profile
from academy.modules.profiles.repository import ProfileRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    The profile an application is attached to.

    Plain values only, so later session rollbacks cannot expire them.
    """

    profile_id: UUID
    email: str
    name: str
    is_existing_profile: bool
    needs_password_setup: bool
    phone: str | None = None
    country: str | None = None
    city: str | None = None


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def is_grandfathered(profile: Profile) -> bool:
    """True if the profile predates mandatory email verification."""
    if profile.created_at is None:
        return False
    cutoff = _as_utc(settings.email_verification_required_since)
    return _as_utc(profile.created_at) < cutoff


def is_email_verified(profile: Profile) -> bool:
    """A profile counts as verified if it has verified or is grandfathered."""
    return profile.email_verified_at is not None or is_grandfathered(profile)


class IdentityResolver:
    """Resolves or creates the Profile for an application."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(
        self,
        application: Application,
        cohort_id: UUID | None = None,
    ) -> ResolvedIdentity:
        """
        Find or create the profile for an application.

        Args:
            application: The application being approved
            cohort_id: Cohort for a newly created profile, already checked to exist

        Returns:
            ResolvedIdentity for the attached profile

        Raises:
            ApplicationValidationError: Email or name missing, or a required field was null
            EmailNotVerifiedError: An existing profile has not verified its email
            ProfileConflictError: The insert conflicted and no winner could be read
            CohortReferenceError: The cohort was deleted before the insert
            StorageFailureError: Any other storage failure
        """
        application_id = application.id
        email = get_applicant_email(application)
        name = get_applicant_name(application)

        if not email or "@" not in email:
            raise ApplicationValidationError(
                "Application has no valid email address",
                details=f"Got {application.email!r}",
            )
        if not name:
            raise ApplicationValidationError("Application has no applicant name")

        profile = await ProfileRepository.get_by_email(self.db, email)
        if profile is not None:
            logger.info(f"Found existing profile {profile.id} for application {application_id}")
        else:
            profile = await self._create_profile(application, email, name, cohort_id)

        is_existing = profile.id != application_id

        # Profiles minted from this application (earlier attempt or a concurrent
        # duplicate) were created by this workflow and are not gated.
        if is_existing and not is_email_verified(profile):
            logger.warning(
                f"Blocking approval of {application_id}: profile {profile.id} email not verified"
            )
            raise EmailNotVerifiedError(email)

        # Blank application fields never overwrite contact data already on file
        return ResolvedIdentity(
            profile_id=profile.id,
            email=email,
            name=name,
            is_existing_profile=is_existing,
            needs_password_setup=not profile.password_hash,
            phone=application.phone or profile.phone,
            country=application.country or profile.country,
            city=application.city or profile.city,
        )

    async def _create_profile(
        self,
        application: Application,
        email: str,
        name: str,
        cohort_id: UUID | None,
    ) -> Profile:
        application_id = application.id
        phone = application.phone
        country = application.country
        city = application.city

        try:
            profile, created = await resolve_or_create(
                lambda: ProfileRepository.get_by_email(self.db, email),
                lambda: ProfileRepository.create(
                    self.db,
                    profile_id=application_id,
                    email=email,
                    name=name,
                    phone=phone,
                    country=country,
                    city=city,
                    cohort_id=cohort_id,
                ),
                label=f"profile for {email}",
            )
        except UniqueViolation as e:
            logger.error(
                f"Profile insert for application {application_id} conflicted on "
                f"{e.field or 'unknown field'} and no profile was found by email",
                exc_info=True,
            )
            if e.field == "id":
                raise ProfileConflictError(
                    f"A profile with id {application_id} already exists under a different email",
                    code=e.code,
                    hint="The profile's email may have changed. Fix it before retrying.",
                ) from e
            raise ProfileConflictError(
                "An account with this email already exists", code=e.code
            ) from e
        except NotNullViolation as e:
            raise ApplicationValidationError(
                "Missing required profile field",
                details=f"{e.field or 'unknown'} must not be empty",
                code=e.code,
            ) from e
        except ForeignKeyViolation as e:
            raise CohortReferenceError(cohort_id, code=e.code) from e
        except StorageError as e:
            raise StorageFailureError(
                "Failed to create profile", details=e.message, code=e.code
            ) from e

        if created:
            logger.info(f"Created profile {profile.id} for application {application_id}")
        else:
            logger.info(
                f"Profile for application {application_id} appeared before insert; "
                f"using {profile.id}"
            )
        return profile
