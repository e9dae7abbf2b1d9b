"""
Profile Repository

Database operations for student profiles.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.storage import commit_or_raise
from academy.modules.profiles.models import Profile, ProfileStatus

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Repository for profile database operations."""

    @staticmethod
    async def get_by_id(db: AsyncSession, profile_id: UUID) -> Profile | None:
        """
        Get a profile by ID, always reading the stored row.

        Args:
            db: Database session
            profile_id: Canonical student identifier

        Returns:
            Profile instance or None if not found
        """
        return await db.get(Profile, profile_id, populate_existing=True)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Profile | None:
        """
        Get a profile by its (normalized) email address.

        Args:
            db: Database session
            email: Lower-cased, trimmed email

        Returns:
            Profile instance or None if not found
        """
        result = await db.execute(
            select(Profile).where(Profile.email == email).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        profile_id: UUID,
        email: str,
        name: str,
        phone: str | None = None,
        country: str | None = None,
        city: str | None = None,
        cohort_id: UUID | None = None,
    ) -> Profile:
        """
        Insert a new profile awaiting password setup.

        Raises:
            UniqueViolation: Email or ID already taken
            NotNullViolation: A required field is missing
            ForeignKeyViolation: cohort_id does not reference a cohort
        """
        profile = Profile(
            id=profile_id,
            email=email,
            name=name,
            phone=phone,
            country=country,
            city=city,
            cohort_id=cohort_id,
            status=ProfileStatus.PENDING_PASSWORD_SETUP,
        )

        db.add(profile)
        await commit_or_raise(db, Profile.__tablename__)
        await db.refresh(profile)

        logger.info(f"Created profile: {profile.id}")
        return profile

    @staticmethod
    async def update(db: AsyncSession, profile: Profile, **fields) -> Profile:
        """Apply field updates to a profile and commit."""
        for key, value in fields.items():
            if hasattr(profile, key):
                setattr(profile, key, value)

        await commit_or_raise(db, Profile.__tablename__)
        await db.refresh(profile)
        return profile

    @staticmethod
    async def set_password(db: AsyncSession, profile: Profile, password_hash: str) -> Profile:
        """Store a password hash and activate the profile."""
        return await ProfileRepository.update(
            db,
            profile,
            password_hash=password_hash,
            status=ProfileStatus.ACTIVE,
        )

    @staticmethod
    async def sync_from_student(db: AsyncSession, profile: Profile, student) -> Profile:
        """
        Copy the authoritative Student fields onto the profile.

        Status becomes Active when a password hash exists, otherwise the
        profile stays in Pending Password Setup.

        Args:
            db: Database session
            profile: Profile to update
            student: Student record the profile mirrors

        Returns:
            The updated Profile
        """
        return await ProfileRepository.update(
            db,
            profile,
            name=student.name,
            phone=student.phone,
            country=student.country,
            city=student.city,
            cohort_id=student.cohort_id,
            status=(
                ProfileStatus.ACTIVE
                if profile.password_hash
                else ProfileStatus.PENDING_PASSWORD_SETUP
            ),
        )
