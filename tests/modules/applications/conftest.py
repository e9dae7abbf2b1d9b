"""
Fixtures for applications tests.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from academy.modules.applications.models import Application, ApplicationStatus
from academy.modules.cohorts.models import Cohort, CohortEnrollment, CohortStatus
from academy.modules.profiles.models import Profile, ProfileStatus
from academy.modules.students.models import Student, StudentStatus


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def sample_application_model():
    """A pending application (mock)."""
    app = MagicMock(spec=Application)
    app.id = uuid4()
    app.first_name = "Amara"
    app.last_name = "Okafor"
    app.email = "  Amara.Okafor@Example.com "
    app.phone = "+2348012345678"
    app.country = "Nigeria"
    app.city = "Lagos"
    app.experience_level = "beginner"
    app.preferred_cohort_id = None
    app.status = ApplicationStatus.PENDING
    app.profile_id = None
    app.created_at = datetime.now(UTC)
    return app


@pytest.fixture
def make_cohort(db):
    """Insert a cohort."""

    async def _make(name: str = "Cohort 1", seats_total: int | None = 30) -> Cohort:
        cohort = Cohort(
            name=name,
            seats_total=seats_total,
            level="beginner",
            status=CohortStatus.UPCOMING,
        )
        db.add(cohort)
        await db.commit()
        await db.refresh(cohort)
        return cohort

    return _make


@pytest.fixture
def make_application(db):
    """Insert a pending application."""

    async def _make(
        email: str = "amara.okafor@example.com",
        first_name: str = "Amara",
        last_name: str = "Okafor",
        preferred_cohort_id=None,
        status: ApplicationStatus = ApplicationStatus.PENDING,
        phone: str | None = "+2348012345678",
        country: str | None = "Nigeria",
        city: str | None = "Lagos",
    ) -> Application:
        application = Application(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            country=country,
            city=city,
            preferred_cohort_id=preferred_cohort_id,
            status=status,
        )
        db.add(application)
        await db.commit()
        await db.refresh(application)
        return application

    return _make


@pytest.fixture
def make_profile(db):
    """Insert an existing profile."""

    async def _make(
        email: str = "amara.okafor@example.com",
        name: str = "Amara Okafor",
        email_verified_at: datetime | None = datetime(2025, 3, 1, tzinfo=UTC),
        created_at: datetime | None = None,
        password_hash: str | None = None,
        cohort_id=None,
        phone: str | None = None,
        country: str | None = None,
        city: str | None = None,
    ) -> Profile:
        profile = Profile(
            id=uuid4(),
            email=email,
            name=name,
            phone=phone,
            country=country,
            city=city,
            cohort_id=cohort_id,
            email_verified_at=email_verified_at,
            password_hash=password_hash,
            status=ProfileStatus.ACTIVE if password_hash else ProfileStatus.PENDING_PASSWORD_SETUP,
        )
        if created_at is not None:
            profile.created_at = created_at
        db.add(profile)
        await db.commit()
        await db.refresh(profile)
        return profile

    return _make


@pytest.fixture
def make_student(db):
    """Insert a student with progress for an existing profile."""

    async def _make(profile: Profile, cohort_id=None, assignments_completed: int = 0, **counters):
        student = Student(
            id=profile.id,
            profile_id=profile.id,
            name=profile.name,
            email=profile.email,
            phone=profile.phone,
            country=profile.country,
            city=profile.city,
            cohort_id=cohort_id,
            status=StudentStatus.ACTIVE,
            assignments_completed=assignments_completed,
            progress_percent=counters.get("progress_percent", 0),
            projects_completed=counters.get("projects_completed", 0),
            live_sessions_attended=counters.get("live_sessions_attended", 0),
        )
        db.add(student)
        await db.commit()
        await db.refresh(student)
        return student

    return _make


@pytest.fixture
def make_enrollment(db):
    """Insert an enrollment row."""

    async def _make(cohort_id, student_id) -> CohortEnrollment:
        enrollment = CohortEnrollment(cohort_id=cohort_id, student_id=student_id)
        db.add(enrollment)
        await db.commit()
        return enrollment

    return _make
