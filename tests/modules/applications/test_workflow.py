"""
Store-backed tests for the approval saga.

These run the real repositories against SQLite so unique and foreign-key
constraints arbitrate exactly as they do in production. Assertions read
through a fresh session so nothing is served from a stale identity map.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError

from academy.core.config import settings
from academy.core.email import EmailKind
from academy.modules.applications.errors import (
    ApplicationAlreadyApprovedError,
    ApplicationAlreadyRejectedError,
    ApplicationNotFoundError,
    CohortFullError,
    EmailNotVerifiedError,
    StorageFailureError,
)
from academy.modules.applications.models import Application, ApplicationStatus
from academy.modules.applications.service import (
    CONCURRENT_APPROVAL_EMAIL_ERROR,
    approve_application,
    reject_application,
)
from academy.modules.cohorts.models import CohortEnrollment
from academy.modules.cohorts.repository import CohortEnrollmentRepository
from academy.modules.profiles.models import Profile, ProfileStatus
from academy.modules.profiles.repository import ProfileRepository
from academy.modules.students.models import ChapterProgress, Student, StudentStatus
from academy.modules.students.repository import ChapterProgressRepository


async def _count(session_factory, model, *criteria) -> int:
    async with session_factory() as check:
        result = await check.execute(select(func.count()).select_from(model).where(*criteria))
        return result.scalar()


async def _load(session_factory, model, *criteria):
    async with session_factory() as check:
        result = await check.execute(select(model).where(*criteria))
        return result.scalars().all()


# ============================================
# Identifier propagation
# ============================================


@pytest.mark.asyncio
async def test_new_applicant_gets_one_identifier_everywhere(
    db, session_factory, make_cohort, make_application, notifier
):
    """Every record created for a new applicant shares the application's id."""
    cohort = await make_cohort()
    cohort_id = cohort.id
    application = await make_application(
        email="  Amara.Okafor@Example.com ", preferred_cohort_id=cohort_id
    )
    app_id = application.id

    result = await approve_application(db, app_id, "admin@academy.dev", notifier=notifier)

    assert result.profile_id == app_id
    assert result.is_existing_profile is False
    assert result.needs_password_setup is True
    assert result.email_sent is True
    assert result.email_error is None

    [profile] = await _load(session_factory, Profile)
    [student] = await _load(session_factory, Student)
    [enrollment] = await _load(session_factory, CohortEnrollment)
    [chapter] = await _load(session_factory, ChapterProgress)
    [stored_app] = await _load(session_factory, Application, Application.id == app_id)

    assert profile.id == app_id
    assert profile.email == "amara.okafor@example.com"
    assert profile.status == ProfileStatus.PENDING_PASSWORD_SETUP
    assert profile.cohort_id == cohort_id
    assert student.id == app_id
    assert student.profile_id == app_id
    assert student.status == StudentStatus.ENROLLED
    assert student.cohort_id == cohort_id
    assert enrollment.student_id == app_id
    assert enrollment.cohort_id == cohort_id
    assert chapter.student_id == app_id
    assert chapter.chapter_number == settings.first_chapter_number
    assert chapter.is_unlocked is True
    assert chapter.unlocked_at is not None
    assert stored_app.status == ApplicationStatus.APPROVED
    assert stored_app.profile_id == app_id
    assert stored_app.approved_by == "admin@academy.dev"
    assert stored_app.approved_at is not None


@pytest.mark.asyncio
async def test_approval_email_carries_cohort_and_setup_flag(
    db, make_cohort, make_application, notifier
):
    cohort = await make_cohort(name="Cohort 7")
    application = await make_application(preferred_cohort_id=cohort.id)

    await approve_application(db, application.id, notifier=notifier)

    [(kind, recipient, context)] = notifier.sent
    assert kind == EmailKind.APPLICATION_APPROVED
    assert recipient == "amara.okafor@example.com"
    assert context["name"] == "Amara Okafor"
    assert context["cohort_name"] == "Cohort 7"
    assert context["needs_password_setup"] is True


@pytest.mark.asyncio
async def test_approval_after_preferred_cohort_deleted(
    db, session_factory, make_cohort, make_application, notifier
):
    """Deleting the requested cohort before approval leaves the student unassigned."""
    cohort = await make_cohort()
    cohort_id = cohort.id
    application = await make_application(preferred_cohort_id=cohort_id)
    app_id = application.id
    await db.delete(cohort)
    await db.commit()

    result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == app_id
    [student] = await _load(session_factory, Student)
    assert student.cohort_id is None
    assert await _count(session_factory, CohortEnrollment) == 0
    assert await _count(session_factory, ChapterProgress) == 1


# ============================================
# Existing profiles
# ============================================


@pytest.mark.asyncio
async def test_existing_profile_keeps_progress_and_identifier(
    db, session_factory, make_cohort, make_application, make_profile, make_student, notifier
):
    """Approval reuses the existing profile id and never resets progress."""
    cohort = await make_cohort()
    cohort_id = cohort.id
    profile = await make_profile(password_hash="$2b$12$existinghash")
    profile_id = profile.id
    await make_student(profile, assignments_completed=3, progress_percent=40)
    application = await make_application(preferred_cohort_id=cohort_id)
    app_id = application.id

    result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == profile_id
    assert result.is_existing_profile is True
    assert result.needs_password_setup is False

    [student] = await _load(session_factory, Student)
    assert student.id == profile_id
    assert student.assignments_completed == 3
    assert student.progress_percent == 40
    assert student.status == StudentStatus.ENROLLED
    assert student.cohort_id == cohort_id

    [profile_row] = await _load(session_factory, Profile)
    assert profile_row.status == ProfileStatus.ACTIVE
    assert profile_row.cohort_id == cohort_id

    [enrollment] = await _load(session_factory, CohortEnrollment)
    assert enrollment.student_id == profile_id
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.profile_id == profile_id

    assert notifier.sent[0][2]["needs_password_setup"] is False


@pytest.mark.asyncio
async def test_blank_application_contact_keeps_stored_contact(
    db, session_factory, make_application, make_profile, make_student, notifier
):
    """An application without phone or city leaves the stored ones alone."""
    profile = await make_profile(phone="+233200000000", country="Ghana", city="Accra")
    profile_id = profile.id
    await make_student(profile)
    application = await make_application(phone=None, country="Ghana", city=None)

    await approve_application(db, application.id, notifier=notifier)

    [student] = await _load(session_factory, Student, Student.id == profile_id)
    assert student.phone == "+233200000000"
    assert student.city == "Accra"
    [profile_row] = await _load(session_factory, Profile, Profile.id == profile_id)
    assert profile_row.phone == "+233200000000"
    assert profile_row.city == "Accra"


@pytest.mark.asyncio
async def test_new_student_inherits_profile_contact(
    db, session_factory, make_application, make_profile, notifier
):
    profile = await make_profile(phone="+233200000000", country="Ghana", city="Accra")
    profile_id = profile.id
    application = await make_application(phone=None, country=None, city="Kumasi")

    await approve_application(db, application.id, notifier=notifier)

    [student] = await _load(session_factory, Student, Student.id == profile_id)
    assert student.phone == "+233200000000"
    assert student.country == "Ghana"
    assert student.city == "Kumasi"
    [profile_row] = await _load(session_factory, Profile, Profile.id == profile_id)
    assert profile_row.phone == "+233200000000"
    assert profile_row.city == "Kumasi"


@pytest.mark.asyncio
async def test_existing_student_cohort_is_not_reassigned(
    db, session_factory, make_cohort, make_application, make_profile, make_student, notifier
):
    current = await make_cohort(name="Current")
    requested = await make_cohort(name="Requested")
    current_id, requested_id = current.id, requested.id
    profile = await make_profile()
    profile_id = profile.id
    await make_student(profile, cohort_id=current_id)
    application = await make_application(preferred_cohort_id=requested_id)

    await approve_application(db, application.id, notifier=notifier)

    [student] = await _load(session_factory, Student)
    assert student.cohort_id == current_id
    [enrollment] = await _load(session_factory, CohortEnrollment)
    assert enrollment.cohort_id == current_id
    assert enrollment.student_id == profile_id


# ============================================
# Verification gate
# ============================================


@pytest.mark.asyncio
async def test_unverified_profile_blocks_approval(
    db, session_factory, make_application, make_profile, notifier
):
    await make_profile(email_verified_at=None, created_at=datetime(2025, 6, 1, tzinfo=UTC))
    application = await make_application()
    app_id = application.id

    with pytest.raises(EmailNotVerifiedError) as exc_info:
        await approve_application(db, app_id, notifier=notifier)

    assert exc_info.value.status_code == 400
    assert exc_info.value.to_detail()["emailNotVerified"] is True
    assert await _count(session_factory, Student) == 0
    assert await _count(session_factory, ChapterProgress) == 0
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.PENDING
    assert stored_app.profile_id is None
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_profile_created_before_cutoff_is_grandfathered(
    db, session_factory, make_application, make_profile, notifier
):
    profile = await make_profile(
        email_verified_at=None, created_at=datetime(2024, 6, 1, tzinfo=UTC)
    )
    profile_id = profile.id
    application = await make_application()

    result = await approve_application(db, application.id, notifier=notifier)

    assert result.profile_id == profile_id
    assert result.is_existing_profile is True
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED


# ============================================
# Terminal states
# ============================================


@pytest.mark.asyncio
async def test_approving_approved_application_writes_nothing(
    db, session_factory, make_application, notifier
):
    application = await make_application()
    app_id = application.id
    await approve_application(db, app_id, notifier=notifier)
    notifier.sent.clear()

    with (
        patch.object(db, "commit", new=AsyncMock(wraps=db.commit)) as commit_spy,
        patch.object(db, "add", wraps=db.add) as add_spy,
    ):
        with pytest.raises(ApplicationAlreadyApprovedError) as exc_info:
            await approve_application(db, app_id, notifier=notifier)

    assert exc_info.value.status_code == 409
    assert commit_spy.await_count == 0
    assert add_spy.call_count == 0
    assert notifier.sent == []
    assert await _count(session_factory, Profile) == 1
    assert await _count(session_factory, Student) == 1


@pytest.mark.asyncio
async def test_approving_rejected_application_fails(db, make_application, notifier):
    application = await make_application(status=ApplicationStatus.REJECTED)

    with pytest.raises(ApplicationAlreadyRejectedError):
        await approve_application(db, application.id, notifier=notifier)


@pytest.mark.asyncio
async def test_approving_unknown_application_fails(db, notifier):
    with pytest.raises(ApplicationNotFoundError):
        await approve_application(db, uuid4(), notifier=notifier)


# ============================================
# Idempotent resumption
# ============================================


@pytest.mark.asyncio
async def test_retry_after_enrollment_failure_resumes(
    db, session_factory, make_cohort, make_application, make_profile, make_student, notifier
):
    """A store fault at the enrollment step leaves the application Pending; a retry completes it."""
    cohort = await make_cohort()
    cohort_id = cohort.id
    profile = await make_profile()
    profile_id = profile.id
    await make_student(profile, assignments_completed=3, projects_completed=1)
    application = await make_application(preferred_cohort_id=cohort_id)
    app_id = application.id

    fault = OperationalError("INSERT INTO cohort_enrollment", {}, Exception("disk I/O error"))
    with patch.object(
        CohortEnrollmentRepository, "create", new=AsyncMock(side_effect=fault)
    ):
        with pytest.raises(StorageFailureError) as exc_info:
            await approve_application(db, app_id, notifier=notifier)

    assert exc_info.value.status_code == 500
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.PENDING
    assert await _count(session_factory, CohortEnrollment) == 0
    assert notifier.sent == []

    result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == profile_id
    assert await _count(session_factory, Profile) == 1
    assert await _count(session_factory, Student) == 1
    assert await _count(session_factory, CohortEnrollment) == 1
    assert await _count(session_factory, ChapterProgress) == 1
    [student] = await _load(session_factory, Student)
    assert student.assignments_completed == 3
    assert student.projects_completed == 1
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED
    assert stored_app.profile_id == profile_id


@pytest.mark.asyncio
async def test_retry_for_new_applicant_matches_single_run(
    db, session_factory, make_cohort, make_application, notifier
):
    """The profile minted by a failed attempt is reused on retry, not gated or duplicated."""
    cohort = await make_cohort()
    application = await make_application(preferred_cohort_id=cohort.id)
    app_id = application.id

    fault = OperationalError("INSERT INTO cohort_enrollment", {}, Exception("timeout"))
    with patch.object(
        CohortEnrollmentRepository, "create", new=AsyncMock(side_effect=fault)
    ):
        with pytest.raises(StorageFailureError):
            await approve_application(db, app_id, notifier=notifier)

    assert await _count(session_factory, Profile) == 1
    assert await _count(session_factory, Student) == 1

    result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == app_id
    assert result.is_existing_profile is False
    assert await _count(session_factory, Profile) == 1
    assert await _count(session_factory, Student) == 1
    [enrollment] = await _load(session_factory, CohortEnrollment)
    assert enrollment.student_id == app_id


@pytest.mark.asyncio
async def test_chapter_unlock_failure_does_not_abort(
    db, session_factory, make_application, notifier
):
    application = await make_application()
    app_id = application.id

    fault = OperationalError("INSERT INTO chapter_progress", {}, Exception("no such table"))
    with patch.object(
        ChapterProgressRepository, "create_unlocked", new=AsyncMock(side_effect=fault)
    ):
        result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == app_id
    assert await _count(session_factory, ChapterProgress) == 0
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED


@pytest.mark.asyncio
async def test_chapter_read_failure_leaves_session_usable(
    db, engine, session_factory, make_application, notifier, aborting_transactions
):
    """A failed chapter read must not poison the statements that follow it."""
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE chapter_progress"))
    application = await make_application()
    app_id = application.id

    result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == app_id
    assert result.email_sent is True
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED
    assert await _count(session_factory, Student, Student.id == app_id) == 1


@pytest.mark.asyncio
async def test_profile_mirror_failure_leaves_session_usable(
    db, session_factory, make_application, notifier, aborting_transactions
):
    application = await make_application()
    app_id = application.id

    async def broken_mirror(session, profile, student):
        await session.execute(text("SELECT missing_column FROM profiles"))

    with patch.object(ProfileRepository, "sync_from_student", new=broken_mirror):
        result = await approve_application(db, app_id, notifier=notifier)

    assert result.profile_id == app_id
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED
    # The chapter step runs after the mirror and only succeeds on a clean transaction
    assert await _count(session_factory, ChapterProgress, ChapterProgress.student_id == app_id) == 1


# ============================================
# Capacity
# ============================================


@pytest.mark.asyncio
async def test_full_cohort_is_allowed_when_enforcement_off(
    db, session_factory, make_cohort, make_application, make_profile, make_enrollment, notifier
):
    cohort = await make_cohort(seats_total=1)
    cohort_id = cohort.id
    other = await make_profile(email="someone.else@example.com")
    await make_enrollment(cohort_id, other.id)
    application = await make_application(preferred_cohort_id=cohort_id)

    await approve_application(db, application.id, notifier=notifier)

    assert await _count(session_factory, CohortEnrollment) == 2


@pytest.mark.asyncio
async def test_full_cohort_blocks_when_enforced(
    db, session_factory, make_cohort, make_application, make_profile, make_enrollment, notifier
):
    cohort = await make_cohort(seats_total=1)
    cohort_id = cohort.id
    other = await make_profile(email="someone.else@example.com")
    await make_enrollment(cohort_id, other.id)
    application = await make_application(preferred_cohort_id=cohort_id)
    app_id = application.id

    with patch.object(settings, "enforce_cohort_capacity", True):
        with pytest.raises(CohortFullError) as exc_info:
            await approve_application(db, app_id, notifier=notifier)

    assert exc_info.value.status_code == 409
    [stored_app] = await _load(session_factory, Application, Application.id == app_id)
    assert stored_app.status == ApplicationStatus.PENDING


# ============================================
# Notification isolation
# ============================================


@pytest.mark.asyncio
async def test_failed_email_still_approves(
    db, session_factory, make_application, failing_notifier
):
    application = await make_application()
    app_id = application.id

    result = await approve_application(db, app_id, notifier=failing_notifier)

    assert result.email_sent is False
    assert result.email_error == "SMTP relay unavailable"
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED


@pytest.mark.asyncio
async def test_crashing_notifier_still_approves(
    db, session_factory, make_application, exploding_notifier
):
    application = await make_application()

    result = await approve_application(db, application.id, notifier=exploding_notifier)

    assert result.email_sent is False
    assert "notifier crashed" in result.email_error
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.APPROVED


# ============================================
# Concurrent approvals
# ============================================


@pytest.mark.asyncio
async def test_concurrent_approvals_converge_on_one_profile(
    session_factory, make_cohort, make_application, notifier
):
    """Two approvals that both see no profile end with one profile and two successes."""
    cohort = await make_cohort()
    application = await make_application(preferred_cohort_id=cohort.id)
    app_id = application.id

    original_get_by_email = ProfileRepository.get_by_email
    barrier = asyncio.Barrier(2)
    lookups: dict[int, int] = {}

    async def racing_get_by_email(db, email):
        profile = await original_get_by_email(db, email)
        lookups[id(db)] = lookups.get(id(db), 0) + 1
        # Hold both callers after the double-check so both attempt the insert
        if lookups[id(db)] == 2:
            await asyncio.wait_for(barrier.wait(), timeout=5)
        return profile

    async def approve_in_own_session():
        async with session_factory() as session:
            return await approve_application(session, app_id, notifier=notifier)

    with patch.object(ProfileRepository, "get_by_email", new=racing_get_by_email):
        first, second = await asyncio.gather(approve_in_own_session(), approve_in_own_session())

    assert first.profile_id == second.profile_id == app_id
    assert await _count(session_factory, Profile) == 1
    assert await _count(session_factory, Student) == 1
    assert await _count(session_factory, CohortEnrollment) == 1
    assert await _count(session_factory, ChapterProgress) == 1

    # Exactly one caller committed and sent the email
    assert sorted([first.email_sent, second.email_sent]) == [False, True]
    assert CONCURRENT_APPROVAL_EMAIL_ERROR in (first.email_error, second.email_error)
    assert len(notifier.sent) == 1


# ============================================
# Rejection
# ============================================


@pytest.mark.asyncio
async def test_reject_touches_only_the_application(
    db, session_factory, make_application, notifier
):
    application = await make_application()
    app_id = application.id

    result = await reject_application(
        db, app_id, rejected_reason="Cohort is full", rejected_by="admin@academy.dev",
        notifier=notifier,
    )

    assert result.email_sent is True
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.REJECTED
    assert stored_app.rejected_reason == "Cohort is full"
    assert stored_app.rejected_by == "admin@academy.dev"
    assert stored_app.rejected_at is not None
    assert await _count(session_factory, Profile) == 0
    assert await _count(session_factory, Student) == 0
    [(kind, _, context)] = notifier.sent
    assert kind == EmailKind.APPLICATION_REJECTED
    assert context["reason"] == "Cohort is full"


@pytest.mark.asyncio
async def test_reject_twice_fails(db, make_application, notifier):
    application = await make_application()
    app_id = application.id
    await reject_application(db, app_id, notifier=notifier)

    with pytest.raises(ApplicationAlreadyRejectedError):
        await reject_application(db, app_id, notifier=notifier)


@pytest.mark.asyncio
async def test_reject_approved_fails(db, make_application, notifier):
    application = await make_application()
    app_id = application.id
    await approve_application(db, app_id, notifier=notifier)

    with pytest.raises(ApplicationAlreadyApprovedError):
        await reject_application(db, app_id, notifier=notifier)


@pytest.mark.asyncio
async def test_reject_with_failed_email_succeeds(
    db, session_factory, make_application, failing_notifier
):
    application = await make_application()

    result = await reject_application(db, application.id, notifier=failing_notifier)

    assert result.email_sent is False
    assert result.email_error == "SMTP relay unavailable"
    [stored_app] = await _load(session_factory, Application)
    assert stored_app.status == ApplicationStatus.REJECTED
