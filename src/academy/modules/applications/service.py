"""
Applications Service Layer

Business logic for approving and rejecting student applications.

Approval is a forward-recovering saga over records that are each written
atomically on their own, with no transaction spanning them:

1. Load the application (must be Pending)
2. Resolve or create the Profile (canonical student identifier)
3. Upsert the Student, then mirror it onto the Profile
4. Ensure the cohort enrollment row
5. Ensure the first chapter is unlocked
6. Re-read the Profile
7. COMMIT POINT: conditionally mark the application Approved
8. Notify the student (best-effort)

Every step before the commit point aborts the approval on failure and leaves
the application Pending. Each of those steps looks up what an earlier attempt
may already have written, so retrying a failed approval resumes where it
stopped instead of duplicating rows. Steps after the commit point only log
and record their failure.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.config import settings
from academy.core.email import EmailKind, EmailNotifier, NotificationResult
from academy.core.storage import ForeignKeyViolation, StorageError, resolve_or_create
from academy.modules.applications import repository
from academy.modules.applications.errors import (
    ApplicationAlreadyApprovedError,
    ApplicationAlreadyRejectedError,
    ApplicationNotFoundError,
    CohortFullError,
    CohortReferenceError,
    StorageFailureError,
    StoreIntegrityError,
)
from academy.modules.applications.helpers import get_applicant_email, get_applicant_name
from academy.modules.applications.identity import IdentityResolver, ResolvedIdentity
from academy.modules.applications.models import Application, ApplicationStatus
from academy.modules.cohorts.repository import CohortEnrollmentRepository, CohortRepository
from academy.modules.profiles.repository import ProfileRepository
from academy.modules.students import service as student_service
from academy.modules.students.service import StudentUpsert

logger = logging.getLogger(__name__)

CONCURRENT_APPROVAL_EMAIL_ERROR = (
    "Application was approved by a concurrent request; the email is sent by that request"
)


# ============================================
# Results
# ============================================


@dataclass(frozen=True)
class ApprovalResult:
    """Structured outcome of a successful approval."""

    profile_id: UUID
    is_existing_profile: bool
    needs_password_setup: bool
    email_sent: bool
    email_error: str | None = None


@dataclass(frozen=True)
class RejectionResult:
    """Structured outcome of a successful rejection."""

    email_sent: bool
    email_error: str | None = None


@dataclass
class ApprovalState:
    """Values carried between approval steps."""

    application_id: UUID
    approved_by: str | None
    application: Application | None = None
    cohort_id: UUID | None = None
    identity: ResolvedIdentity | None = None
    student: StudentUpsert | None = None
    committed: bool = False
    converged: bool = False
    notification: NotificationResult | None = None


def _terminal_state_error(application: Application) -> Exception | None:
    if application.status == ApplicationStatus.APPROVED:
        return ApplicationAlreadyApprovedError(application.id)
    if application.status == ApplicationStatus.REJECTED:
        return ApplicationAlreadyRejectedError(application.id)
    return None


def _translate_storage_error(e: StorageError, action: str, cohort_id: UUID | None):
    if isinstance(e, ForeignKeyViolation) and e.field in (None, "cohort_id"):
        return CohortReferenceError(cohort_id, code=e.code)
    return StorageFailureError(f"Failed to {action}", details=e.message, code=e.code)


# ============================================
# Approval Saga
# ============================================


class EnrollmentSaga:
    """
    Approves one application.

    ``pre_commit_steps`` run in order and any failure aborts the approval.
    ``_commit`` is the single write that makes the approval visible.
    ``post_commit_steps`` run only once ``committed`` is set and can never
    change the outcome.
    """

    def __init__(self, db: AsyncSession, notifier: EmailNotifier | None = None):
        self.db = db
        self.notifier = notifier or EmailNotifier()
        self.pre_commit_steps: tuple[Callable[[ApprovalState], Awaitable[None]], ...] = (
            self._load_application,
            self._resolve_identity,
            self._upsert_student,
            self._ensure_enrollment,
            self._unlock_first_chapter,
            self._verify_profile,
        )
        self.post_commit_steps: tuple[Callable[[ApprovalState], Awaitable[None]], ...] = (
            self._notify,
        )

    async def run(self, application_id: UUID, approved_by: str | None = None) -> ApprovalResult:
        """
        Run the approval saga.

        Args:
            application_id: UUID of the application
            approved_by: Who approved it

        Returns:
            ApprovalResult

        Raises:
            ApplicationServiceError: Any pre-commit failure; the application stays Pending
        """
        state = ApprovalState(application_id=application_id, approved_by=approved_by)

        try:
            for step in self.pre_commit_steps:
                await step(state)
            await self._commit(state)
        except StorageError as e:
            logger.error(f"Storage error approving application {application_id}: {e!r}")
            raise StorageFailureError(
                "Failed to approve application", details=e.message, code=e.code
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error approving application {application_id}: {e}", exc_info=True)
            raise StorageFailureError("Failed to approve application", details=str(e)) from e

        for step in self.post_commit_steps:
            try:
                await step(state)
            except Exception as e:
                logger.error(
                    f"Post-approval step {step.__name__} failed for {application_id}: {e}",
                    exc_info=True,
                )
                state.notification = NotificationResult(success=False, error=str(e))

        identity = state.identity
        if state.converged:
            email_sent, email_error = False, CONCURRENT_APPROVAL_EMAIL_ERROR
        elif state.notification is None:
            email_sent, email_error = False, "Email was not attempted"
        else:
            email_sent, email_error = state.notification.success, state.notification.error

        return ApprovalResult(
            profile_id=identity.profile_id,
            is_existing_profile=identity.is_existing_profile,
            needs_password_setup=identity.needs_password_setup,
            email_sent=email_sent,
            email_error=email_error,
        )

    # ----------------------------------------
    # Pre-commit steps
    # ----------------------------------------

    async def _load_application(self, state: ApprovalState) -> None:
        application = await repository.get_by_id(self.db, state.application_id)

        if not application:
            logger.warning(f"Application not found: {state.application_id}")
            raise ApplicationNotFoundError(state.application_id)

        error = _terminal_state_error(application)
        if error is not None:
            logger.warning(
                f"Cannot approve application {state.application_id}: "
                f"status={application.status.value}"
            )
            raise error

        requested = application.preferred_cohort_id
        if requested is not None and not await CohortRepository.exists(self.db, requested):
            logger.warning(
                f"Application {state.application_id} requested cohort {requested} "
                "which does not exist; approving without a cohort"
            )
            requested = None

        state.application = application
        state.cohort_id = requested

    async def _resolve_identity(self, state: ApprovalState) -> None:
        state.identity = await IdentityResolver(self.db).resolve(
            state.application, cohort_id=state.cohort_id
        )
        logger.info(
            f"Application {state.application_id} resolved to profile {state.identity.profile_id} "
            f"(existing={state.identity.is_existing_profile})"
        )

    async def _upsert_student(self, state: ApprovalState) -> None:
        identity = state.identity

        try:
            state.student = await student_service.upsert_student(
                self.db,
                identity.profile_id,
                name=identity.name,
                email=identity.email,
                phone=identity.phone,
                country=identity.country,
                city=identity.city,
                cohort_id=state.cohort_id,
            )
        except StorageError as e:
            raise _translate_storage_error(e, "create student record", state.cohort_id) from e

        if not state.student.profile_synced:
            logger.warning(f"Profile {identity.profile_id} mirror is stale; continuing")

    async def _ensure_enrollment(self, state: ApprovalState) -> None:
        cohort_id = state.student.cohort_id
        student_id = state.identity.profile_id

        if cohort_id is None:
            logger.info(f"Student {student_id} has no cohort; skipping enrollment")
            return

        cohort = await CohortRepository.get_by_id(self.db, cohort_id)
        if cohort is None:
            logger.error(f"Student {student_id} references missing cohort {cohort_id}")
            raise CohortReferenceError(cohort_id)

        existing = await CohortEnrollmentRepository.get(self.db, cohort_id, student_id)
        if existing is not None:
            logger.info(f"Student {student_id} already enrolled in cohort {cohort_id}")
            return

        capacity = await CohortRepository.get_capacity(
            self.db, cohort, exclude_application_id=state.application_id
        )
        if capacity.is_full:
            if settings.enforce_cohort_capacity:
                logger.warning(
                    f"Cohort {cohort_id} is full ({capacity.enrolled} enrolled, "
                    f"{capacity.pending} pending, {capacity.seats_total} seats)"
                )
                raise CohortFullError(cohort_id, capacity.seats_total)
            # Admins may approve past the seat limit unless enforcement is on
            logger.info(f"Cohort {cohort_id} is over capacity; enrolling anyway")

        try:
            await resolve_or_create(
                lambda: CohortEnrollmentRepository.get(self.db, cohort_id, student_id),
                lambda: CohortEnrollmentRepository.create(
                    self.db, cohort_id=cohort_id, student_id=student_id
                ),
                label=f"enrollment of {student_id} in {cohort_id}",
            )
        except StorageError as e:
            raise _translate_storage_error(e, "create cohort enrollment", cohort_id) from e

    async def _unlock_first_chapter(self, state: ApprovalState) -> None:
        student_id = state.identity.profile_id
        try:
            await student_service.ensure_chapter_unlocked(
                self.db,
                student_id,
                settings.first_chapter_number,
                settings.first_chapter_slug,
            )
        except (StorageError, SQLAlchemyError) as e:
            # A failed statement leaves the transaction aborted on PostgreSQL
            await self.db.rollback()
            logger.warning(
                f"Could not unlock chapter {settings.first_chapter_number} for "
                f"student {student_id}: {e!r}; continuing",
                exc_info=True,
            )

    async def _verify_profile(self, state: ApprovalState) -> None:
        profile_id = state.identity.profile_id
        profile = await ProfileRepository.get_by_id(self.db, profile_id)
        if profile is None:
            logger.error(
                f"Profile {profile_id} is missing after resolution; "
                f"refusing to approve application {state.application_id}"
            )
            raise StoreIntegrityError(
                "Profile record missing after creation",
                details=f"Profile {profile_id} could not be read back",
            )

    # ----------------------------------------
    # Commit point
    # ----------------------------------------

    async def _commit(self, state: ApprovalState) -> None:
        profile_id = state.identity.profile_id

        try:
            updated = await repository.mark_approved(
                self.db,
                state.application_id,
                profile_id=profile_id,
                approved_by=state.approved_by,
            )
        except StorageError as e:
            raise StorageFailureError(
                "Failed to update application status", details=e.message, code=e.code
            ) from e

        if updated:
            state.committed = True
            logger.info(f"Application {state.application_id} approved (profile {profile_id})")
            return

        current = await repository.get_by_id(self.db, state.application_id)
        if current is None:
            raise ApplicationNotFoundError(state.application_id)

        if current.status == ApplicationStatus.APPROVED and current.profile_id == profile_id:
            logger.info(
                f"Application {state.application_id} was approved concurrently "
                f"with the same profile {profile_id}"
            )
            state.committed = True
            state.converged = True
            return

        raise _terminal_state_error(current) or StorageFailureError(
            "Failed to update application status",
            details=f"Application {state.application_id} was not Pending",
        )

    # ----------------------------------------
    # Post-commit steps
    # ----------------------------------------

    async def _notify(self, state: ApprovalState) -> None:
        if not state.committed or state.converged:
            return

        identity = state.identity
        cohort_id = state.student.cohort_id if state.student else None
        cohort_name = None
        if cohort_id is not None:
            try:
                cohort = await CohortRepository.get_by_id(self.db, cohort_id)
                cohort_name = cohort.name if cohort else None
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.warning(f"Could not load cohort {cohort_id} for email: {e}")

        state.notification = await self.notifier.send(
            EmailKind.APPLICATION_APPROVED,
            identity.email,
            {
                "name": identity.name,
                "cohort_name": cohort_name,
                "needs_password_setup": identity.needs_password_setup,
            },
        )

        if state.notification.success:
            logger.info(f"Sent approval email to {identity.email}")
        else:
            logger.warning(
                f"Approval email to {identity.email} failed: {state.notification.error}"
            )


async def approve_application(
    db: AsyncSession,
    application_id: UUID,
    approved_by: str | None = None,
    notifier: EmailNotifier | None = None,
) -> ApprovalResult:
    """
    Approve an application and enroll the applicant.

    Args:
        db: Database session
        application_id: UUID of the application
        approved_by: Who approved it
        notifier: Email notifier (defaults to Resend)

    Returns:
        ApprovalResult with the canonical profile id and email outcome

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        ApplicationAlreadyApprovedError: If application is already approved
        ApplicationAlreadyRejectedError: If application is already rejected
        ApplicationValidationError: If the application lacks email or name
        EmailNotVerifiedError: If an existing profile has not verified its email
        CohortReferenceError: If the student's cohort no longer exists
        CohortFullError: If seat limits are enforced and the cohort is full
        StoreIntegrityError: If the profile cannot be read back
        StorageFailureError: If any other write fails
    """
    logger.info(f"Approving application {application_id} (by {approved_by})")
    return await EnrollmentSaga(db, notifier).run(application_id, approved_by)


# ============================================
# Rejection
# ============================================


async def reject_application(
    db: AsyncSession,
    application_id: UUID,
    rejected_reason: str | None = None,
    rejected_by: str | None = None,
    notifier: EmailNotifier | None = None,
) -> RejectionResult:
    """
    Reject an application.

    Only the application changes; profiles, students and enrollments are
    never touched. The applicant is notified best-effort.

    Args:
        db: Database session
        application_id: UUID of the application
        rejected_reason: Optional reason shown to the applicant
        rejected_by: Who rejected it
        notifier: Email notifier (defaults to Resend)

    Returns:
        RejectionResult with the email outcome

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        ApplicationAlreadyApprovedError: If application is already approved
        ApplicationAlreadyRejectedError: If application is already rejected
        StorageFailureError: If the status update fails
    """
    logger.info(f"Rejecting application {application_id} (by {rejected_by})")

    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    error = _terminal_state_error(application)
    if error is not None:
        logger.warning(f"Cannot reject application {application_id}: status={application.status}")
        raise error

    email = get_applicant_email(application)
    name = get_applicant_name(application)

    try:
        updated = await repository.mark_rejected(
            db,
            application_id,
            rejected_reason=rejected_reason,
            rejected_by=rejected_by,
        )
    except (StorageError, SQLAlchemyError) as e:
        logger.error(f"Failed to reject application {application_id}: {e!r}")
        raise StorageFailureError(
            "Failed to reject application",
            details=getattr(e, "message", str(e)),
            code=getattr(e, "code", None),
        ) from e

    if not updated:
        current = await repository.get_by_id(db, application_id)
        if current is None:
            raise ApplicationNotFoundError(application_id)
        raise _terminal_state_error(current) or StorageFailureError(
            "Failed to reject application"
        )

    logger.info(f"Application {application_id} rejected")

    # Send rejection email (non-blocking)
    notifier = notifier or EmailNotifier()
    try:
        result = await notifier.send(
            EmailKind.APPLICATION_REJECTED,
            email,
            {"name": name, "reason": rejected_reason},
        )
    except Exception as e:
        logger.error(f"Failed to send rejection email: {e}", exc_info=True)
        result = NotificationResult(success=False, error=str(e))

    if not result.success:
        logger.warning(f"Rejection email to {email} failed: {result.error}")

    return RejectionResult(email_sent=result.success, email_error=result.error)


# ============================================
# Admin Listing
# ============================================


async def admin_get_applications_list(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Application], int]:
    """
    Get applications for the admin dashboard, newest first.

    Args:
        db: Database session
        status: Filter by status, None for all
        skip: Records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (applications, total count)
    """
    return await repository.get_applications_for_admin(db, status=status, skip=skip, limit=limit)


async def admin_get_application_detail(db: AsyncSession, application_id: UUID) -> Application:
    """
    Get full application details.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    return application
