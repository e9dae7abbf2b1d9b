"""
Student Service Layer

Every Student write goes through this module so the Profile mirror is
refreshed after it. Student is authoritative for name, phone, country, city
and cohort; Profile is a read-optimized copy of those fields.
"""

import logging
from dataclasses import dataclass, replace
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.storage import StorageError, resolve_or_create
from academy.modules.profiles.repository import ProfileRepository
from academy.modules.students.models import ChapterProgress, Student, StudentStatus
from academy.modules.students.repository import ChapterProgressRepository, StudentRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudentUpsert:
    """
    Outcome of an enrollment upsert.

    Holds plain values rather than the ORM instance: a failed mirror write
    rolls the session back and expires every loaded instance.
    """

    student_id: UUID
    cohort_id: UUID | None
    created: bool
    profile_synced: bool


async def sync_profile_from_student(
    db: AsyncSession,
    profile_id: UUID,
    student: Student,
) -> bool:
    """
    Refresh the Profile mirror from a Student.

    Failures are logged and reported as False; the mirror is repaired on the
    next Student write.
    """
    try:
        profile = await ProfileRepository.get_by_id(db, profile_id)
        if profile is None:
            logger.warning(f"Cannot sync profile {profile_id}: profile not found")
            return False
        await ProfileRepository.sync_from_student(db, profile, student)
    except (StorageError, SQLAlchemyError) as e:
        await db.rollback()
        logger.warning(
            f"Failed to sync profile {profile_id} from student record: {e!r}",
            exc_info=True,
        )
        return False

    logger.info(f"Synced profile {profile_id} from student record")
    return True


async def upsert_student(
    db: AsyncSession,
    profile_id: UUID,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    country: str | None = None,
    city: str | None = None,
    cohort_id: UUID | None = None,
) -> StudentUpsert:
    """
    Create or update the enrolled Student for a profile, then mirror it.

    An existing Student keeps its progress counters and its current cohort;
    contact fields are refreshed only where a new value is given, and the
    status becomes Enrolled. A
    student with no cohort yet receives the requested one.

    Args:
        db: Database session
        profile_id: Canonical student identifier
        name: Full name
        email: Normalized email
        phone: Phone number
        country: Country
        city: City
        cohort_id: Cohort to assign (already checked to exist)

    Returns:
        StudentUpsert describing the stored student

    Raises:
        StorageError: The student could not be written
        SQLAlchemyError: Any other database failure
    """
    student, created = await resolve_or_create(
        lambda: StudentRepository.get_by_profile_id(db, profile_id),
        lambda: StudentRepository.create(
            db,
            student_id=profile_id,
            name=name,
            email=email,
            phone=phone,
            country=country,
            city=city,
            cohort_id=cohort_id,
        ),
        label=f"student {profile_id}",
    )

    if created:
        logger.info(f"Enrolled new student {student.id}")
    else:
        assigned_cohort = student.cohort_id
        if assigned_cohort is not None and cohort_id is not None and assigned_cohort != cohort_id:
            logger.warning(
                f"Student {student.id} is already assigned to cohort {assigned_cohort}; "
                f"keeping it instead of requested cohort {cohort_id}"
            )
        student = await StudentRepository.update(
            db,
            student,
            name=name,
            email=email,
            phone=phone or student.phone,
            country=country or student.country,
            city=city or student.city,
            cohort_id=assigned_cohort if assigned_cohort is not None else cohort_id,
            status=StudentStatus.ENROLLED,
        )
        logger.info(
            f"Updated existing student {student.id} "
            f"(assignments_completed={student.assignments_completed}, "
            f"progress_percent={student.progress_percent})"
        )

    result = StudentUpsert(
        student_id=student.id,
        cohort_id=student.cohort_id,
        created=created,
        profile_synced=False,
    )
    profile_synced = await sync_profile_from_student(db, profile_id, student)
    return replace(result, profile_synced=profile_synced)


async def ensure_chapter_unlocked(
    db: AsyncSession,
    student_id: UUID,
    chapter_number: int,
    chapter_slug: str,
) -> ChapterProgress:
    """
    Make sure a chapter is unlocked for a student.

    A row that already exists (including one inserted concurrently) counts as
    success; a locked row is unlocked in place.

    Raises:
        StorageError: The row could not be written
        SQLAlchemyError: Any other database failure
    """
    progress, created = await resolve_or_create(
        lambda: ChapterProgressRepository.get(db, student_id, chapter_number),
        lambda: ChapterProgressRepository.create_unlocked(
            db,
            student_id=student_id,
            chapter_number=chapter_number,
            chapter_slug=chapter_slug,
        ),
        label=f"chapter {chapter_number} for student {student_id}",
    )

    if created:
        logger.info(f"Unlocked chapter {chapter_number} for student {student_id}")
    elif not progress.is_unlocked:
        progress = await ChapterProgressRepository.unlock(db, progress)
        logger.info(f"Unlocked existing chapter {chapter_number} row for student {student_id}")
    else:
        logger.info(f"Chapter {chapter_number} already unlocked for student {student_id}")

    return progress
