"""
Student Repository

Database operations for students and chapter progress rows.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.storage import commit_or_raise
from academy.modules.students.models import ChapterProgress, Student, StudentStatus

logger = logging.getLogger(__name__)


class StudentRepository:
    """Repository for student database operations."""

    @staticmethod
    async def get_by_profile_id(db: AsyncSession, profile_id: UUID) -> Student | None:
        """
        Get the student linked to a profile.

        Args:
            db: Database session
            profile_id: Canonical student identifier

        Returns:
            Student instance or None if not found
        """
        result = await db.execute(
            select(Student)
            .where(Student.profile_id == profile_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        student_id: UUID,
        name: str,
        email: str,
        phone: str | None = None,
        country: str | None = None,
        city: str | None = None,
        cohort_id: UUID | None = None,
    ) -> Student:
        """
        Insert an enrolled student with zeroed progress counters.

        The student's primary key and profile_id are both the canonical
        identifier.

        Raises:
            UniqueViolation: A student already exists for this profile
            ForeignKeyViolation: The profile or cohort does not exist
        """
        student = Student(
            id=student_id,
            profile_id=student_id,
            name=name,
            email=email,
            phone=phone,
            country=country,
            city=city,
            cohort_id=cohort_id,
            status=StudentStatus.ENROLLED,
            progress_percent=0,
            assignments_completed=0,
            projects_completed=0,
            live_sessions_attended=0,
        )

        db.add(student)
        await commit_or_raise(db, Student.__tablename__)
        await db.refresh(student)

        logger.info(f"Created student: {student.id}")
        return student

    @staticmethod
    async def update(db: AsyncSession, student: Student, **fields) -> Student:
        """Apply field updates to a student and commit."""
        for key, value in fields.items():
            if hasattr(student, key):
                setattr(student, key, value)

        await commit_or_raise(db, Student.__tablename__)
        await db.refresh(student)
        return student


class ChapterProgressRepository:
    """Repository for chapter progress rows."""

    @staticmethod
    async def get(
        db: AsyncSession,
        student_id: UUID,
        chapter_number: int,
    ) -> ChapterProgress | None:
        """Get the progress row for one chapter of one student."""
        result = await db.execute(
            select(ChapterProgress)
            .where(
                ChapterProgress.student_id == student_id,
                ChapterProgress.chapter_number == chapter_number,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_unlocked(
        db: AsyncSession,
        *,
        student_id: UUID,
        chapter_number: int,
        chapter_slug: str,
    ) -> ChapterProgress:
        """
        Insert an unlocked chapter row.

        Raises:
            UniqueViolation: The chapter row already exists for the student
        """
        progress = ChapterProgress(
            student_id=student_id,
            chapter_number=chapter_number,
            chapter_slug=chapter_slug,
            is_unlocked=True,
            unlocked_at=datetime.now(UTC),
            is_completed=False,
        )

        db.add(progress)
        await commit_or_raise(db, ChapterProgress.__tablename__)
        await db.refresh(progress)
        return progress

    @staticmethod
    async def unlock(db: AsyncSession, progress: ChapterProgress) -> ChapterProgress:
        """Unlock an existing chapter row, keeping any completion data."""
        progress.is_unlocked = True
        progress.unlocked_at = progress.unlocked_at or datetime.now(UTC)

        await commit_or_raise(db, ChapterProgress.__tablename__)
        await db.refresh(progress)
        return progress
