"""
Cohort Repository

Database operations for cohorts and cohort enrollment rows.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.storage import commit_or_raise
from academy.modules.cohorts.models import Cohort, CohortEnrollment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CohortCapacity:
    """Seat usage for a cohort."""

    cohort_id: UUID
    seats_total: int
    enrolled: int
    pending: int

    @property
    def is_full(self) -> bool:
        """A cohort with no seat limit is never full."""
        return self.seats_total > 0 and (self.enrolled + self.pending) >= self.seats_total


class CohortRepository:
    """Repository for cohort database operations."""

    @staticmethod
    async def get_by_id(db: AsyncSession, cohort_id: UUID) -> Cohort | None:
        """Get a cohort by ID."""
        return await db.get(Cohort, cohort_id, populate_existing=True)

    @staticmethod
    async def exists(db: AsyncSession, cohort_id: UUID | None) -> bool:
        """Check whether a cohort exists. A missing ID never exists."""
        if cohort_id is None:
            return False
        result = await db.execute(select(Cohort.id).where(Cohort.id == cohort_id))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_capacity(
        db: AsyncSession,
        cohort: Cohort,
        exclude_application_id: UUID | None = None,
    ) -> CohortCapacity:
        """
        Compute seat usage for a cohort.

        Pending applications that asked for this cohort count against the
        seat limit, as they do on the public application form.

        Args:
            db: Database session
            cohort: The cohort to measure
            exclude_application_id: Pending application left out of the count
                (the one being approved)

        Returns:
            CohortCapacity with seats_total, enrolled and pending counts
        """
        # Imported here to avoid a circular import (applications -> cohorts)
        from academy.modules.applications.models import Application, ApplicationStatus

        enrolled_result = await db.execute(
            select(func.count())
            .select_from(CohortEnrollment)
            .where(CohortEnrollment.cohort_id == cohort.id)
        )
        pending_query = (
            select(func.count())
            .select_from(Application)
            .where(
                Application.preferred_cohort_id == cohort.id,
                Application.status == ApplicationStatus.PENDING,
            )
        )
        if exclude_application_id is not None:
            pending_query = pending_query.where(Application.id != exclude_application_id)
        pending_result = await db.execute(pending_query)

        return CohortCapacity(
            cohort_id=cohort.id,
            seats_total=cohort.seats_total or 0,
            enrolled=enrolled_result.scalar() or 0,
            pending=pending_result.scalar() or 0,
        )


class CohortEnrollmentRepository:
    """Repository for cohort enrollment rows."""

    @staticmethod
    async def get(
        db: AsyncSession,
        cohort_id: UUID,
        student_id: UUID,
    ) -> CohortEnrollment | None:
        """Get the enrollment row for a (cohort, student) pair."""
        result = await db.execute(
            select(CohortEnrollment)
            .where(
                CohortEnrollment.cohort_id == cohort_id,
                CohortEnrollment.student_id == student_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        cohort_id: UUID,
        student_id: UUID,
    ) -> CohortEnrollment:
        """
        Insert an enrollment row.

        Raises:
            UniqueViolation: If the pair is already enrolled
            ForeignKeyViolation: If the cohort or student does not exist
        """
        enrollment = CohortEnrollment(cohort_id=cohort_id, student_id=student_id)

        db.add(enrollment)
        await commit_or_raise(db, CohortEnrollment.__tablename__)
        await db.refresh(enrollment)

        logger.info(f"Enrolled student {student_id} in cohort {cohort_id}")
        return enrollment
