"""
Applications Repository

Database operations for student applications.

Status transitions are conditional writes: the UPDATE only matches rows that
are still Pending, so two concurrent decisions can never both succeed.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.storage import classify_integrity_error, commit_or_raise

from .models import Application, ApplicationStatus


async def create(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    email: str,
    phone: str | None = None,
    country: str | None = None,
    city: str | None = None,
    experience_level: str | None = None,
    preferred_cohort_id: UUID | None = None,
) -> Application:
    """Create a new pending application."""

    new_application = Application(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        country=country,
        city=city,
        experience_level=experience_level,
        preferred_cohort_id=preferred_cohort_id,
        status=ApplicationStatus.PENDING,
    )

    db.add(new_application)
    await commit_or_raise(db, Application.__tablename__)
    await db.refresh(new_application)
    return new_application


async def get_by_id(db: AsyncSession, id: UUID) -> Application | None:
    """Get an application by ID, always reading the stored row."""
    return await db.get(Application, id, populate_existing=True)


async def get_applications_for_admin(
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
        status: Filter by application status (optional, None means all)
        skip: Number of records to skip for pagination
        limit: Maximum records to return

    Returns:
        Tuple of (list of applications, total count matching the filter)
    """
    query = select(Application)

    if status:
        query = query.where(Application.status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(desc(Application.created_at)).offset(skip).limit(limit)

    result = await db.execute(query)
    applications = list(result.scalars().all())

    return applications, total


async def _update_if_pending(db: AsyncSession, application_id: UUID, **values) -> bool:
    """
    Apply ``values`` only if the application is still Pending.

    Returns:
        True if this call made the transition, False if the row was missing
        or already decided

    Raises:
        StorageError: A constraint rejected the update
        SQLAlchemyError: Any other database failure (after rollback)
    """
    stmt = (
        update(Application)
        .where(
            Application.id == application_id,
            Application.status == ApplicationStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    try:
        result = await db.execute(stmt)
    except IntegrityError as e:
        await db.rollback()
        raise classify_integrity_error(e, Application.__tablename__) from e

    await commit_or_raise(db, Application.__tablename__)
    return result.rowcount == 1


async def mark_approved(
    db: AsyncSession,
    application_id: UUID,
    *,
    profile_id: UUID,
    approved_by: str | None = None,
) -> bool:
    """
    Transition a Pending application to Approved and link its profile.

    Args:
        db: Database session
        application_id: UUID of the application
        profile_id: Canonical student identifier
        approved_by: Who approved it

    Returns:
        True if the application was Pending and is now Approved
    """
    return await _update_if_pending(
        db,
        application_id,
        status=ApplicationStatus.APPROVED,
        approved_by=approved_by,
        approved_at=datetime.now(UTC),
        profile_id=profile_id,
    )


async def mark_rejected(
    db: AsyncSession,
    application_id: UUID,
    *,
    rejected_reason: str | None = None,
    rejected_by: str | None = None,
) -> bool:
    """
    Transition a Pending application to Rejected.

    Returns:
        True if the application was Pending and is now Rejected
    """
    return await _update_if_pending(
        db,
        application_id,
        status=ApplicationStatus.REJECTED,
        rejected_reason=rejected_reason,
        rejected_by=rejected_by,
        rejected_at=datetime.now(UTC),
    )
