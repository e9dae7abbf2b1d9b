"""
Cohort Models

Cohorts are scheduled classes students enroll into. Enrollment rows join a
cohort to a student's canonical identifier.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from academy.modules.shared import BaseModel, value_enum


class CohortStatus(str, enum.Enum):
    """Lifecycle of a cohort."""

    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class Cohort(BaseModel):
    """A scheduled batch of students."""

    __tablename__ = "cohorts"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # 0 or NULL means unlimited
    seats_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[CohortStatus] = mapped_column(
        value_enum(CohortStatus, "cohort_status"),
        nullable=False,
        default=CohortStatus.UPCOMING,
    )

    def __repr__(self) -> str:
        return f"<Cohort(id={self.id}, name={self.name})>"


class CohortEnrollment(BaseModel):
    """
    Join row between a cohort and a student.

    At most one row per (cohort_id, student_id); the unique constraint is the
    arbiter when two approvals race.
    """

    __tablename__ = "cohort_enrollment"

    cohort_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False
    )
    # Canonical student identifier (== profiles.id)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("cohort_id", "student_id", name="uq_cohort_enrollment_cohort_student"),
        Index("ix_cohort_enrollment_student_id", "student_id"),
    )
