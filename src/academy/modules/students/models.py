"""
Student Models

The Student record is the source of truth for enrollment: contact details,
cohort assignment and progress counters. Chapter progress rows gate access
to course chapters.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from academy.modules.shared import BaseModel, value_enum


class StudentStatus(str, enum.Enum):
    """Enrollment status of a student."""

    ENROLLED = "Enrolled"
    ACTIVE = "Active"
    GRADUATED = "Graduated"
    WITHDRAWN = "Withdrawn"


class Student(BaseModel):
    """
    Authoritative enrollment record.

    ``id`` and ``profile_id`` both hold the canonical student identifier.
    ``profile_id`` is unique so an upsert keyed on it can never produce two
    rows for one person.
    """

    __tablename__ = "students"

    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cohort_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[StudentStatus] = mapped_column(
        value_enum(StudentStatus, "student_status"),
        nullable=False,
        default=StudentStatus.ENROLLED,
    )

    # Progress counters, earned through course activity
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assignments_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    projects_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    live_sessions_attended: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, status={self.status.value})>"


class ChapterProgress(BaseModel):
    """Per-chapter access and completion for a student."""

    __tablename__ = "chapter_progress"

    # Canonical student identifier (== profiles.id)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    chapter_number: Mapped[int] = mapped_column(Integer, nullable=False)
    chapter_slug: Mapped[str] = mapped_column(String(100), nullable=False)

    is_unlocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "student_id", "chapter_number", name="uq_chapter_progress_student_chapter"
        ),
    )
