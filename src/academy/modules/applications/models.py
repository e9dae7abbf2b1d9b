"""
Application Models

A prospective student's enrollment request. Applications are created by the
public application form and only ever move from Pending to Approved or
Rejected.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from academy.modules.shared import BaseModel, value_enum


class ApplicationStatus(str, enum.Enum):
    """Application lifecycle status."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self != ApplicationStatus.PENDING


class Application(BaseModel):
    """
    Student application.

    The application's own id is minted into the canonical student identifier
    when no profile exists yet for its email.
    """

    __tablename__ = "applications"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    experience_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    preferred_cohort_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[ApplicationStatus] = mapped_column(
        value_enum(ApplicationStatus, "application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )

    # Decision
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rejected_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Set on approval, always equal to the canonical student identifier
    profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_applications_status_created_at", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, email={self.email}, status={self.status.value})>"
