"""
Profile Models

The profile is the display/auth-facing record for a student. It mirrors the
contact and cohort fields of the Student record, which is authoritative.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from academy.modules.shared import BaseModel, value_enum


class ProfileStatus(str, enum.Enum):
    """Account status of a profile."""

    PENDING_PASSWORD_SETUP = "Pending Password Setup"
    ACTIVE = "Active"


class Profile(BaseModel):
    """
    Student profile.

    Primary key is the canonical student identifier. One profile per email;
    the unique constraint on email serialises concurrent creation.
    """

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cohort_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("cohorts.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[ProfileStatus] = mapped_column(
        value_enum(ProfileStatus, "profile_status"),
        nullable=False,
        default=ProfileStatus.PENDING_PASSWORD_SETUP,
    )
    email_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    password_hash: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email={self.email}, status={self.status.value})>"

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)
