"""create enrollment tables

Revision ID: b7c1e2d3f4a5
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates the six tables of the enrollment workflow:
1. cohorts
2. profiles (unique email, primary key = canonical student identifier)
3. applications
4. students (unique profile_id)
5. cohort_enrollment (unique cohort_id + student_id)
6. chapter_progress (unique student_id + chapter_number)

The unique constraints are what concurrent approvals rely on to converge.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "b7c1e2d3f4a5"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUMS = {
    "cohort_status": ("Upcoming", "Active", "Completed"),
    "profile_status": ("Pending Password Setup", "Active"),
    "application_status": ("Pending", "Approved", "Rejected"),
    "student_status": ("Enrolled", "Active", "Graduated", "Withdrawn"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create enrollment tables and enum types."""
    bind = op.get_bind()
    for name in ENUMS:
        postgresql.ENUM(*ENUMS[name], name=name).create(bind, checkfirst=True)

    op.create_table(
        "cohorts",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("level", sa.String(length=50), nullable=True),
        sa.Column("seats_total", sa.Integer(), nullable=True),
        sa.Column("status", _enum("cohort_status"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("cohort_id", sa.Uuid(), nullable=True),
        sa.Column("status", _enum("profile_status"), nullable=False),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    op.create_table(
        "applications",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("experience_level", sa.String(length=50), nullable=True),
        sa.Column("preferred_cohort_id", sa.Uuid(), nullable=True),
        sa.Column("status", _enum("application_status"), nullable=False),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=255), nullable=True),
        sa.Column("rejected_reason", sa.Text(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profile_id", sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(["preferred_cohort_id"], ["cohorts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_applications_email", "applications", ["email"])
    op.create_index("ix_applications_status_created_at", "applications", ["status", "created_at"])

    op.create_table(
        "students",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("profile_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("cohort_id", sa.Uuid(), nullable=True),
        sa.Column("status", _enum("student_status"), nullable=False),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assignments_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projects_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("live_sessions_attended", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_students_profile_id", "students", ["profile_id"], unique=True)

    op.create_table(
        "cohort_enrollment",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("cohort_id", sa.Uuid(), nullable=False),
        sa.Column("student_id", sa.Uuid(), nullable=False),
        sa.Column(
            "enrolled_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "cohort_id", "student_id", name="uq_cohort_enrollment_cohort_student"
        ),
    )
    op.create_index("ix_cohort_enrollment_student_id", "cohort_enrollment", ["student_id"])

    op.create_table(
        "chapter_progress",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("student_id", sa.Uuid(), nullable=False),
        sa.Column("chapter_number", sa.Integer(), nullable=False),
        sa.Column("chapter_slug", sa.String(length=100), nullable=False),
        sa.Column("is_unlocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["student_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "student_id", "chapter_number", name="uq_chapter_progress_student_chapter"
        ),
    )
    op.create_index("ix_chapter_progress_student_id", "chapter_progress", ["student_id"])


def downgrade() -> None:
    """Drop enrollment tables and enum types."""
    op.drop_index("ix_chapter_progress_student_id", table_name="chapter_progress")
    op.drop_table("chapter_progress")
    op.drop_index("ix_cohort_enrollment_student_id", table_name="cohort_enrollment")
    op.drop_table("cohort_enrollment")
    op.drop_index("ix_students_profile_id", table_name="students")
    op.drop_table("students")
    op.drop_index("ix_applications_status_created_at", table_name="applications")
    op.drop_index("ix_applications_email", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_table("profiles")
    op.drop_table("cohorts")

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
