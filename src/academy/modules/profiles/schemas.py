"""
Profile Schemas

Pydantic schemas for the password setup endpoint.
"""

import re
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from academy.modules.profiles.models import ProfileStatus
from academy.modules.shared.schemas import CamelModel

PASSWORD_MIN_LENGTH = 8


class SetupPasswordRequest(CamelModel):
    """Request body for POST /profiles/setup-password."""

    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)
    application_id: UUID | None = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one number")
        return v


class SetupPasswordResponse(CamelModel):
    """Response after a successful password setup."""

    success: bool = True
    profile_id: UUID
    status: ProfileStatus
    message: str = "Password set successfully. You can now sign in."
