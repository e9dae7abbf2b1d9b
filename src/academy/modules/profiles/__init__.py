"""
Profiles Module

Display/auth-facing student records mirrored from the Student record.
"""

from academy.modules.profiles.models import Profile, ProfileStatus
from academy.modules.profiles.repository import ProfileRepository

__all__ = ["Profile", "ProfileRepository", "ProfileStatus"]
