"""
Application Helpers

Small pure functions shared by the approval workflow and the profiles module.
"""

from academy.modules.applications.models import Application


def normalize_email(email: str | None) -> str:
    """Lower-case and trim an email address. None becomes an empty string."""
    return (email or "").strip().lower()


def build_full_name(first_name: str | None, last_name: str | None) -> str:
    """
    Join first and last name, ignoring blanks.

    Args:
        first_name: Given name
        last_name: Family name

    Returns:
        "First Last", a single part if the other is blank, or "" if both are
    """
    parts = [part.strip() for part in (first_name, last_name) if part and part.strip()]
    return " ".join(parts)


def get_applicant_name(application: Application) -> str:
    """Full name of the applicant."""
    return build_full_name(application.first_name, application.last_name)


def get_applicant_email(application: Application) -> str:
    """Normalized applicant email."""
    return normalize_email(application.email)
