"""
Applications Module

Approval and rejection of student applications.
"""

from academy.modules.applications.models import Application, ApplicationStatus

__all__ = ["Application", "ApplicationStatus"]
