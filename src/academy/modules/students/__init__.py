"""
Students Module

Authoritative enrollment records and chapter access rows.
"""

from academy.modules.students.models import ChapterProgress, Student, StudentStatus
from academy.modules.students.repository import ChapterProgressRepository, StudentRepository

__all__ = [
    "ChapterProgress",
    "ChapterProgressRepository",
    "Student",
    "StudentRepository",
    "StudentStatus",
]
