"""
Cohorts module - cohorts, enrollment rows and seat capacity.
"""

from academy.modules.cohorts.models import Cohort, CohortEnrollment, CohortStatus
from academy.modules.cohorts.repository import (
    CohortCapacity,
    CohortEnrollmentRepository,
    CohortRepository,
)

__all__ = [
    "Cohort",
    "CohortEnrollment",
    "CohortStatus",
    "CohortCapacity",
    "CohortRepository",
    "CohortEnrollmentRepository",
]
