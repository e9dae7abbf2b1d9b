"""
Application Service Errors

Domain errors raised by the approval and rejection workflows. Each error
carries a stable machine-readable code and the HTTP status the API boundary
reports it with. Storage failures keep their SQLSTATE code and a hint so
operators can find the root cause.
"""

from typing import Any
from uuid import UUID


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 400,
        details: str | None = None,
        code: str | None = None,
        hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        self.code = code
        self.hint = hint
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        """Structured body for an HTTPException detail."""
        detail: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            detail["details"] = self.details
        if self.code:
            detail["code"] = self.code
        if self.hint:
            detail["hint"] = self.hint
        return detail


class ApplicationValidationError(ApplicationServiceError):
    """Raised when required input is missing or malformed. Nothing is written."""

    def __init__(self, message: str, details: str | None = None, code: str | None = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details,
            code=code,
        )


class EmailNotVerifiedError(ApplicationServiceError):
    """Raised when an existing profile has not verified its email."""

    def __init__(self, email: str):
        super().__init__(
            message="Email not verified",
            error_code="EMAIL_NOT_VERIFIED",
            status_code=400,
            details=(
                f"The account for {email} exists but its email address has not been "
                "verified. Ask the applicant to verify their email before approving."
            ),
        )

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail["emailNotVerified"] = True
        return detail


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: str | UUID):
        super().__init__(
            message=f"Application not found: {application_id}",
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class ApplicationAlreadyApprovedError(ApplicationServiceError):
    """Raised when an application has already been approved."""

    def __init__(self, application_id: str | UUID):
        super().__init__(
            message=f"Application {application_id} has already been approved",
            error_code="APPLICATION_ALREADY_APPROVED",
            status_code=409,
        )


class ApplicationAlreadyRejectedError(ApplicationServiceError):
    """Raised when an application has already been rejected."""

    def __init__(self, application_id: str | UUID):
        super().__init__(
            message=f"Application {application_id} has already been rejected",
            error_code="APPLICATION_ALREADY_REJECTED",
            status_code=409,
        )


class ProfileConflictError(ApplicationServiceError):
    """Raised when a profile insert conflicts and the re-read finds nothing."""

    def __init__(self, message: str, code: str | None = None, hint: str | None = None):
        super().__init__(
            message=message,
            error_code="PROFILE_CONFLICT",
            status_code=409,
            code=code,
            hint=hint or "A concurrent request may have created this account. Retry the approval.",
        )


class CohortReferenceError(ApplicationServiceError):
    """Raised when a cohort reference points at a cohort that does not exist."""

    def __init__(self, cohort_id: str | UUID | None, code: str | None = None):
        super().__init__(
            message="Invalid cohort reference",
            error_code="COHORT_REFERENCE_ERROR",
            status_code=500,
            details=f"Cohort {cohort_id} does not exist",
            code=code,
            hint="The cohort may have been deleted. Reassign the student to an existing cohort.",
        )


class CohortFullError(ApplicationServiceError):
    """Raised when seat limits are enforced and the cohort has no seats left."""

    def __init__(self, cohort_id: str | UUID, seats_total: int):
        super().__init__(
            message=f"Cohort {cohort_id} is full ({seats_total} seats)",
            error_code="COHORT_FULL",
            status_code=409,
        )


class StoreIntegrityError(ApplicationServiceError):
    """Raised when a record that was just written cannot be read back."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(
            message=message,
            error_code="INTEGRITY_ERROR",
            status_code=500,
            details=details,
            hint="The data store is inconsistent. The application was left Pending.",
        )


class StorageFailureError(ApplicationServiceError):
    """Raised when a write before the commit point fails for a storage reason."""

    def __init__(
        self,
        message: str,
        details: str | None = None,
        code: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=500,
            details=details,
            code=code,
            hint=hint or "The application was left Pending. Retrying the approval is safe.",
        )
