"""
Email Service using Resend

Handles sending the approval and rejection emails for student applications.

Sending is best-effort: every function here returns a NotificationResult and
never raises, so callers can treat a failed email as data.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from html import escape
from typing import Any
from urllib.parse import quote

import resend
from email_validator import EmailNotValidError, validate_email

from academy.core.config import settings

logger = logging.getLogger(__name__)

ACADEMY_NAME = "PanAfrican Bitcoin Academy"

_STYLES = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #b45309; margin-bottom: 24px; }
            .box { background-color: #f9fafb; border: 1px solid #e5e7eb; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .box p { margin: 0; }
            .button { display: inline-block; background-color: #f59e0b; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


class EmailKind(str, enum.Enum):
    """Emails the enrollment workflow sends."""

    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of a send attempt."""

    success: bool
    error: str | None = None


def is_valid_email(email: str | None) -> bool:
    """Check the shape of an email address without a DNS lookup."""
    if not email:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> NotificationResult:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        NotificationResult; success is False when Resend is not configured,
        the address is malformed, or the send fails
    """
    if not settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set - email not sent")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return NotificationResult(success=False, error="Email service not configured")

    if not is_valid_email(to_email):
        logger.warning(f"Refusing to send email to invalid address: {to_email!r}")
        return NotificationResult(success=False, error=f"Invalid email address: {to_email}")

    resend.api_key = settings.resend_api_key

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return NotificationResult(success=True)
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return NotificationResult(success=False, error=str(e) or type(e).__name__)


def build_setup_password_url(email: str) -> str:
    """Link a new student follows to choose a password."""
    return f"{settings.site_url}/setup-password?email={quote(email)}"


async def send_application_approved(
    to_email: str,
    student_name: str,
    cohort_name: str | None = None,
    needs_password_setup: bool = True,
) -> NotificationResult:
    """Send notification that an application was approved."""
    # Escape user inputs to prevent XSS
    safe_student_name = escape(student_name)

    if cohort_name:
        cohort_line = f"<p>You have been enrolled in <strong>{escape(cohort_name)}</strong>.</p>"
    else:
        cohort_line = "<p>We will let you know as soon as you are assigned to a cohort.</p>"

    if needs_password_setup:
        action_url = build_setup_password_url(to_email)
        action_text = "Set Up Your Password"
        action_intro = "To access your student dashboard, first create a password:"
    else:
        action_url = f"{settings.site_url}/login"
        action_text = "Sign In"
        action_intro = "You already have an account. Sign in to open your student dashboard:"

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_STYLES}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Welcome to {ACADEMY_NAME}!</h1>

            <p>Dear {safe_student_name},</p>

            <p><strong>Congratulations!</strong> Your application has been approved.</p>

            {cohort_line}

            <p>{action_intro}</p>

            <a href="{action_url}" class="button">{action_text}</a>

            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{action_url}</p>

            <div class="footer">
                <p>Welcome aboard!</p>
                <p>{ACADEMY_NAME}</p>
            </div>
        </div>
    </body>
    </html>
    """

    return await send_email(
        to_email=to_email,
        subject=f"Welcome to {ACADEMY_NAME}! Your application is approved",
        html_content=html_content,
    )


async def send_application_rejected(
    to_email: str,
    applicant_name: str,
    rejection_reason: str | None = None,
) -> NotificationResult:
    """Send notification that an application was rejected."""
    # Escape user inputs to prevent XSS
    safe_applicant_name = escape(applicant_name)

    reason_box = ""
    if rejection_reason:
        reason_box = f"""
            <div class="box">
                <p><strong>Reason:</strong></p>
                <p>{escape(rejection_reason)}</p>
            </div>
        """

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_STYLES}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Update on Your Application</h1>

            <p>Hello {safe_applicant_name},</p>

            <p>Thank you for your interest in {ACADEMY_NAME}. After reviewing your application, we're unable to offer you a place at this time.</p>

            {reason_box}

            <p>You are welcome to apply again for a future cohort.</p>

            <div class="footer">
                <p>Best regards,</p>
                <p>The {ACADEMY_NAME} Team</p>
            </div>
        </div>
    </body>
    </html>
    """

    return await send_email(
        to_email=to_email,
        subject=f"Update on your {ACADEMY_NAME} application",
        html_content=html_content,
    )


class EmailNotifier:
    """
    Best-effort notifier used by the enrollment workflow.

    ``send`` never raises: any failure, including an unexpected exception in
    a template, is returned as an unsuccessful NotificationResult.
    """

    async def send(
        self,
        kind: EmailKind,
        recipient_email: str,
        context: dict[str, Any],
    ) -> NotificationResult:
        """
        Send one email of the given kind.

        Args:
            kind: Which email to send
            recipient_email: Recipient address
            context: Template values (name, cohort_name, needs_password_setup, reason)

        Returns:
            NotificationResult describing the attempt
        """
        try:
            if kind == EmailKind.APPLICATION_APPROVED:
                return await send_application_approved(
                    to_email=recipient_email,
                    student_name=context.get("name") or recipient_email,
                    cohort_name=context.get("cohort_name"),
                    needs_password_setup=context.get("needs_password_setup", True),
                )
            if kind == EmailKind.APPLICATION_REJECTED:
                return await send_application_rejected(
                    to_email=recipient_email,
                    applicant_name=context.get("name") or recipient_email,
                    rejection_reason=context.get("reason"),
                )
            return NotificationResult(success=False, error=f"Unknown email kind: {kind}")
        except Exception as e:
            logger.error(f"Failed to send {kind} email to {recipient_email}: {e}", exc_info=True)
            return NotificationResult(success=False, error=str(e) or type(e).__name__)
