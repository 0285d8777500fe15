"""
Email Service for School Info Hub
=================================
Handles outgoing mail over SMTP (aiosmtplib):
- Notification emails (announcements, events, registrations, newsletters)
- Password reset emails
- Account approval emails
- Test email from the admin panel

send_* methods talk to SMTP directly and report failure as False instead of
raising. Request handlers use the queue_* methods, which hand the rendered
message to the background email queue (services/email_queue.py) so SMTP
latency and retries never hold up a response.
"""

from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional, Tuple

import aiosmtplib

from infohub.core.config import settings
from infohub.core.logging_config import logger
from infohub.services.email_queue import EmailPriority, email_queue


LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #1e3a8a; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
        .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
        .button {{ display: inline-block; background: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 8px; font-weight: 600; margin: 20px 0; }}
        .footer {{ text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>{heading}</h1></div>
        <div class="content">{body}</div>
        <div class="footer">
            <p>&copy; {year} {app_name}</p>
            <p>You can change which emails you receive in your notification preferences.</p>
        </div>
    </div>
</body>
</html>
"""


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    def _layout(self, heading: str, body: str) -> str:
        return LAYOUT.format(
            heading=escape(heading),
            body=body,
            year=datetime.utcnow().year,
            app_name=escape(settings.APP_NAME),
        )

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = subject

        if text_content:
            message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

        logger.info(f"[Email/SMTP] Sent email to {to_email}: {subject}")
        return True

    def queue(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        priority: EmailPriority = EmailPriority.NORMAL,
    ) -> Optional[str]:
        """Hand a message to the background queue; returns the job id, or None when SMTP is not configured"""
        if not self.is_configured:
            logger.debug(f"[Email] Not configured, dropping '{subject}' for {to_email}")
            return None
        return email_queue.enqueue(to_email, subject, html_content, text_content, priority)

    # ==================== MESSAGES ====================

    def compose_notification(
        self,
        name: str,
        title: str,
        message: str,
        link_path: Optional[str] = None,
    ) -> Tuple[str, str, str]:
        """(subject, html, text) mirroring an in-app notification"""
        link = f"{self.frontend_url}{link_path}" if link_path else None
        button = f'<p style="text-align: center;"><a class="button" href="{link}">View details</a></p>' if link else ""
        body = f"<p>Hi {escape(name or 'there')},</p><p>{escape(message)}</p>{button}"
        text = f"Hi {name or 'there'},\n\n{message}\n" + (f"\n{link}\n" if link else "")
        return title, self._layout(title, body), text

    def compose_password_reset(self, user_name: str, reset_token: str) -> Tuple[str, str, str]:
        reset_link = f"{self.frontend_url}/reset-password?token={reset_token}"
        body = f"""
            <p>Hi {escape(user_name or 'there')},</p>
            <p>We received a request to reset your password. Click the button below to choose a new one.</p>
            <p style="text-align: center;"><a href="{reset_link}" class="button">Reset Password</a></p>
            <p style="font-size: 14px; color: #6b7280;">This link will expire in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.
            If you didn't request a reset, you can ignore this email.</p>
        """
        text = f"Hi {user_name or 'there'},\n\nReset your password: {reset_link}\n"
        return f"Reset your password - {settings.APP_NAME}", self._layout("Password Reset", body), text

    def compose_account_approved(self, user_name: str, role: str) -> Tuple[str, str, str]:
        body = f"""
            <p>Hi {escape(user_name or 'there')},</p>
            <p>An administrator approved your account with the <strong>{escape(role.replace('_', ' '))}</strong> role.</p>
            <p style="text-align: center;"><a href="{self.frontend_url}/login" class="button">Sign in</a></p>
        """
        text = f"Hi {user_name or 'there'},\n\nYour account was approved. Sign in at {self.frontend_url}/login\n"
        return f"Your {settings.APP_NAME} account has been approved", self._layout("Account Approved", body), text

    def queue_notification_email(self, to_email: str, name: str, title: str, message: str,
                                 link_path: Optional[str] = None,
                                 priority: EmailPriority = EmailPriority.NORMAL) -> Optional[str]:
        return self.queue(to_email, *self.compose_notification(name, title, message, link_path), priority=priority)

    def queue_password_reset_email(self, to_email: str, user_name: str, reset_token: str) -> Optional[str]:
        return self.queue(to_email, *self.compose_password_reset(user_name, reset_token), priority=EmailPriority.HIGH)

    def queue_account_approved_email(self, to_email: str, user_name: str, role: str) -> Optional[str]:
        return self.queue(to_email, *self.compose_account_approved(user_name, role))

    async def send_test_email(self, to_email: str) -> bool:
        """Sent directly so the admin sees the SMTP result"""
        body = "<p>This is a test email. If you can read it, SMTP is configured correctly.</p>"
        return await self.send_email(to_email, f"{settings.APP_NAME} test email", self._layout("Test Email", body))


email_service = EmailService()
