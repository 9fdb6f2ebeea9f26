"""Email notification adapter."""

import asyncio
import html
import smtplib
from dataclasses import dataclass
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

logger = structlog.get_logger()


@dataclass
class EmailConfig:
    """Email configuration."""

    smtp_host: str
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_email: str = "taskcred@example.com"
    from_name: str = "Taskcred"
    use_tls: bool = True
    frontend_url: str = "http://localhost:3000"


def _format_due(due_date: datetime) -> str:
    return due_date.astimezone(UTC).strftime("%Y-%m-%d %H:%M UTC")


class EmailNotifier:
    """Delivers notifications via email (SMTP).

    The public ``send_*`` coroutines run the blocking SMTP exchange in a
    worker thread and never raise; failures are logged and reported as
    False.
    """

    def __init__(self, config: EmailConfig):
        """Initialize the email notifier.

        Args:
            config: Email configuration settings.
        """
        self.config = config

    def send(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> bool:
        """Send email notification.

        Returns True if the email was sent successfully.
        Note: This is synchronous - use in a thread pool for async contexts.
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
            msg["To"] = ", ".join(to_emails)

            if body_text:
                msg.attach(MIMEText(body_text, "plain"))
            msg.attach(MIMEText(body_html, "html"))

            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port) as server:
                if self.config.use_tls:
                    server.starttls()

                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)

                server.sendmail(
                    self.config.from_email,
                    to_emails,
                    msg.as_string(),
                )

            logger.info("email_sent", to=to_emails, subject=subject)
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_error", to=to_emails, subject=subject, error=str(e))
            return False

    async def _deliver(self, to_email: str, subject: str, body_html: str, body_text: str) -> bool:
        return await asyncio.to_thread(self.send, [to_email], subject, body_html, body_text)

    async def send_reminder(self, to_email: str, task_title: str, due_date: datetime) -> bool:
        """Remind a recipient that a task is due within the next day."""
        due = _format_due(due_date)
        subject = f"Reminder: '{task_title}' is due soon"

        body_html = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2 style="color: #e8a33d;">Task Due Soon</h2>
            <p>The task <strong>{html.escape(task_title)}</strong> is due on <strong>{due}</strong>.</p>
            <p>
                <a href="{self.config.frontend_url}/tasks"
                   style="background: #4a90d9; color: white; padding: 10px 20px;
                          text-decoration: none; border-radius: 5px;">
                    Open Tasks
                </a>
            </p>
            <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
            <p style="color: #666; font-size: 12px;">
                This email was sent by Taskcred. Please do not reply to this email.
            </p>
        </body>
        </html>
        """

        body_text = f"""
Task Due Soon

The task "{task_title}" is due on {due}.

Open your tasks: {self.config.frontend_url}/tasks
"""
        return await self._deliver(to_email, subject, body_html, body_text)

    async def send_verification(self, to_email: str, token: str) -> bool:
        """Send the e-mail verification link."""
        link = f"{self.config.frontend_url}/verify-email/{token}"
        subject = "Verify your email address"

        body_html = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2>Welcome to Taskcred</h2>
            <p>Please confirm your email address. The link expires in 24 hours.</p>
            <p><a href="{link}">Verify email</a></p>
            <p style="color: #666; font-size: 12px;">
                After verification an administrator still has to approve your account.
            </p>
        </body>
        </html>
        """

        body_text = f"""
Welcome to Taskcred

Confirm your email address (link expires in 24 hours):
{link}

After verification an administrator still has to approve your account.
"""
        return await self._deliver(to_email, subject, body_html, body_text)

    async def send_password_reset(self, to_email: str, token: str) -> bool:
        """Send the password reset link."""
        link = f"{self.config.frontend_url}/reset-password/{token}"
        subject = "Reset your password"

        body_html = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2>Password Reset</h2>
            <p>Someone requested a password reset for your account.
               The link expires in one hour.</p>
            <p><a href="{link}">Choose a new password</a></p>
            <p style="color: #666; font-size: 12px;">
                If you did not request this, you can ignore this email.
            </p>
        </body>
        </html>
        """

        body_text = f"""
Password Reset

Choose a new password (link expires in one hour):
{link}

If you did not request this, you can ignore this email.
"""
        return await self._deliver(to_email, subject, body_html, body_text)


class LoggingNotifier:
    """Notifier that only logs. Used when SMTP is not configured."""

    async def send_reminder(self, to_email: str, task_title: str, due_date: datetime) -> bool:
        logger.info(
            "reminder_logged", to=to_email, task_title=task_title, due=_format_due(due_date)
        )
        return True

    async def send_verification(self, to_email: str, token: str) -> bool:
        logger.info("verification_logged", to=to_email, token=token)
        return True

    async def send_password_reset(self, to_email: str, token: str) -> bool:
        logger.info("password_reset_logged", to=to_email, token=token)
        return True
