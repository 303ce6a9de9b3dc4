import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from app.config import settings

logger = logging.getLogger(__name__)

STUDENT_WELCOME = """Hello {name},

An account has been created for you on the exam portal.

Email: {email}
Temporary password: {password}

Sign in at {login_url} and change your password after your first login.
"""

STAFF_WELCOME = """Hello {name},

You have been added to the exam portal as {role}.

Email: {email}
Temporary password: {password}

Sign in at {login_url}.
"""

PASSWORD_RESET_OTP = """Hello {name},

Your password reset code is {otp}. It expires in {minutes} minutes.

If you did not ask for a reset you can ignore this email.
"""

NEW_TEST_ALERT = """Hello {name},

A new test "{title}" has been scheduled for you.
{schedule}
Good luck!
"""

RESULTS_PUBLISHED = """Hello {name},

Results for "{title}" are now available. Sign in at {login_url} to see your score.
"""

class EmailService:
    def __init__(self, smtp_server=None, smtp_port=None, smtp_user=None, smtp_password=None, from_email=None, enabled=None):
        self.smtp_server = smtp_server or settings.smtp_server
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user if smtp_user is not None else settings.smtp_user
        self.smtp_password = smtp_password if smtp_password is not None else settings.smtp_password
        self.from_email = from_email or settings.mail_from
        self.enabled = settings.emails_enabled if enabled is None else enabled

    def send_email(self, to_email: str, subject: str, body: str) -> bool:
        """Send a plain-text email; failures are logged, never raised"""
        if not self.enabled:
            logger.info(f"Email disabled, skipping '{subject}' to {to_email}")
            return False

        msg = MIMEMultipart()
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=10) as server:
                if self.smtp_user and self.smtp_password:
                    server.starttls()
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())
            logger.info(f"Email sent to {to_email}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    def send_student_welcome(self, to_email: str, name: str, temporary_password: str) -> bool:
        body = STUDENT_WELCOME.format(
            name=name, email=to_email, password=temporary_password, login_url=settings.frontend_url
        )
        return self.send_email(to_email, "Welcome to the exam portal", body)

    def send_staff_welcome(self, to_email: str, name: str, role: str, temporary_password: str) -> bool:
        body = STAFF_WELCOME.format(
            name=name, role=role.lower(), email=to_email,
            password=temporary_password, login_url=settings.frontend_url
        )
        return self.send_email(to_email, "Your staff account is ready", body)

    def send_password_reset_otp(self, to_email: str, name: str, otp: str) -> bool:
        body = PASSWORD_RESET_OTP.format(name=name, otp=otp, minutes=settings.otp_expire_minutes)
        return self.send_email(to_email, "Password reset code", body)

    def send_new_test_alert(self, recipients: list, title: str, start_time=None) -> int:
        """Send the test alert to (email, name) pairs; returns how many were sent"""
        schedule = f"It starts at {start_time.isoformat()} UTC.\n" if start_time else ""
        sent = 0
        for to_email, name in recipients:
            body = NEW_TEST_ALERT.format(name=name, title=title, schedule=schedule)
            if self.send_email(to_email, f"New test: {title}", body):
                sent += 1
        return sent

    def send_results_published(self, recipients: list, title: str) -> int:
        sent = 0
        for to_email, name in recipients:
            body = RESULTS_PUBLISHED.format(name=name, title=title, login_url=settings.frontend_url)
            if self.send_email(to_email, f"Results available: {title}", body):
                sent += 1
        return sent

email_service = EmailService()
