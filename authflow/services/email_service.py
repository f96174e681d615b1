"""Service for sending emails."""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_username: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Authflow",
        timeout: float = 30.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)

    def send_verification_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        """
        Send an email verification code.

        Args:
            to_email: Recipient email
            code: Plaintext verification code
            ttl_minutes: Minutes until the code expires

        Returns:
            True if sent successfully, False otherwise
        """
        html_body = _code_html(
            title="Email Verification",
            intro="Thank you for registering! Please use the following verification code "
            "to complete your registration:",
            code=code,
            ttl_minutes=ttl_minutes,
            footer="If you didn't request this verification, please ignore this email.",
        )
        text_body = f"Your verification code is {code}. It expires in {ttl_minutes} minutes."
        return self.send(to_email, "Verify your email address", html_body, text_body)

    def send_reset_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        """
        Send a password reset code.

        Args:
            to_email: Recipient email
            code: Plaintext reset code
            ttl_minutes: Minutes until the code expires

        Returns:
            True if sent successfully, False otherwise
        """
        html_body = _code_html(
            title="Password Reset Request",
            intro="You have requested to reset your password. Please use the following code:",
            code=code,
            ttl_minutes=ttl_minutes,
            footer="If you didn't request this password reset, please ignore this email "
            "and your password will remain unchanged.",
        )
        text_body = f"Your password reset code is {code}. It expires in {ttl_minutes} minutes."
        return self.send(to_email, "Password Reset Code", html_body, text_body)

    def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send an email via SMTP.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_body: HTML body
            text_body: Plain text body

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.warning("SMTP is not configured; email to %s was not sent.", to_email)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject.strip()
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        context = ssl.create_default_context()
        try:
            if self.smtp_port == 465:
                with smtplib.SMTP_SSL(
                    self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
                ) as server:
                    server.login(self.smtp_username, self.smtp_password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    server.login(self.smtp_username, self.smtp_password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc)
            return False

        logger.info("Email sent to %s", to_email)
        return True


def _code_html(title: str, intro: str, code: str, ttl_minutes: int, footer: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>{title}</h2>
      <p>{intro}</p>
      <div style="background-color: #f5f5f5; padding: 20px; text-align: center; font-size: 24px;
                  font-weight: bold; letter-spacing: 2px; margin: 20px 0;">
        {code}
      </div>
      <p><strong>This code will expire in {ttl_minutes} minutes.</strong></p>
      <p>{footer}</p>
    </div>
    """
