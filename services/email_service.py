import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr
from core.config import Settings
from core.exceptions import DeliveryError
from models.otps import PURPOSE_PASSWORD_RESET
from utils.logger import get_logger, mask_email

# Setup logger
logger = get_logger(__name__)

DAILY_LIMIT_MARKER = "daily user sending limit exceeded"


def _verification_email(display_name: str, code: str, minutes: int, app_name: str, frontend_url: str) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Welcome to {app_name}!</h2>
            <p>Hello <strong>{display_name}</strong>,</p>
            <p>Use the following code to verify your email address:</p>
            <h1 style="color: #007bff; font-size: 32px; letter-spacing: 8px;">{code}</h1>
            <p style="color: #666; font-size: 14px;">This code will expire in {minutes} minutes.</p>
            <p>Enter it at <a href="{frontend_url}/auth/verify-otp">{frontend_url}/auth/verify-otp</a>.</p>
            <p style="color: #999; font-size: 12px;">If you did not register with us, please ignore this email.</p>
        </div>
    </body>
    </html>
    """


def _password_reset_email(display_name: str, code: str, minutes: int, app_name: str) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Password Reset Request</h2>
            <p>Hi <strong>{display_name}</strong>,</p>
            <p>Use the code below to reset your {app_name} password:</p>
            <h1 style="color: #007bff; font-size: 32px; letter-spacing: 8px;">{code}</h1>
            <p style="color: #dc3545; font-size: 14px;">This code will expire in {minutes} minutes.</p>

            <div style="background-color: #fff3cd; border-left: 4px solid #ffc107; padding: 12px; margin: 20px 0;">
                <p style="margin: 0; color: #856404;">
                    <strong>Security Notice:</strong> Never share this code. We will never ask for it
                    by phone or email. If you didn't request a reset, ignore this email and your
                    password will remain unchanged.
                </p>
            </div>
        </div>
    </body>
    </html>
    """


class EmailNotifier:
    """
    Sends OTP emails over SMTP (STARTTLS).

    One SMTP connection is opened per message. In the testing environment
    nothing is sent.
    """

    def __init__(self, config: Settings):
        self.config = config

    def send_otp(self, email: str, code: str, purpose: str, display_name: str = None) -> bool:
        """
        Deliver an OTP code for `purpose`.

        Raises:
            DeliveryError: with reason EMAIL_LIMIT, CONFIG or SEND
        """
        display_name = display_name or email.split("@")[0]
        minutes = self.config.OTP_EXPIRE_MINUTES
        app_name = self.config.APP_NAME

        if purpose == PURPOSE_PASSWORD_RESET:
            subject = f"Reset Password - {app_name} Account Recovery"
            html = _password_reset_email(display_name, code, minutes, app_name)
            text = (f"Hi {display_name},\n\nYour password reset OTP is: {code}. "
                    f"This code will expire in {minutes} minutes.\n\n"
                    "If you did not request this, please ignore this email.")
        else:
            subject = "Verify Your Email Address to Complete Registration"
            html = _verification_email(display_name, code, minutes, app_name, self.config.FRONTEND_URL)
            text = (f"Hello {display_name},\n\nYour email verification OTP is: {code}. "
                    f"This code will expire in {minutes} minutes.\n\n"
                    f"Thank you for signing up with {app_name}!")

        self.send_email(email, subject, html, text)
        return True

    def send_email(self, to_email: str, subject: str, html: str, text: str = None) -> None:
        # Skip email sending in test environment
        if self.config.ENV == "testing":
            logger.info(
                "[TEST MODE] Email skipped",
                extra={"recipient": mask_email(to_email), "subject": subject}
            )
            return

        logger.debug(
            "Attempting to send email",
            extra={"recipient": mask_email(to_email), "subject": subject}
        )

        sender = self.config.MAIL_FROM or self.config.MAIL_USERNAME

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((self.config.MAIL_FROM_NAME, sender))
        message["To"] = to_email

        # Plain text first, clients prefer the last alternative they can render
        if text:
            message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.config.MAIL_SERVER, self.config.MAIL_PORT,
                              timeout=self.config.MAIL_TIMEOUT) as server:
                server.starttls()
                server.login(self.config.MAIL_USERNAME, self.config.MAIL_PASSWORD)
                server.sendmail(sender, to_email, message.as_string())

        except (smtplib.SMTPException, OSError) as e:
            reason = classify_smtp_error(e)
            logger.error(
                f"Failed to send email: {str(e)}",
                extra={
                    "recipient": mask_email(to_email),
                    "subject": subject,
                    "reason": reason,
                    "error_type": type(e).__name__
                },
                exc_info=True
            )
            raise DeliveryError(reason) from e

        logger.info(
            "Email sent successfully",
            extra={"recipient": mask_email(to_email), "subject": subject}
        )


def classify_smtp_error(error: Exception) -> str:
    """
    Sending-limit errors first (Gmail reports them through several SMTP error
    types), then authentication and envelope problems as configuration errors.
    """
    if DAILY_LIMIT_MARKER in str(error).lower():
        return DeliveryError.EMAIL_LIMIT

    if isinstance(error, (smtplib.SMTPAuthenticationError, smtplib.SMTPSenderRefused,
                          smtplib.SMTPRecipientsRefused, smtplib.SMTPNotSupportedError)):
        return DeliveryError.CONFIG

    return DeliveryError.SEND
