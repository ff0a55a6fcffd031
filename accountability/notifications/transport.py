import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from accountability.core.config import Settings
from accountability.core.errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def send(self, to: str, subject: str, body: str) -> None:
        """Deliver one message; raises on failure."""
        ...


class SmtpTransport:
    def __init__(
        self,
        server: str,
        port: int,
        from_email: str,
        username: str = None,
        password: str = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ):
        self.server = server
        self.port = int(port)
        self.from_email = from_email
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpTransport":
        # Validate required email configuration
        if not settings.SMTP_SERVER:
            raise ConfigurationError("SMTP_SERVER is required but not configured")
        if not settings.FROM_EMAIL:
            raise ConfigurationError("FROM_EMAIL is required but not configured")
        return cls(
            server=settings.SMTP_SERVER,
            port=settings.SMTP_PORT,
            from_email=settings.FROM_EMAIL,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.TRANSPORT_TIMEOUT_SECONDS,
        )

    def send(self, to: str, subject: str, body: str) -> None:
        msg = self._build_message(to, subject, body)
        try:
            if self.port == 465:
                # SSL connection for port 465
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.server, self.port, context=context, timeout=self.timeout) as server:
                    self._login(server)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as server:
                    if self.use_tls:
                        server.starttls(context=ssl.create_default_context())
                    self._login(server)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"SMTP delivery to {to} failed: {exc}") from exc
        logger.info(f"📧 [SMTP] Reminder email sent to {to}")

    def _login(self, server: smtplib.SMTP) -> None:
        if self.username and self.password:
            server.login(self.username, self.password)

    def _build_message(self, to: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(_reminder_html(subject, body), "html"))
        return msg


def _reminder_html(subject: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #1a1a2e; color: #4ade80; padding: 20px; text-align: center; }}
            .message {{ background: white; padding: 20px; border-left: 4px solid #4ade80; margin: 20px 0; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{html.escape(subject)}</h1></div>
            <div class="message"><p>{html.escape(body)}</p></div>
        </div>
    </body>
    </html>
    """


class LogOnlyTransport:
    """Used when SMTP is not configured: the message is logged, not sent."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.warning(f"⚠️ [SMTP] Not configured. Email to {to} not sent: {subject}")


def build_transport(settings: Settings) -> Transport:
    try:
        return SmtpTransport.from_settings(settings)
    except ConfigurationError as exc:
        logger.warning(f"⚠️ [SMTP] {exc}; reminder emails will only be logged")
        return LogOnlyTransport()
