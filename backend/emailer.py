import logging
import os
import smtplib
import ssl
import time
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Optional

logger = logging.getLogger(__name__)

SMTP_PREFIXES = ("SMTP_PRIMARY", "SMTP_SECONDARY")


def _bool_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid {name}: {raw}")


@dataclass
class SMTPConfig:
    name: str
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    use_tls: bool
    use_ssl: bool
    sender: str

    @classmethod
    def from_env(cls, prefix: str) -> Optional["SMTPConfig"]:
        host = os.environ.get(f"{prefix}_HOST")
        sender = os.environ.get(f"{prefix}_FROM")
        if not host or not sender or not os.environ.get(f"{prefix}_PORT"):
            return None
        return cls(
            name=prefix,
            host=host,
            port=_int_env(f"{prefix}_PORT", 587),
            user=os.environ.get(f"{prefix}_USER"),
            password=os.environ.get(f"{prefix}_PASS"),
            use_tls=_bool_env(os.environ.get(f"{prefix}_TLS"), default=True),
            use_ssl=_bool_env(os.environ.get(f"{prefix}_SSL"), default=False),
            sender=sender,
        )

    def deliver(self, message: EmailMessage) -> None:
        del message["From"]
        message["From"] = self.sender
        if self.use_ssl:
            with smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(), timeout=20) as server:
                self._login(server)
                server.send_message(message)
            return

        with smtplib.SMTP(self.host, self.port, timeout=20) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
            self._login(server)
            server.send_message(message)

    def _login(self, server: smtplib.SMTP) -> None:
        if self.user and self.password:
            server.login(self.user, self.password)


def smtp_configs() -> List[SMTPConfig]:
    configs = [config for config in (SMTPConfig.from_env(prefix) for prefix in SMTP_PREFIXES) if config]
    if not configs or configs[0].name != "SMTP_PRIMARY":
        raise RuntimeError("SMTP_PRIMARY configuration missing")
    return configs


def build_message(to_email: str, subject: str, html: str, text: str) -> EmailMessage:
    message = EmailMessage()
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def send_email(to_email: str, subject: str, html: str, text: str) -> None:
    """Deliver through the primary relay, falling back to the secondary one."""
    message = build_message(to_email, subject, html, text)
    configs = smtp_configs()
    for index, config in enumerate(configs):
        try:
            config.deliver(message)
        except Exception as exc:
            if index == len(configs) - 1:
                raise
            logger.warning("%s failed, attempting %s: %s", config.name, configs[index + 1].name, exc)
            continue
        if index:
            logger.info("Email sent via %s", config.name)
        return


def send_email_with_retry(
    to_email: str,
    subject: str,
    html: str,
    text: str,
    max_attempts: Optional[int] = None,
    delay_seconds: Optional[float] = None,
) -> bool:
    attempts = max_attempts if max_attempts is not None else _int_env("EMAIL_MAX_ATTEMPTS", 3)
    delay = delay_seconds if delay_seconds is not None else _int_env("EMAIL_RETRY_DELAY_SECONDS", 2)
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            send_email(to_email, subject, html, text)
            return True
        except Exception as exc:
            logger.warning("Email to %s failed (attempt %s/%s): %s", to_email, attempt, attempts, exc)
            if attempt < attempts:
                time.sleep(delay)
    return False
