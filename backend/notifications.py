import logging
from typing import Optional

from email_templates import build_confirmation_email
from emailer import send_email_with_retry

logger = logging.getLogger(__name__)


def notify_confirmation(to_email: Optional[str], event_name: str, participant_id: str, bucket: Optional[str] = None) -> bool:
    """Runs after commit; a failure here never affects the confirmation."""
    if not to_email:
        logger.warning("No email on record for %s, skipping confirmation mail", participant_id)
        return False
    subject, html, text = build_confirmation_email(event_name, participant_id, bucket)
    try:
        sent = send_email_with_retry(to_email, subject, html, text)
    except Exception as exc:
        logger.warning("Confirmation mail for %s could not be sent: %s", participant_id, exc)
        return False
    if not sent:
        logger.warning("Confirmation mail for %s gave up after retries", participant_id)
    return sent
