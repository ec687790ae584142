from typing import Optional, Tuple

from models import OPEN_BUCKET


def build_confirmation_email(event_name: str, participant_id: str, bucket: Optional[str] = None) -> Tuple[str, str, str]:
    category = f" ({bucket})" if bucket and bucket != OPEN_BUCKET else ""
    subject = f"Your registration for {event_name} is confirmed"
    text = (
        "Hello,\n\n"
        f"Your registration for {event_name}{category} has been confirmed.\n"
        f"Participant ID: {participant_id}\n\n"
        "Please carry a valid ID proof to the venue on the day of the event.\n\n"
        "Regards,\n"
        "Fest Web Team\n"
    )
    html = f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          <h2 style="margin-top: 0;">Registration confirmed</h2>
          <p>Hello,</p>
          <p>Your registration for <strong>{event_name}{category}</strong> has been confirmed.</p>
          <p>Participant ID: <strong>{participant_id}</strong></p>
          <p>Please carry a valid ID proof to the venue on the day of the event.</p>
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          <p style="margin-bottom: 0;">Regards,<br><strong>Fest Web Team</strong></p>
        </div>
      </body>
    </html>
    """
    return subject, html, text
