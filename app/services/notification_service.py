"""
Outbound e-mail for appointment changes.

Delivery runs after the HTTP response has been produced (FastAPI background
task). A failed send is logged and dropped; it never undoes the state change
that triggered it.
"""
from typing import Optional

import resend

from app.core.config import settings
from app.core.logger import logger
from app.db.models import Appointment


class NotificationService:
    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM

    def _render_update(self, first_name: str, appointment: Appointment) -> str:
        when = appointment.appointment_date_time.strftime("%A %d %B %Y at %H:%M UTC")
        return (
            f"<p>Hi {first_name},</p>"
            f"<p>Your {appointment.type.value} appointment has been updated. "
            f"It is now set for <strong>{when}</strong> "
            f"({appointment.duration_in_minutes} minutes).</p>"
            "<p>Please sign in to confirm or decline the new time.</p>"
        )

    def send_appointment_update_email(self, email: str, first_name: str, appointment: Appointment) -> bool:
        if not self.api_key:
            logger.info(f"Email delivery disabled; skipping update notice for appointment {appointment.id}")
            return False

        resend.api_key = self.api_key
        try:
            resend.Emails.send({
                "from": self.sender,
                "to": [email],
                "subject": "Your appointment has been updated",
                "html": self._render_update(first_name, appointment),
            })
        except Exception:
            logger.exception(f"Failed to send update notice for appointment {appointment.id}")
            return False

        logger.info(f"Update notice sent for appointment {appointment.id}")
        return True


notification_service = NotificationService()
