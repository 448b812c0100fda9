"""Transactional email through Resend."""

import html
import logging
from datetime import date
from typing import Optional, Union

import resend

from clinic_ops.config import Settings, get_settings
from clinic_ops.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class EmailService:
    """Sends booking confirmations and staff notifications.

    When no Resend API key is configured every send is skipped and logged,
    returning ``None``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        if self.settings.resend_api_key:
            resend.api_key = self.settings.resend_api_key

    @property
    def enabled(self) -> bool:
        return bool(self.settings.resend_api_key)

    async def send_email(
        self, to: Union[str, list[str]], subject: str, html_content: str
    ) -> Optional[dict]:
        recipients = [to] if isinstance(to, str) else to
        if not self.enabled:
            logger.info("Email disabled (no RESEND_API_KEY); skipping %r to %s", subject, recipients)
            return None
        try:
            logger.info("Sending email via Resend to: %s", recipients)
            response = resend.Emails.send({
                "from": self.settings.email_from_address,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            })
        except Exception as e:
            logger.error("Resend send failed: %s", e)
            raise UpstreamError(f"Email delivery failed: {e}", code="EMAIL_FAILED") from e
        return dict(response) if response else {}

    async def send_appointment_confirmation(
        self,
        *,
        patient_email: Optional[str],
        patient_name: str,
        provider_email: Optional[str],
        provider_name: str,
        appointment_date: date,
        appointment_time: str,
        location_type: str,
    ) -> None:
        when = f"{appointment_date.strftime('%A, %B %d, %Y')} at {appointment_time}"
        if patient_email:
            await self.send_email(
                patient_email,
                "Your appointment is confirmed",
                f"<p>Hi {html.escape(patient_name)},</p>"
                f"<p>Your {html.escape(location_type)} appointment with "
                f"{html.escape(provider_name)} is booked for {when}.</p>",
            )
        if provider_email:
            await self.send_email(
                provider_email,
                f"New appointment: {patient_name}",
                f"<p>{html.escape(patient_name)} booked a {html.escape(location_type)} "
                f"appointment with you for {when}.</p>",
            )

    async def send_engagement_status_notification(
        self,
        *,
        patient_name: str,
        previous_status: str,
        new_status: str,
        changed_by: str,
        reason: Optional[str],
    ) -> Optional[dict]:
        recipient = self.settings.admin_notification_email
        if not recipient:
            logger.info("No admin notification address configured; skipping status notification")
            return None
        return await self.send_email(
            recipient,
            f"Patient status changed: {patient_name} -> {new_status}",
            f"<p>{html.escape(changed_by)} changed <b>{html.escape(patient_name)}</b> "
            f"from <b>{html.escape(previous_status)}</b> to <b>{html.escape(new_status)}</b>.</p>"
            f"<p>Reason: {html.escape(reason or 'not given')}</p>",
        )
