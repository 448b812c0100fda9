"""Third-party collaborators: PracticeQ and Resend."""

from clinic_ops.integrations.email import EmailService
from clinic_ops.integrations.practiceq import BookingSettings, PracticeQClient

__all__ = ["BookingSettings", "EmailService", "PracticeQClient"]
