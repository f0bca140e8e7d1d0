"""Plain-text notification emails for submissions and admin flows.

Every method returns whether the mail went out; none of them raise, so they
are safe to schedule as FastAPI background tasks.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from viticult.core.config import Settings, settings as default_settings
from viticult.core.logging import get_logger
from viticult.infrastructure.email import EmailService

logger = get_logger(__name__)

SIGNATURE = "\n\nViticult Whisky\nhttps://viticultwhisky.co.uk"


def _format_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%A %d %B %Y")
    return str(value or "")


def _lines(pairs) -> str:
    return "\n".join(f"{label}: {value}" for label, value in pairs if value not in (None, ""))


class NotificationService:
    """Builds and sends the site's notification emails."""

    def __init__(self, mailer: Optional[EmailService] = None, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.mailer = mailer or EmailService(self.config)

    def _send(self, to: str, subject: str, body: str, reply_to: Optional[str] = None) -> bool:
        try:
            return self.mailer.send(to, subject, body + SIGNATURE, reply_to=reply_to)
        except Exception as e:
            logger.error(f"Notification '{subject}' to {to} failed: {e}", exc_info=True)
            return False

    def contact_received(self, contact: Dict[str, Any]) -> None:
        interests = [
            label for key, label in (
                ("investmentPurposes", "Investment purposes"),
                ("ownCask", "Owning a cask"),
                ("giftPurpose", "Gift"),
                ("otherInterest", "Other"),
            )
            if contact.get(key)
        ]
        admin_body = "New contact form submission\n\n" + _lines([
            ("Name", contact.get("name")),
            ("Email", contact.get("email")),
            ("Phone", contact.get("phone")),
            ("Subject", contact.get("subject")),
            ("Investment interest", contact.get("investmentInterest")),
            ("Interested in", ", ".join(interests)),
            ("Preferred contact", contact.get("preferredContactMethod")),
        ]) + f"\n\nMessage:\n{contact.get('message', '')}"
        self._send(
            self.config.notification_email,
            f"New Contact Form Submission - {contact.get('subject', '')}",
            admin_body,
            reply_to=contact.get("email"),
        )
        self._send(
            contact["email"],
            "Thank you for contacting Viticult Whisky",
            f"Dear {contact.get('name')},\n\n"
            "Thank you for getting in touch. A member of our team will reply "
            "within one business day.",
        )

    def sell_submission_received(self, submission: Dict[str, Any]) -> None:
        admin_body = "New whisky sell request\n\n" + _lines([
            ("Name", submission.get("name")),
            ("Email", submission.get("email")),
            ("Phone", submission.get("phone")),
            ("Distillery", submission.get("distillery")),
            ("Year", submission.get("year")),
            ("Cask type", submission.get("caskType")),
            ("Litres", submission.get("litres")),
            ("ABV", submission.get("abv")),
            ("Asking price", submission.get("askingPrice")),
        ])
        if submission.get("message"):
            admin_body += f"\n\nMessage:\n{submission['message']}"
        self._send(
            self.config.notification_email,
            f"New Whisky Sell Request - {submission.get('distillery')} {submission.get('year')}",
            admin_body,
            reply_to=submission.get("email"),
        )
        self._send(
            submission["email"],
            "We have received your whisky submission",
            f"Dear {submission.get('name')},\n\n"
            f"Thank you for submitting your {submission.get('distillery')} "
            f"({submission.get('year')}) cask. Our specialists will review the "
            "details and contact you within 48 hours.",
        )

    def consultation_booked(self, consultation: Dict[str, Any]) -> None:
        when = f"{_format_date(consultation.get('preferredDate'))} ({consultation.get('preferredTime')})"
        admin_body = "New consultation booking\n\n" + _lines([
            ("Name", consultation.get("name")),
            ("Email", consultation.get("email")),
            ("Phone", consultation.get("phone")),
            ("Preferred date", when),
            ("Timezone", consultation.get("timezone")),
            ("Budget", consultation.get("investmentBudget")),
            ("Experience", consultation.get("investmentExperience")),
            ("Interested in", ", ".join(consultation.get("interestedIn") or [])),
        ])
        if consultation.get("additionalInfo"):
            admin_body += f"\n\nAdditional information:\n{consultation['additionalInfo']}"
        self._send(
            self.config.notification_email,
            f"New Consultation Booking - {consultation.get('name')}",
            admin_body,
            reply_to=consultation.get("email"),
        )
        self._send(
            consultation["email"],
            "Your consultation request - Viticult Whisky",
            f"Dear {consultation.get('name')},\n\n"
            f"We have received your consultation request for {when}. "
            "We will confirm the appointment shortly.",
        )

    def consultation_confirmed(self, consultation: Dict[str, Any]) -> bool:
        body = (
            f"Dear {consultation.get('name')},\n\n"
            "Your consultation is confirmed.\n\n"
        ) + _lines([
            ("Date", _format_date(consultation.get("preferredDate"))),
            ("Time", consultation.get("preferredTime")),
            ("Consultant", consultation.get("consultantAssigned")),
            ("Meeting link", consultation.get("meetingLink")),
        ])
        return self._send(consultation["email"], "Consultation confirmed - Viticult Whisky", body)

    def consultation_reminder(self, consultation: Dict[str, Any]) -> bool:
        body = (
            f"Dear {consultation.get('name')},\n\n"
            "This is a reminder of your consultation tomorrow.\n\n"
        ) + _lines([
            ("Time", consultation.get("preferredTime")),
            ("Meeting link", consultation.get("meetingLink")),
        ])
        return self._send(consultation["email"], "Consultation reminder - Viticult Whisky", body)

    def password_reset(self, email: str, reset_link: str) -> bool:
        ttl_minutes = self.config.recovery_token_ttl_seconds // 60
        body = (
            "A password reset was requested for the Viticult Whisky admin dashboard.\n\n"
            f"Reset link (valid for {ttl_minutes} minutes):\n{reset_link}\n\n"
            "If you did not request this, you can ignore this email."
        )
        return self._send(email, "Admin password reset - Viticult Whisky", body)
