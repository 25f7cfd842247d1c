"""Confirmation emails.

In development mode every message is redirected to ``TEST_EMAIL_ADDRESS``
and the body names the employee it was meant for.
"""

import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.core.mail.message import make_msgid
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

PRODUCTION = "production"
DEVELOPMENT = "development"


@dataclass(frozen=True)
class SendResult:
    sent: bool
    message_id: str | None = None
    error: str | None = None


class NotificationDispatcher:
    """Renders and sends confirmation emails.

    Args:
        mode: ``"production"`` or ``"development"``.
        test_address: Recipient for all mail in development mode.
        from_email: Sender address.
    """

    template_name = "confirmation"

    def __init__(self, mode: str, test_address: str = "", from_email: str = ""):
        if mode not in (PRODUCTION, DEVELOPMENT):
            raise ValueError(f"Unknown email mode '{mode}'")
        if mode == DEVELOPMENT and not test_address:
            raise ValueError("Development mode requires a test address")
        self.mode = mode
        self.test_address = test_address
        self.from_email = from_email

    @property
    def is_development(self) -> bool:
        return self.mode == DEVELOPMENT

    def resolve_recipient(self, recipient_email: str) -> str:
        return self.test_address if self.is_development else recipient_email

    def render(self, recipient_email: str, template_data: dict):
        context = {
            "company_name": settings.COMPANY_NAME,
            **template_data,
            "is_development": self.is_development,
            "original_recipient": recipient_email,
        }
        subject = (
            f"Please confirm receipt of your workwear - "
            f"{context['company_name']}"
        )
        if self.is_development:
            subject = f"[TEST] {subject}"
        html_body = render_to_string(
            f"emails/{self.template_name}.html", context
        )
        text_body = render_to_string(
            f"emails/{self.template_name}.txt", context
        )
        return subject, text_body, html_body

    def send(self, recipient_email: str, template_data: dict) -> SendResult:
        """Send the confirmation email. Failures are returned, not raised."""
        try:
            subject, text_body, html_body = self.render(
                recipient_email, template_data
            )
            to = self.resolve_recipient(recipient_email)
            message_id = make_msgid()
            msg = EmailMultiAlternatives(
                subject=subject,
                body=text_body,
                from_email=self.from_email,
                to=[to],
                headers={"Message-ID": message_id},
            )
            msg.attach_alternative(html_body, "text/html")
            msg.send()
        except Exception as exc:
            logger.exception("Confirmation email to %s failed", recipient_email)
            return SendResult(sent=False, error=str(exc) or exc.__class__.__name__)

        logger.info(
            "Confirmation email sent to %s%s",
            to,
            f" (intended for {recipient_email})" if self.is_development else "",
        )
        return SendResult(sent=True, message_id=message_id)


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        mode=settings.EMAIL_MODE,
        test_address=settings.TEST_EMAIL_ADDRESS,
        from_email=settings.DEFAULT_FROM_EMAIL,
    )
