"""Celery tasks for the inventory app."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def send_confirmation_email(confirmation_id: str, confirmation_url: str) -> bool:
    """Email the confirmation link to the employee and record the outcome.

    Delivery failures are stored on the confirmation rather than retried;
    staff can resend from the transaction.
    """
    from .models import Confirmation
    from .services import confirmations
    from .services.notifications import get_dispatcher

    try:
        confirmation = Confirmation.objects.select_related("employee").get(
            pk=confirmation_id
        )
    except Confirmation.DoesNotExist:
        logger.warning("Confirmation %s vanished before sending", confirmation_id)
        return False

    employee = confirmation.employee
    template_data = {
        "employee_name": employee.get_display_name(),
        "items": confirmations.items_of(confirmation),
        "confirmation_url": confirmation_url,
        "expires_at": confirmation.expires_at,
        "protocol_type": confirmation.protocol_type,
    }
    result = get_dispatcher().send(employee.email, template_data)
    confirmations.record_email_outcome(
        confirmation.pk, result.sent, result.error
    )
    return result.sent
