"""
Notification dispatcher.

``send`` renders the e-mail, stores it in the outbox inside the caller's
transaction and hands delivery to the Celery worker once that transaction
commits. A rolled-back status change therefore never sends mail, and a
failing mail server never rolls back a status change.
"""
import logging
from functools import partial
from typing import Dict, Optional

from django.conf import settings
from django.db import transaction
from django.template.loader import render_to_string

from core.exceptions import ValidationError
from .models import EmailOut

logger = logging.getLogger(__name__)

SUBJECTS = {
    EmailOut.EventType.ORDER_CONFIRMATION.value: 'Ihre Bestellung {order_number} wurde bestätigt',
    EmailOut.EventType.ORDER_REJECTION.value: 'Ihre Bestellung {order_number} wurde abgelehnt',
    EmailOut.EventType.ORDER_CANCELLATION.value: 'Ihre Bestellung {order_number} wurde storniert',
    EmailOut.EventType.ORDER_SHIPPED.value: 'Ihre Bestellung {order_number} ist unterwegs',
    EmailOut.EventType.INQUIRY_ACCEPTED.value: 'Ihre Anfrage {inquiry_id} wurde angenommen',
    EmailOut.EventType.INQUIRY_REJECTED.value: 'Ihre Anfrage {inquiry_id} wurde abgelehnt',
}


class _Defaults(dict):
    def __missing__(self, key):
        return ''


def send(event_type: str, recipient: str, template_data: Dict, reference: str = '') -> Optional[EmailOut]:
    """
    Queue one e-mail for ``event_type``.

    Returns the outbox row, or None when there is no recipient.
    """
    event_type = str(event_type)
    if event_type not in EmailOut.EventType.values:
        raise ValidationError(f"Unknown notification event '{event_type}'")
    if not recipient:
        logger.warning(f"No recipient for {event_type} ({reference or 'no reference'}), not queued")
        return None

    subject = SUBJECTS[event_type].format_map(_Defaults(template_data))
    body = render_to_string(
        f'notifications/{event_type}.txt',
        {'shop_name': settings.SHOP_NAME, **template_data}
    )

    email = EmailOut.objects.create(
        event_type=event_type,
        recipient=recipient,
        subject=subject,
        body=body,
        context=template_data,
        reference=reference,
    )
    logger.info(f"Queued {event_type} e-mail #{email.pk} to {recipient}", extra={'email_id': email.pk})

    transaction.on_commit(partial(enqueue, email.pk))
    return email


def enqueue(email_id: int) -> bool:
    """
    Hand an outbox row to the Celery worker.

    Runs after the caller's transaction has committed, so a broker outage
    must not propagate. The row is marked failed instead and picked up by
    ``retry_failed_emails``.
    """
    from .tasks import deliver_email

    try:
        deliver_email.delay(email_id)
        return True
    except Exception as e:
        logger.error(f"Failed to queue e-mail #{email_id}: {e}", extra={'email_id': email_id})
        email = EmailOut.objects.filter(pk=email_id).first()
        if email is not None:
            email.mark_failed(f"Queueing failed: {e}")
        return False
