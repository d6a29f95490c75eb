"""
Celery tasks for e-mail delivery.

Tasks:
    - deliver_email: Send one outbox row
    - retry_failed_emails: Periodic retry of failed and stale pending rows (Celery Beat)
"""
import logging
from datetime import timedelta
from smtplib import SMTPException

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def deliver_email(self, email_id: int):
    """
    Send a queued e-mail and record the outcome on the outbox row.

    Failures are recorded (status ``failed``, attempts incremented) and
    picked up by ``retry_failed_emails``; they are not retried here.
    """
    from notifications.models import EmailOut

    try:
        email = EmailOut.objects.get(id=email_id)
    except EmailOut.DoesNotExist:
        logger.error(f"E-mail #{email_id} not found for delivery")
        return {'status': 'error', 'message': f'E-mail {email_id} not found'}

    if email.delivery_status == EmailOut.DeliveryStatus.SENT:
        logger.info(f"E-mail #{email_id} already sent, skipping")
        return {'status': 'skipped', 'email_id': email_id}

    try:
        send_mail(
            email.subject,
            email.body,
            settings.DEFAULT_FROM_EMAIL,
            [email.recipient],
            fail_silently=False
        )
    except (SMTPException, OSError) as e:
        email.mark_failed(str(e))
        logger.error(
            f"[CELERY] Delivery of e-mail #{email_id} failed (attempt {email.attempts}): {e}",
            extra={'email_id': email_id, 'task_id': self.request.id}
        )
        return {'status': 'failed', 'email_id': email_id, 'attempts': email.attempts}

    email.mark_sent()
    logger.info(
        f"[CELERY] Sent {email.event_type} e-mail #{email_id} to {email.recipient}",
        extra={'email_id': email_id, 'task_id': self.request.id}
    )
    return {'status': 'sent', 'email_id': email_id}


@shared_task
def retry_failed_emails():
    """
    Re-queue failed e-mails that have attempts left, and pending e-mails
    that were never handed to the worker.

    Scheduled via Celery Beat.
    """
    from notifications.dispatcher import enqueue
    from notifications.models import EmailOut

    stale_before = timezone.now() - timedelta(minutes=settings.EMAIL_PENDING_STALE_MINUTES)
    retryable = list(
        EmailOut.objects.filter(
            Q(delivery_status=EmailOut.DeliveryStatus.FAILED) |
            Q(delivery_status=EmailOut.DeliveryStatus.PENDING, created_at__lt=stale_before),
            attempts__lt=settings.EMAIL_MAX_ATTEMPTS
        ).order_by('id').values_list('id', flat=True)
    )
    requeued = sum(1 for email_id in retryable if enqueue(email_id))

    if retryable:
        logger.warning(f"Re-queued {requeued} of {len(retryable)} undelivered e-mails")
    return {'requeued': requeued}
