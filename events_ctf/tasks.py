"""
Celery tasks for event management.
"""
import logging
from celery import shared_task
from django.utils import timezone
from .services import event_service

logger = logging.getLogger(__name__)


@shared_task
def auto_end_expired_events():
    """
    Deactivate events that have passed their end time.

    Runs every minute via Celery Beat. Deactivated events no longer accept
    participants or flag submissions; rewards can still be distributed.
    """
    now = timezone.now()
    ended_count = event_service.expire_events(now)

    if ended_count > 0:
        logger.info(f"[AUTO-END] Deactivated {ended_count} expired event(s)")

    return {
        'status': 'success',
        'ended_count': ended_count,
        'timestamp': now.isoformat()
    }
