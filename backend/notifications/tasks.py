"""
Fire-and-forget push scheduling.

Pushes run on a small process-wide thread pool so the request that produced
the notification never waits for the gateway.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.db import connections

from .dispatcher import PushDispatcher
from .models import Notification

logger = logging.getLogger(__name__)

_executor = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.PUSH_DISPATCH_WORKERS,
                thread_name_prefix='push-dispatch',
            )
    return _executor


def deliver_notification(notification_id):
    """
    Pushes a stored notification to its recipient's devices.

    Returns:
        DispatchResult, or None when the notification could not be loaded or
        the dispatch blew up
    """
    try:
        notification = Notification.objects.get(id=notification_id)
        return PushDispatcher().dispatch_to_member(notification.recipient_id, notification)
    except Notification.DoesNotExist:
        logger.warning(f"Notification {notification_id} vanished before push")
    except Exception:
        logger.exception(f"Push dispatch failed for notification {notification_id}")
    return None


def _deliver_in_worker(notification_id):
    try:
        deliver_notification(notification_id)
    finally:
        # Worker threads open their own connections; do not leak them.
        connections.close_all()


def schedule_push(notification_id) -> None:
    """
    Queues the push for a notification. Runs inline when
    PUSH_DISPATCH_ASYNC is off.
    """
    if not settings.PUSH_DISPATCH_ASYNC:
        deliver_notification(notification_id)
        return

    try:
        _get_executor().submit(_deliver_in_worker, notification_id)
    except RuntimeError as e:
        # Raised once the pool has been shut down at interpreter exit
        logger.warning(f"Push for notification {notification_id} not scheduled: {str(e)}")
