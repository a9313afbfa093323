"""
Notification writes and inbox reads.

Two write paths:
- create_notification(): plain insert, errors propagate. Use it when the
  notification is part of the operation's atomic unit (the poll closer
  builds its own bulk insert on the same model).
- send_notification(): best-effort. Runs in a savepoint so a failed insert
  rolls back only itself, logs, and returns None. Side-effect
  notifications (follow, repost, upvote, comment) go through here so they
  never abort the action that caused them.
"""
import logging
from typing import Optional

from django.db import DatabaseError, transaction

from .models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    recipient_id: int,
    type: str,
    text: str,
    post_id: Optional[int] = None,
    comment_id: Optional[int] = None,
) -> Notification:
    return Notification.objects.create(
        recipient_id=recipient_id,
        type=type,
        text=text,
        post_id=post_id,
        comment_id=comment_id,
    )


def send_notification(
    recipient_id: int,
    type: str,
    text: str,
    post_id: Optional[int] = None,
    comment_id: Optional[int] = None,
) -> Optional[Notification]:
    try:
        with transaction.atomic():
            return create_notification(recipient_id, type, text, post_id, comment_id)
    except DatabaseError:
        logger.exception(f"Failed to add {type} notification for user {recipient_id}")
        return None


def fetch_notifications(user_id: int, unread_only: bool = False):
    """Newest first. Returns a queryset so views can paginate it."""
    queryset = Notification.objects.filter(recipient_id=user_id)
    if unread_only:
        queryset = queryset.filter(is_read=False)
    return queryset.order_by('-timestamp')


def mark_all_notifications_as_read(user_id: int) -> int:
    """Single UPDATE over the user's unread notifications. Returns rows changed."""
    return (
        Notification.objects
        .filter(recipient_id=user_id, is_read=False)
        .update(is_read=True)
    )
