"""
Notification Dispatch - Best-effort messages to the next responsible user.

Dispatch happens after the transition has committed. A failing sink never
undoes a state change: the failure is logged and surfaced to the caller as
a warning string on the transition result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from sqlalchemy import func, or_, select, update

from core.exceptions import NotFound
from core.schema import NotificationType
from core.store.database import Database
from core.store.models import Notification, utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# Message Types
# =============================================================================


@dataclass(frozen=True)
class NotificationMessage:
    """Content of one notification."""

    title: str
    message: str
    action_type: str
    type: NotificationType = NotificationType.INFO
    sender_id: Optional[int] = None


@dataclass(frozen=True)
class Delivery:
    """
    One notification addressed to one recipient.

    ``recipient_id`` None is a broadcast, shown to every user.
    """

    recipient_id: Optional[int]
    file_id: Optional[int]
    message: NotificationMessage


class NotificationSink(Protocol):
    """Anything that can accept a notification for later delivery."""

    def enqueue(
        self,
        recipient_id: Optional[int],
        file_id: Optional[int],
        message: NotificationMessage,
    ) -> None:
        ...


# =============================================================================
# Sinks
# =============================================================================


class DatabaseNotificationSink:
    """Stores notifications as rows, each in its own short transaction."""

    def __init__(self, database: Database):
        self.database = database

    def enqueue(
        self,
        recipient_id: Optional[int],
        file_id: Optional[int],
        message: NotificationMessage,
    ) -> None:
        with self.database.session_scope() as session:
            session.add(
                Notification(
                    recipient_id=recipient_id,
                    sender_id=message.sender_id,
                    type=message.type.value,
                    title=message.title,
                    message=message.message,
                    property_file_id=file_id,
                    action_type=message.action_type,
                )
            )


class NotificationDispatcher:
    """Sends deliveries through a sink and collects failures as warnings."""

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    def dispatch(self, deliveries: list[Delivery]) -> tuple[int, list[str]]:
        """
        Enqueue every delivery, continuing past failures.

        Returns:
            (number enqueued, warning strings for the ones that failed)
        """
        sent = 0
        warnings: list[str] = []
        for delivery in deliveries:
            try:
                self.sink.enqueue(delivery.recipient_id, delivery.file_id, delivery.message)
                sent += 1
            except Exception as e:
                target = delivery.recipient_id if delivery.recipient_id is not None else "all"
                logger.error(
                    "Failed to enqueue %s notification for recipient %s: %s",
                    delivery.message.action_type,
                    target,
                    e,
                    exc_info=True,
                )
                warnings.append(
                    f"Notification '{delivery.message.action_type}' to recipient "
                    f"{target} could not be delivered"
                )
        return sent, warnings


# =============================================================================
# Recipient Operations
# =============================================================================


class NotificationService:
    """List, read and delete operations for a notification's recipient."""

    def __init__(self, database: Database):
        self.database = database

    @staticmethod
    def _visible_to(user_id: int):
        return or_(Notification.recipient_id == user_id, Notification.recipient_id.is_(None))

    def list_for(
        self,
        user_id: int,
        unread_only: bool = False,
        page: int = 1,
        page_size: int = 50,
    ) -> dict[str, Any]:
        """Own and broadcast notifications, newest first."""
        conditions = [self._visible_to(user_id)]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        with self.database.session_scope() as session:
            rows = session.scalars(
                select(Notification)
                .where(*conditions)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(page_size)
                .offset((page - 1) * page_size)
            )
            items = [n.to_dict() for n in rows]
            count = session.scalar(
                select(func.count(Notification.id)).where(*conditions)
            ) or 0
            unread = session.scalar(
                select(func.count(Notification.id)).where(
                    self._visible_to(user_id), Notification.is_read.is_(False)
                )
            ) or 0

        return {
            "notifications": items,
            "count": count,
            "unread_count": unread,
            "page": page,
            "page_size": page_size,
        }

    def _get_own(self, session, user_id: int, notification_id: int) -> Notification:
        record = session.get(Notification, notification_id)
        if record is None or record.recipient_id != user_id:
            raise NotFound(f"Notification {notification_id} not found")
        return record

    def mark_read(self, user_id: int, notification_id: int) -> dict[str, Any]:
        """
        Mark one of the user's own notifications read.

        Raises:
            NotFound: If the notification does not exist or belongs to someone else
        """
        with self.database.session_scope() as session:
            record = self._get_own(session, user_id, notification_id)
            if not record.is_read:
                record.is_read = True
                record.read_at = utcnow()
            session.flush()
            return record.to_dict()

    def mark_all_read(self, user_id: int) -> int:
        """Mark all of the user's unread notifications read. Returns the number updated."""
        with self.database.session_scope() as session:
            result = session.execute(
                update(Notification)
                .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True, read_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    def delete(self, user_id: int, notification_id: int) -> None:
        """
        Delete one of the user's own notifications.

        Raises:
            NotFound: If the notification does not exist or belongs to someone else
        """
        with self.database.session_scope() as session:
            session.delete(self._get_own(session, user_id, notification_id))
