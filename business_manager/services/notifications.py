"""
Notification Centre

Collects short-lived operator messages (text + severity) for the UI to
show. Messages expire on their own after a configured delay or are
dismissed by the operator; the UI renders whatever `active()` returns
on each refresh.
"""

import threading
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from business_manager.config.settings import NotificationSettings
from business_manager.models.chit import utc_now
from business_manager.models.notification import (
    Notification,
    NotificationSeverity,
)


class NotificationCenter:
    """Queue of operator notifications with auto-dismiss."""

    def __init__(
        self,
        settings: Optional[NotificationSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._settings = settings or NotificationSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._items: list[Notification] = []

    def push(
        self,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
    ) -> Notification:
        notification = Notification(
            message=message,
            severity=severity,
            created_at=self._clock(),
            dismiss_after_seconds=self._settings.dismiss_after_seconds,
        )
        with self._lock:
            self._items.append(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.push(message, NotificationSeverity.SUCCESS)

    def info(self, message: str) -> Notification:
        return self.push(message, NotificationSeverity.INFO)

    def warning(self, message: str) -> Notification:
        return self.push(message, NotificationSeverity.WARNING)

    def error(self, message: str) -> Notification:
        return self.push(message, NotificationSeverity.ERROR)

    def active(self, now: Optional[datetime] = None) -> list[Notification]:
        """Unexpired notifications, oldest first. Expired ones are dropped."""
        now = now or self._clock()
        with self._lock:
            self._items = [n for n in self._items if not n.is_expired(now)]
            return list(self._items)

    def dismiss(self, notification_id: UUID) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [n for n in self._items if n.id != notification_id]
            return len(self._items) < before
