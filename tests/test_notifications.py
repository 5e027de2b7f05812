"""Tests for the operator notification queue."""

from datetime import datetime, timedelta, timezone

from business_manager.config import NotificationSettings
from business_manager.models import NotificationSeverity
from business_manager.services import NotificationCenter


class SteppingClock:

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class TestNotificationCenter:
    """Messages expire on their own or are dismissed by the operator."""

    def _center(self):
        clock = SteppingClock()
        center = NotificationCenter(NotificationSettings(dismiss_after_seconds=3.0), clock=clock)
        return center, clock

    def test_severity_helpers(self):
        center, _ = self._center()
        center.success("Saved")
        center.warning("Select at least 2 members")
        assert [n.severity for n in center.active()] == [
            NotificationSeverity.SUCCESS,
            NotificationSeverity.WARNING,
        ]

    def test_expired_messages_dropped(self):
        center, clock = self._center()
        center.info("Draw started")
        clock.now += timedelta(seconds=3)
        assert center.active() == []

    def test_dismiss_removes_only_that_message(self):
        center, _ = self._center()
        warning = center.warning("Select at least 2 members")
        center.error("Could not refresh chit group")

        assert center.dismiss(warning.id) is True

        assert [n.message for n in center.active()] == ["Could not refresh chit group"]

    def test_dismiss_twice(self):
        center, _ = self._center()
        note = center.info("Draw started")
        assert center.dismiss(note.id) is True
        assert center.dismiss(note.id) is False
