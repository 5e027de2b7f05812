"""
Operator notifications

Short-lived messages the UI shows and then dismisses on its own.
"""

from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from business_manager.models.chit import utc_now


class NotificationSeverity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """A message for the operator, with its auto-dismiss deadline."""

    id: UUID = Field(default_factory=uuid4)
    message: str = Field(..., min_length=1, max_length=500)
    severity: NotificationSeverity = Field(default=NotificationSeverity.INFO)
    created_at: datetime = Field(default_factory=utc_now)
    dismiss_after_seconds: float = Field(default=3.0, gt=0.0)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.dismiss_after_seconds)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
