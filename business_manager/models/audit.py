"""
Audit Models for Business Manager

Every ledger mutation and every lottery draw outcome is logged for audit.
This provides:
1. Traceability of who won which draw and when the payout was recorded
2. A record of payout inserts that failed after the member was marked Won
3. Debugging information when storage misbehaves

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from business_manager.models.chit import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger records (groups, members, transactions, customers, loans...)
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"

    # Lottery draw
    DRAW_STARTED = "draw_started"
    DRAW_REJECTED = "draw_rejected"
    DRAW_SETTLED = "draw_settled"
    DRAW_CANCELLED = "draw_cancelled"

    # Winner commit
    WINNER_COMMITTED = "winner_committed"
    WINNER_REJECTED = "winner_rejected"
    PAYOUT_RECORD_FAILED = "payout_record_failed"
    PAYOUT_RECORD_RETRIED = "payout_record_retried"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'chit_member', 'loan', 'draw')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - e.g. all events of one draw session
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = Field(default=False)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("loan", loan.id, "Loan added: Home Loan")
        event = AuditEventBuilder.winner_committed(member_id, group_id, "Amit", "100000.00", session_id)
    """

    @staticmethod
    def record_created(
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        entity_type: str,
        entity_id: UUID,
        description: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            is_user_action=True,
        )

    @staticmethod
    def draw_started(
        session_id: UUID,
        group_id: UUID,
        participant_names: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAW_STARTED,
            entity_type="chit_group",
            entity_id=group_id,
            correlation_id=session_id,
            description=f"Lottery draw started with {len(participant_names)} participants",
            details={"participants": participant_names},
            is_user_action=True,
        )

    @staticmethod
    def draw_rejected(
        group_id: UUID,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAW_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="chit_group",
            entity_id=group_id,
            description=f"Lottery draw not started: {reason}",
            is_user_action=True,
        )

    @staticmethod
    def draw_settled(
        session_id: UUID,
        group_id: UUID,
        winner_name: Optional[str],
    ) -> AuditEvent:
        description = (
            f"Lottery draw settled on {winner_name}"
            if winner_name
            else "Lottery draw settled with no eligible participants"
        )
        return AuditEvent(
            event_type=AuditEventType.DRAW_SETTLED,
            entity_type="chit_group",
            entity_id=group_id,
            correlation_id=session_id,
            description=description,
            details={"winner": winner_name},
        )

    @staticmethod
    def draw_cancelled(
        session_id: UUID,
        group_id: UUID,
        phase: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAW_CANCELLED,
            entity_type="chit_group",
            entity_id=group_id,
            correlation_id=session_id,
            description=f"Lottery draw closed during {phase}",
            details={"phase": phase},
            is_user_action=True,
        )

    @staticmethod
    def winner_committed(
        member_id: UUID,
        group_id: UUID,
        member_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WINNER_COMMITTED,
            entity_type="chit_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Lottery winner recorded: {member_name} - {amount}",
            details={
                "group_id": str(group_id),
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def winner_rejected(
        member_id: UUID,
        group_id: UUID,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WINNER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="chit_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Lottery winner not recorded: {reason}",
            details={"group_id": str(group_id)},
            is_user_action=True,
        )

    @staticmethod
    def payout_record_failed(
        member_id: UUID,
        transaction_id: UUID,
        amount: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYOUT_RECORD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="chit_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description="Member marked Won but the payout record failed",
            details={
                "transaction_id": str(transaction_id),
                "amount": amount,
            },
            error_message=error_message,
        )

    @staticmethod
    def payout_record_retried(
        member_id: UUID,
        transaction_id: UUID,
        succeeded: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYOUT_RECORD_RETRIED,
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.ERROR,
            entity_type="chit_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=(
                "Payout record saved on retry"
                if succeeded
                else "Payout record retry failed"
            ),
            details={"transaction_id": str(transaction_id)},
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
