"""
Audit Logger

DESIGN DECISION: Every ledger mutation and draw outcome is logged.
This provides:
1. Traceability of payouts
2. Debugging capability
3. A visible trail when a payout record fails after a win

Events are written to the structlog stream first and then to audit
storage. A failed storage write is logged and reported as False; it
never interrupts the bookkeeping call that raised the event. Draw
events share the draw session id as their correlation id.
"""

from typing import Optional
from uuid import UUID

import structlog

from business_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditSeverity,
)
from business_manager.services.storage import AuditStorageInterface


# JSON lines on the standard logging stream
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Writes audit events for flows, the committer and the draw controller.

    Without a store it only emits log lines, which is what tests and the
    bare `AuditLogger()` default use.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("business_manager.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit one event, then persist it.

        Returns False only when a configured store rejected the write.
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # The event still reached the log stream above
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_created(
        self,
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_created(
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
        ))

    async def log_record_updated(
        self,
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_updated(
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
        ))

    async def log_record_deleted(
        self,
        entity_type: str,
        entity_id: UUID,
        description: str,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
        ))

    async def log_draw_started(
        self,
        session_id: UUID,
        group_id: UUID,
        participant_names: list[str],
    ) -> None:
        """Log the start of a lottery draw."""
        await self.log(AuditEventBuilder.draw_started(
            session_id=session_id,
            group_id=group_id,
            participant_names=participant_names,
        ))

    async def log_draw_rejected(self, group_id: UUID, reason: str) -> None:
        await self.log(AuditEventBuilder.draw_rejected(group_id=group_id, reason=reason))

    async def log_draw_cancelled(
        self,
        session_id: UUID,
        group_id: UUID,
        phase: str,
    ) -> None:
        await self.log(AuditEventBuilder.draw_cancelled(
            session_id=session_id,
            group_id=group_id,
            phase=phase,
        ))

    async def log_winner_committed(
        self,
        member_id: UUID,
        group_id: UUID,
        member_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a recorded lottery win."""
        await self.log(AuditEventBuilder.winner_committed(
            member_id=member_id,
            group_id=group_id,
            member_name=member_name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_winner_rejected(
        self,
        member_id: UUID,
        group_id: UUID,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.winner_rejected(
            member_id=member_id,
            group_id=group_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_payout_record_failed(
        self,
        member_id: UUID,
        transaction_id: UUID,
        amount: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a payout insert that failed after the member was marked Won."""
        await self.log(AuditEventBuilder.payout_record_failed(
            member_id=member_id,
            transaction_id=transaction_id,
            amount=amount,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_payout_record_retried(
        self,
        member_id: UUID,
        transaction_id: UUID,
        succeeded: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.payout_record_retried(
            member_id=member_id,
            transaction_id=transaction_id,
            succeeded=succeeded,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

