"""
Winner Committer

Records a confirmed lottery winner: the member's status goes to WON and
a RECEIVED payout of the group's total value is appended to their
ledger. Both effects belong to one logical transaction.

ORDERING: When the store can write both effects in one transaction
(`supports_atomic_commit`), that is used and either both land or
neither does. Otherwise the status flip is written FIRST and the payout
insert SECOND. If the insert then fails, the member stays WON with no
payout row. This inconsistency window is accepted, not rolled back:
the result comes back as PAYOUT_RECORD_FAILED carrying the unsaved
transaction, an error is audited, and `retry_payout_record` re-attempts
only the insert.

The member list read above is a snapshot. The store re-checks the WON
status under its own write, so two commits racing past the read still
produce one win and one payout; the loser comes back REJECTED.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from business_manager.audit.logger import AuditLogger
from business_manager.lottery.errors import LotteryError
from business_manager.models.chit import (
    LOTTERY_PAYOUT_DESCRIPTION,
    ChitGroup,
    ChitMember,
    LotteryStatus,
    MemberTransaction,
    TransactionType,
    utc_now,
)
from business_manager.services.storage import (
    AlreadyWonError,
    ChitStorageInterface,
    DuplicateError,
    StorageError,
)


logger = structlog.get_logger(__name__)

MEMBER_ALREADY_WON = "Member already won"
MEMBER_NOT_IN_GROUP = "Member not in group"


class CommitStatus(str, Enum):
    COMMITTED = "committed"
    # Precondition failed, nothing written
    REJECTED = "rejected"
    # Store error before anything was written
    FAILED = "failed"
    # Member is WON but the payout row is missing
    PAYOUT_RECORD_FAILED = "payout_record_failed"


class CommitResult(BaseModel):
    """Outcome of one commit or retry."""

    status: CommitStatus
    group_id: UUID
    member_id: UUID
    member_name: str
    transaction: Optional[MemberTransaction] = None
    message: str
    correlation_id: Optional[UUID] = None

    @property
    def success(self) -> bool:
        return self.status == CommitStatus.COMMITTED

    @property
    def needs_payout_retry(self) -> bool:
        return self.status == CommitStatus.PAYOUT_RECORD_FAILED


class WinnerCommitter:
    """
    Persists lottery winners against a chit store.

    Never raises for store or precondition failures; every outcome is
    returned as a `CommitResult` and written to the audit trail.
    """

    def __init__(
        self,
        storage: ChitStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._clock = clock

    async def commit(
        self,
        group: ChitGroup,
        winner: ChitMember,
        correlation_id: Optional[UUID] = None,
    ) -> CommitResult:
        """
        Mark `winner` as WON and record their payout.

        The member list is re-read from the store so a second commit for
        the same member is rejected even if the caller holds a stale copy.
        """
        try:
            members = await self._storage.list_members(group.id)
        except StorageError as e:
            return await self._failed(group, winner, "read members", e, correlation_id)

        current = next((m for m in members if m.id == winner.id), None)
        if current is None:
            return await self._rejected(group, winner, MEMBER_NOT_IN_GROUP, correlation_id)
        if current.has_won:
            return await self._rejected(group, winner, MEMBER_ALREADY_WON, correlation_id)

        payout = self._build_payout(group, current)

        if self._storage.supports_atomic_commit:
            try:
                await self._storage.record_lottery_win(current.id, payout)
            except AlreadyWonError:
                return await self._rejected(group, current, MEMBER_ALREADY_WON, correlation_id)
            except StorageError as e:
                return await self._failed(group, current, "record lottery win", e, correlation_id)
            return await self._committed(group, current, payout, correlation_id)

        # Step 1: status flip. Failing here leaves the store untouched.
        try:
            await self._storage.update_member_status(current.id, LotteryStatus.WON)
        except AlreadyWonError:
            return await self._rejected(group, current, MEMBER_ALREADY_WON, correlation_id)
        except StorageError as e:
            return await self._failed(group, current, "update member status", e, correlation_id)

        # Step 2: payout insert. From here on the member is visibly WON;
        # a failure is reported and left for retry_payout_record.
        try:
            await self._storage.insert_transaction(payout)
        except StorageError as e:
            await self._audit.log_payout_record_failed(
                member_id=current.id,
                transaction_id=payout.id,
                amount=str(payout.amount),
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return CommitResult(
                status=CommitStatus.PAYOUT_RECORD_FAILED,
                group_id=group.id,
                member_id=current.id,
                member_name=current.name,
                transaction=payout,
                message=(
                    f"{current.name} marked as Won but the payment record failed: {e}. "
                    "Retry saving the payout."
                ),
                correlation_id=correlation_id,
            )

        return await self._committed(group, current, payout, correlation_id)

    async def retry_payout_record(self, result: CommitResult) -> CommitResult:
        """
        Re-attempt the payout insert of a PAYOUT_RECORD_FAILED result.

        The same transaction id is reused, so a row that did land on an
        earlier attempt is detected as a duplicate instead of paid twice.

        Raises:
            LotteryError: `result` has no pending payout
        """
        if not result.needs_payout_retry or result.transaction is None:
            raise LotteryError("There is no failed payout record to retry")

        try:
            await self._storage.insert_transaction(result.transaction)
            succeeded = True
            error = None
        except DuplicateError:
            succeeded = True
            error = None
        except StorageError as e:
            succeeded = False
            error = e

        await self._audit.log_payout_record_retried(
            member_id=result.member_id,
            transaction_id=result.transaction.id,
            succeeded=succeeded,
            correlation_id=result.correlation_id,
        )

        if not succeeded:
            return result.model_copy(update={
                "message": f"Payment record for {result.member_name} failed again: {error}",
            })
        return result.model_copy(update={
            "status": CommitStatus.COMMITTED,
            "message": f"Payment of {result.transaction.amount} recorded for {result.member_name}",
        })

    def _build_payout(self, group: ChitGroup, member: ChitMember) -> MemberTransaction:
        return MemberTransaction(
            member_id=member.id,
            date=self._clock().date(),
            amount=group.total_value,
            type=TransactionType.RECEIVED,
            description=f"{LOTTERY_PAYOUT_DESCRIPTION} - {group.name}",
        )

    async def _committed(
        self,
        group: ChitGroup,
        member: ChitMember,
        payout: MemberTransaction,
        correlation_id: Optional[UUID],
    ) -> CommitResult:
        await self._audit.log_winner_committed(
            member_id=member.id,
            group_id=group.id,
            member_name=member.name,
            amount=str(payout.amount),
            correlation_id=correlation_id,
        )
        return CommitResult(
            status=CommitStatus.COMMITTED,
            group_id=group.id,
            member_id=member.id,
            member_name=member.name,
            transaction=payout,
            message=f"{member.name} won {payout.amount} in {group.name}",
            correlation_id=correlation_id,
        )

    async def _rejected(
        self,
        group: ChitGroup,
        member: ChitMember,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> CommitResult:
        await self._audit.log_winner_rejected(
            member_id=member.id,
            group_id=group.id,
            reason=reason,
            correlation_id=correlation_id,
        )
        return CommitResult(
            status=CommitStatus.REJECTED,
            group_id=group.id,
            member_id=member.id,
            member_name=member.name,
            message=f"{member.name}: {reason.lower()}",
            correlation_id=correlation_id,
        )

    async def _failed(
        self,
        group: ChitGroup,
        member: ChitMember,
        operation: str,
        error: StorageError,
        correlation_id: Optional[UUID],
    ) -> CommitResult:
        logger.warning(
            "winner_commit_failed",
            operation=operation,
            member_id=str(member.id),
            error=str(error),
        )
        await self._audit.log_storage_error(
            operation=operation,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        return CommitResult(
            status=CommitStatus.FAILED,
            group_id=group.id,
            member_id=member.id,
            member_name=member.name,
            message=f"Could not record winner {member.name}: {error}",
            correlation_id=correlation_id,
        )
