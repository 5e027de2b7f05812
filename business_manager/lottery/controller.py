"""
Lottery Controller

Per-group facade the UI talks to. It wires the pipeline together:

    eligible() -> ParticipantSelector -> DrawAnimator -> WinnerCommitter
                                                      -> SummaryAggregator

and exposes only what a screen needs to render: the eligible/selected
lists, the draw phase and displayed name, a confirm entry point that is
gated on a settled draw, and short-lived notifications.

DESIGN DECISION: Nothing raised by the store escapes this class. Every
failure becomes a notification and the controller stays usable.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from business_manager.audit.logger import AuditLogger
from business_manager.config.settings import DrawSettings
from business_manager.lottery.animator import (
    PLACEHOLDER_NAME,
    DrawAnimator,
    DrawOutcome,
    DrawPhase,
    DrawSession,
    DrawTick,
)
from business_manager.lottery.committer import CommitResult, CommitStatus, WinnerCommitter
from business_manager.lottery.eligibility import eligible
from business_manager.lottery.errors import NotEnoughParticipants
from business_manager.lottery.random_source import RandomSource
from business_manager.lottery.runner import DrawRunner, TickCallback
from business_manager.lottery.selection import ParticipantSelector
from business_manager.models.audit import AuditEvent, AuditEventBuilder
from business_manager.models.chit import ChitGroup, ChitMember
from business_manager.reports.summary import GroupSummary, SummaryAggregator
from business_manager.services.notifications import NotificationCenter
from business_manager.services.storage import ChitStorageInterface, StorageError


logger = structlog.get_logger(__name__)


class LotteryController:
    """
    Draw workflow for one chit group at a time.

    Times passed to `start_draw` and `advance` are on the controller's
    monotonic clock; both default to reading it.
    """

    def __init__(
        self,
        storage: ChitStorageInterface,
        committer: WinnerCommitter,
        notifications: NotificationCenter,
        settings: Optional[DrawSettings] = None,
        random_source: Optional[RandomSource] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        aggregator: Optional[SummaryAggregator] = None,
    ):
        self._storage = storage
        self._committer = committer
        self._notifications = notifications
        self._settings = settings or DrawSettings()
        self._random = random_source
        self._audit = audit_logger or AuditLogger()
        self._clock = clock
        self._sleep = sleep
        self._aggregator = aggregator or SummaryAggregator()

        self._group: Optional[ChitGroup] = None
        self._members: list[ChitMember] = []
        self._summary: Optional[GroupSummary] = None
        self._selector: Optional[ParticipantSelector] = None
        self._animator: Optional[DrawAnimator] = None
        self._pending_payout: Optional[CommitResult] = None
        # advance() is synchronous; audit events it raises wait here
        # until the next async call writes them.
        self._queued_events: list[AuditEvent] = []

    # --- loading ------------------------------------------------------------

    async def open(self, group_id: UUID) -> bool:
        """Load a group and reset selection. Returns False if it could not."""
        await self.close()
        try:
            group = await self._storage.get_group(group_id)
        except StorageError as e:
            self._store_error("load chit group", e)
            return False
        if group is None:
            self._notifications.error("Chit group not found")
            return False

        self._group = group
        self._pending_payout = None
        return await self.refresh()

    async def refresh(self) -> bool:
        """
        Re-read members and transactions and recompute the summary.

        Selection is rebuilt over the new eligible list, so a member who
        just won drops out of it.
        """
        if self._group is None:
            return False
        try:
            members = await self._storage.list_members(self._group.id)
            transactions = await self._storage.list_transactions(group_id=self._group.id)
        except StorageError as e:
            self._store_error("refresh chit group", e)
            return False

        self._members = members
        self._summary = self._aggregator.aggregate(members, transactions)
        self._selector = ParticipantSelector(
            eligible(members),
            min_participants=self._settings.min_participants,
        )
        return True

    # --- read side ----------------------------------------------------------

    @property
    def group(self) -> Optional[ChitGroup]:
        return self._group

    @property
    def members(self) -> list[ChitMember]:
        return list(self._members)

    @property
    def eligible_members(self) -> list[ChitMember]:
        return self._selector.eligible if self._selector else []

    @property
    def selected_members(self) -> list[ChitMember]:
        return self._selector.selected if self._selector else []

    @property
    def summary(self) -> Optional[GroupSummary]:
        return self._summary

    @property
    def phase(self) -> DrawPhase:
        return self._animator.phase if self._animator else DrawPhase.IDLE

    @property
    def displayed_name(self) -> str:
        return self._animator.displayed_name if self._animator else PLACEHOLDER_NAME

    @property
    def session(self) -> Optional[DrawSession]:
        return self._animator.snapshot() if self._animator else None

    @property
    def next_deadline(self) -> Optional[float]:
        return self._animator.next_deadline if self._animator else None

    @property
    def can_confirm(self) -> bool:
        return (
            self._animator is not None
            and self._animator.phase == DrawPhase.SETTLED
            and self._animator.winner is not None
        )

    @property
    def pending_payout(self) -> Optional[CommitResult]:
        """A win whose payout record still needs saving, if any."""
        return self._pending_payout

    # --- selection ----------------------------------------------------------

    def is_selected(self, member_id: UUID) -> bool:
        return bool(self._selector and self._selector.is_selected(member_id))

    def toggle(self, member_id: UUID) -> None:
        if self._selector:
            self._selector.toggle(member_id)

    def select_all(self) -> None:
        if self._selector:
            self._selector.select_all()

    def select_none(self) -> None:
        if self._selector:
            self._selector.select_none()

    def can_start_draw(self) -> bool:
        return bool(self._selector and self._selector.can_start_draw())

    # --- draw ---------------------------------------------------------------

    async def start_draw(self, now: Optional[float] = None) -> Optional[DrawSession]:
        """
        Start a draw over the selected members.

        Any draw already running is discarded first. Returns None, with a
        notification, when no group is open or too few are selected.
        """
        await self._flush_audit()
        if self._group is None or self._selector is None:
            self._notifications.error("Open a chit group before starting a draw")
            return None

        try:
            participants = self._selector.validate()
        except NotEnoughParticipants as e:
            self._notifications.warning(str(e))
            await self._audit.log_draw_rejected(group_id=self._group.id, reason=str(e))
            return None

        await self._discard_session()

        animator = DrawAnimator(
            participants,
            settings=self._settings,
            random_source=self._random,
        )
        animator.start(self._clock() if now is None else now)
        self._animator = animator

        await self._audit.log_draw_started(
            session_id=animator.session_id,
            group_id=self._group.id,
            participant_names=[m.name for m in participants],
        )
        return animator.snapshot()

    def advance(self, now: Optional[float] = None) -> list[DrawTick]:
        """Move the running draw forward to `now`. No-op without one."""
        if self._animator is None:
            return []
        ticks = self._animator.advance(self._clock() if now is None else now)
        if ticks and ticks[-1].phase == DrawPhase.SETTLED:
            self._on_settled(self._animator)
        return ticks

    async def run_draw(self, on_tick: Optional[TickCallback] = None) -> Optional[DrawSession]:
        """
        Drive the current draw to its end on the running event loop.

        For hosts with a live asyncio loop; Streamlit-style hosts call
        `advance` from their own refresh loop instead.
        """
        animator = self._animator
        if animator is None:
            return None
        settled_here = False

        async def forward(tick: DrawTick) -> None:
            nonlocal settled_here
            if tick.phase == DrawPhase.SETTLED:
                settled_here = True
            if on_tick is not None:
                result = on_tick(tick)
                if asyncio.iscoroutine(result):
                    await result

        runner = DrawRunner(clock=self._clock, sleep=self._sleep)
        await runner.run(animator, forward)
        # A draw already settled through advance() was reported there
        if settled_here and animator is self._animator:
            self._on_settled(animator)
        await self._flush_audit()
        return self.session

    async def confirm_winner(self) -> Optional[CommitResult]:
        """
        Commit the settled winner. Only valid once per draw.

        The session is torn down before the commit is attempted, so a
        second confirm (double click) finds nothing to confirm.
        """
        await self._flush_audit()
        if not self.can_confirm:
            self._notifications.warning("The draw has not picked a winner yet")
            return None

        animator = self._animator
        self._animator = None
        winner = animator.winner

        result = await self._committer.commit(
            self._group,
            winner,
            correlation_id=animator.session_id,
        )
        self._report_commit(result)
        await self.refresh()
        return result

    async def retry_payout_record(self) -> Optional[CommitResult]:
        """Re-attempt saving the payout of a win whose record failed."""
        if self._pending_payout is None:
            self._notifications.info("There is no failed payout record to retry")
            return None

        result = await self._committer.retry_payout_record(self._pending_payout)
        if result.success:
            self._pending_payout = None
            self._notifications.success(result.message)
            await self.refresh()
        else:
            self._pending_payout = result
            self._notifications.error(result.message)
        return result

    async def close(self) -> bool:
        """Tear down the draw modal. An unsettled draw is discarded."""
        discarded = await self._discard_session()
        await self._flush_audit()
        return discarded

    # --- internals ----------------------------------------------------------

    async def _discard_session(self) -> bool:
        animator = self._animator
        if animator is None:
            return False
        self._animator = None
        phase = animator.phase
        discarded = animator.close()
        if discarded and self._group is not None:
            await self._audit.log_draw_cancelled(
                session_id=animator.session_id,
                group_id=self._group.id,
                phase=phase.value,
            )
        return discarded

    def _on_settled(self, animator: DrawAnimator) -> None:
        winner_name = animator.winner.name if animator.winner else None
        logger.info(
            "draw_settled",
            session_id=str(animator.session_id),
            winner=winner_name,
        )
        self._queued_events.append(AuditEventBuilder.draw_settled(
            session_id=animator.session_id,
            group_id=self._group.id,
            winner_name=winner_name,
        ))
        if animator.outcome == DrawOutcome.NO_ELIGIBLE_PARTICIPANTS:
            self._notifications.warning("No eligible participants")

    async def _flush_audit(self) -> None:
        events, self._queued_events = self._queued_events, []
        for event in events:
            await self._audit.log(event)

    def _report_commit(self, result: CommitResult) -> None:
        if result.status == CommitStatus.COMMITTED:
            self._notifications.success(result.message)
        elif result.status == CommitStatus.REJECTED:
            self._notifications.warning(result.message)
        elif result.status == CommitStatus.PAYOUT_RECORD_FAILED:
            self._pending_payout = result
            self._notifications.error(result.message)
        else:
            self._notifications.error(result.message)

    def _store_error(self, operation: str, error: StorageError) -> None:
        logger.warning("lottery_store_error", operation=operation, error=str(error))
        self._notifications.error(f"Could not {operation}: {error}")
