"""
Lottery Draw Animator

The draw is a small state machine:

    IDLE -> FAST_SPIN -> SLOW_SPIN -> SETTLED

    close() from any of them -> CLOSED (torn down)

While spinning, every tick shows a uniformly random participant. The
slow phase only ticks less often; it does not change the odds. When
the draw settles, exactly one more uniform pick decides the winner.

DESIGN DECISION: The animator owns no timers. The host calls
`advance(now)` from whatever loop it has (asyncio task, Streamlit
rerun, a test's fake clock) and the animator replays every event that
became due since the last call, in time order. Tearing a draw down is
therefore just `close()`: there is nothing left that could fire.
"""

from enum import Enum
from typing import Iterable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from business_manager.config.settings import DrawSettings
from business_manager.lottery.errors import LotteryError
from business_manager.lottery.random_source import RandomSource, SystemRandomSource
from business_manager.models.chit import ChitMember


PLACEHOLDER_NAME = "..."
NO_ELIGIBLE_PARTICIPANTS = "No eligible participants"


class DrawPhase(str, Enum):
    IDLE = "idle"
    FAST_SPIN = "fast_spin"
    SLOW_SPIN = "slow_spin"
    SETTLED = "settled"
    CLOSED = "closed"


SPINNING_PHASES = (DrawPhase.FAST_SPIN, DrawPhase.SLOW_SPIN)


class DrawOutcome(str, Enum):
    WINNER = "winner"
    NO_ELIGIBLE_PARTICIPANTS = "no_eligible_participants"


class DrawTick(BaseModel):
    """One change of the displayed name."""
    model_config = ConfigDict(frozen=True)

    phase: DrawPhase
    at: float = Field(..., description="Clock time the tick was due")
    candidate: Optional[ChitMember] = None
    displayed_name: str


class DrawSession(BaseModel):
    """Read-only view of a draw for rendering."""

    session_id: UUID
    participants: list[ChitMember]
    phase: DrawPhase
    displayed_name: str
    winner: Optional[ChitMember] = None
    outcome: Optional[DrawOutcome] = None
    started_at: Optional[float] = None


class DrawAnimator:
    """
    Randomized, timed selection of one winner from a fixed participant set.

    Times are plain floats in seconds on any monotonic clock; only
    differences matter.
    """

    def __init__(
        self,
        participants: Iterable[ChitMember],
        settings: Optional[DrawSettings] = None,
        random_source: Optional[RandomSource] = None,
        session_id: Optional[UUID] = None,
    ):
        # Frozen for the whole session
        self._participants = tuple(participants)
        self._settings = settings or DrawSettings()
        self._random = random_source or SystemRandomSource()
        self._session_id = session_id or uuid4()

        self._phase = DrawPhase.IDLE
        self._started_at: Optional[float] = None
        self._next_tick_at: Optional[float] = None
        self._displayed_name = PLACEHOLDER_NAME
        self._winner: Optional[ChitMember] = None
        self._outcome: Optional[DrawOutcome] = None

    # --- state --------------------------------------------------------------

    @property
    def session_id(self) -> UUID:
        return self._session_id

    @property
    def participants(self) -> tuple[ChitMember, ...]:
        return self._participants

    @property
    def phase(self) -> DrawPhase:
        return self._phase

    @property
    def displayed_name(self) -> str:
        return self._displayed_name

    @property
    def winner(self) -> Optional[ChitMember]:
        return self._winner

    @property
    def outcome(self) -> Optional[DrawOutcome]:
        return self._outcome

    @property
    def is_spinning(self) -> bool:
        return self._phase in SPINNING_PHASES

    @property
    def slow_down_at(self) -> Optional[float]:
        if self._started_at is None:
            return None
        return self._started_at + self._settings.slow_down_after_seconds

    @property
    def settle_at(self) -> Optional[float]:
        if self._started_at is None:
            return None
        return self._started_at + self._settings.settle_after_seconds

    @property
    def next_deadline(self) -> Optional[float]:
        """Earliest time `advance` has something to do, or None when done."""
        if not self.is_spinning:
            return None
        return min(self._next_tick_at, self._phase_boundary())

    def snapshot(self) -> DrawSession:
        return DrawSession(
            session_id=self._session_id,
            participants=list(self._participants),
            phase=self._phase,
            displayed_name=self._displayed_name,
            winner=self._winner,
            outcome=self._outcome,
            started_at=self._started_at,
        )

    # --- transitions --------------------------------------------------------

    def start(self, now: float) -> None:
        """Begin the fast cycle. The first candidate shows one interval later."""
        if self._phase != DrawPhase.IDLE:
            raise LotteryError(f"Draw cannot start from {self._phase.value}")
        self._started_at = now
        self._phase = DrawPhase.FAST_SPIN
        self._next_tick_at = now + self._settings.fast_interval_seconds

    def advance(self, now: float) -> list[DrawTick]:
        """
        Apply every tick and phase change due at or before `now`.

        Returns the ticks emitted, oldest first (the settle tick last if
        the draw settled). Outside the spinning phases this is a no-op.
        """
        ticks: list[DrawTick] = []
        while self.is_spinning:
            boundary = self._phase_boundary()
            # A phase boundary wins a tie with a tick due at the same time
            if self._next_tick_at < boundary and self._next_tick_at <= now:
                tick_at = self._next_tick_at
                tick = self._tick(tick_at)
                if tick is not None:
                    ticks.append(tick)
                self._next_tick_at = tick_at + self._current_interval()
                continue
            if boundary <= now:
                if self._phase == DrawPhase.FAST_SPIN:
                    self._phase = DrawPhase.SLOW_SPIN
                    self._next_tick_at = boundary + self._settings.slow_interval_seconds
                else:
                    ticks.append(self._settle(boundary))
                continue
            break
        return ticks

    def close(self) -> bool:
        """
        Tear the draw down.

        Returns True if an unfinished draw was discarded. A closed draw
        never emits another tick and never produces a winner.
        """
        discarded = self.is_spinning
        self._phase = DrawPhase.CLOSED
        self._next_tick_at = None
        return discarded

    # --- internals ----------------------------------------------------------

    def _phase_boundary(self) -> float:
        if self._phase == DrawPhase.FAST_SPIN:
            return self.slow_down_at
        return self.settle_at

    def _current_interval(self) -> float:
        if self._phase == DrawPhase.FAST_SPIN:
            return self._settings.fast_interval_seconds
        return self._settings.slow_interval_seconds

    def _pick(self) -> ChitMember:
        return self._participants[self._random.pick(len(self._participants))]

    def _tick(self, at: float) -> Optional[DrawTick]:
        # Nothing to show while spinning over an empty set
        if not self._participants:
            return None
        candidate = self._pick()
        self._displayed_name = candidate.name
        return DrawTick(
            phase=self._phase,
            at=at,
            candidate=candidate,
            displayed_name=self._displayed_name,
        )

    def _settle(self, at: float) -> DrawTick:
        self._phase = DrawPhase.SETTLED
        self._next_tick_at = None
        if self._participants:
            self._winner = self._pick()
            self._outcome = DrawOutcome.WINNER
            self._displayed_name = self._winner.name
        else:
            self._outcome = DrawOutcome.NO_ELIGIBLE_PARTICIPANTS
            self._displayed_name = NO_ELIGIBLE_PARTICIPANTS
        return DrawTick(
            phase=DrawPhase.SETTLED,
            at=at,
            candidate=self._winner,
            displayed_name=self._displayed_name,
        )
