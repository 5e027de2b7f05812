"""
Chit-fund lottery draw.

eligible() -> ParticipantSelector -> DrawAnimator -> WinnerCommitter,
tied together for the UI by LotteryController.
"""

from business_manager.lottery.animator import (
    NO_ELIGIBLE_PARTICIPANTS,
    PLACEHOLDER_NAME,
    DrawAnimator,
    DrawOutcome,
    DrawPhase,
    DrawSession,
    DrawTick,
)
from business_manager.lottery.committer import (
    MEMBER_ALREADY_WON,
    MEMBER_NOT_IN_GROUP,
    CommitResult,
    CommitStatus,
    WinnerCommitter,
)
from business_manager.lottery.controller import LotteryController
from business_manager.lottery.eligibility import eligible
from business_manager.lottery.errors import (
    LotteryError,
    NotEnoughParticipants,
)
from business_manager.lottery.random_source import RandomSource, SystemRandomSource
from business_manager.lottery.runner import DrawRunner
from business_manager.lottery.selection import DEFAULT_MIN_PARTICIPANTS, ParticipantSelector

__all__ = [
    # Eligibility and selection
    "eligible",
    "ParticipantSelector",
    "DEFAULT_MIN_PARTICIPANTS",
    # Draw
    "DrawAnimator",
    "DrawOutcome",
    "DrawPhase",
    "DrawSession",
    "DrawTick",
    "DrawRunner",
    "NO_ELIGIBLE_PARTICIPANTS",
    "PLACEHOLDER_NAME",
    "RandomSource",
    "SystemRandomSource",
    # Commit
    "CommitResult",
    "CommitStatus",
    "WinnerCommitter",
    "MEMBER_ALREADY_WON",
    "MEMBER_NOT_IN_GROUP",
    # Controller
    "LotteryController",
    # Errors
    "LotteryError",
    "NotEnoughParticipants",
]
