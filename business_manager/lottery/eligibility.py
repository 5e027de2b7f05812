"""Who may take part in the next draw of a group."""

from typing import Iterable

from business_manager.models.chit import ChitMember, LotteryStatus


def eligible(members: Iterable[ChitMember]) -> list[ChitMember]:
    """
    Members who have not won yet, in the order given.

    Pure: no I/O, no failure modes. An empty input gives an empty list.
    """
    return [m for m in members if m.lottery_status == LotteryStatus.PENDING]
