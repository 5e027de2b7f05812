"""
Participant selection

Before a draw the operator can leave out some eligible members (for
example someone absent from the meeting). The selection is held here
and checked against the minimum needed for a real random choice.
"""

from typing import Iterable
from uuid import UUID

from business_manager.lottery.errors import NotEnoughParticipants
from business_manager.models.chit import ChitMember


DEFAULT_MIN_PARTICIPANTS = 2


class ParticipantSelector:
    """
    Include/exclude state over a fixed list of eligible members.

    Everyone starts selected. `selected` always comes back in the
    eligible list's order, whatever order the toggles happened in.
    """

    def __init__(
        self,
        eligible_members: Iterable[ChitMember],
        min_participants: int = DEFAULT_MIN_PARTICIPANTS,
    ):
        self._eligible = list(eligible_members)
        self._eligible_ids = {m.id for m in self._eligible}
        self._min_participants = min_participants
        self._selected_ids: set[UUID] = set(self._eligible_ids)

    @property
    def eligible(self) -> list[ChitMember]:
        return list(self._eligible)

    @property
    def selected(self) -> list[ChitMember]:
        return [m for m in self._eligible if m.id in self._selected_ids]

    @property
    def min_participants(self) -> int:
        return self._min_participants

    def is_selected(self, member_id: UUID) -> bool:
        return member_id in self._selected_ids

    def toggle(self, member_id: UUID) -> None:
        """Flip one member in or out. Unknown ids are ignored."""
        if member_id not in self._eligible_ids:
            return
        if member_id in self._selected_ids:
            self._selected_ids.discard(member_id)
        else:
            self._selected_ids.add(member_id)

    def select_all(self) -> None:
        self._selected_ids = set(self._eligible_ids)

    def select_none(self) -> None:
        self._selected_ids = set()

    def can_start_draw(self) -> bool:
        return len(self._selected_ids) >= self._min_participants

    def validate(self) -> list[ChitMember]:
        """
        Return the selected members, or raise if there are too few.

        Raises:
            NotEnoughParticipants: fewer than `min_participants` selected
        """
        if not self.can_start_draw():
            raise NotEnoughParticipants(
                selected=len(self._selected_ids),
                required=self._min_participants,
            )
        return self.selected
