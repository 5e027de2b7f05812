"""Lottery exceptions."""


class LotteryError(Exception):
    """Base exception for the lottery draw."""
    pass


class NotEnoughParticipants(LotteryError):
    """Fewer members are selected than a meaningful draw needs."""

    def __init__(self, selected: int, required: int):
        self.selected = selected
        self.required = required
        super().__init__(
            f"Select at least {required} members to start a draw "
            f"({selected} selected)"
        )

