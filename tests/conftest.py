"""
Shared fixtures.

Async code is driven with asyncio.run; time and randomness are faked
so draws are exact and reproducible.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal

import pytest

from business_manager.audit import AuditLogger
from business_manager.config import DrawSettings, NotificationSettings
from business_manager.models import ChitGroup, ChitMember, LotteryStatus
from business_manager.services import (
    InMemoryAuditStorage,
    InMemoryChitStorage,
    NotificationCenter,
)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


class SequenceRandomSource:
    """Returns scripted indexes in order, repeating the last one."""

    def __init__(self, values):
        self.values = list(values)
        self.calls: list[int] = []

    def pick(self, n: int) -> int:
        index = self.values[min(len(self.calls), len(self.values) - 1)]
        self.calls.append(n)
        assert 0 <= index < n
        return index


@dataclass
class FriendsChit:
    storage: InMemoryChitStorage
    group: ChitGroup
    members: dict[str, ChitMember] = field(default_factory=dict)

    def __getitem__(self, name: str) -> ChitMember:
        return self.members[name]


@pytest.fixture
def draw_settings() -> DrawSettings:
    """Binary-exact timings: 3 fast ticks, 1 slow tick, settle at 2s."""
    return DrawSettings(
        fast_interval_seconds=0.25,
        slow_interval_seconds=0.5,
        slow_down_after_seconds=1.0,
        settle_after_seconds=2.0,
        min_participants=2,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter(NotificationSettings(dismiss_after_seconds=3.0))


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


def build_friends_chit(storage: InMemoryChitStorage) -> FriendsChit:
    """Friends Chit: Amit, Chetan, Divya pending; Bhavna already won."""
    group = ChitGroup(
        name="Friends Chit",
        total_value=Decimal("100000"),
        members_count=10,
        duration_months=10,
    )
    chit = FriendsChit(storage=storage, group=group)

    async def seed():
        await storage.save_group(group)
        for name, status in [
            ("Amit", LotteryStatus.PENDING),
            ("Bhavna", LotteryStatus.WON),
            ("Chetan", LotteryStatus.PENDING),
            ("Divya", LotteryStatus.PENDING),
        ]:
            member = ChitMember(group_id=group.id, name=name, lottery_status=status)
            await storage.save_member(member)
            chit.members[name] = member

    asyncio.run(seed())
    return chit


@pytest.fixture
def friends_chit() -> FriendsChit:
    return build_friends_chit(InMemoryChitStorage())


@pytest.fixture
def make_friends_chit():
    """Seed Friends Chit into a store of the test's choosing."""
    return build_friends_chit


@pytest.fixture
def scripted_random():
    """Factory for scripted random sources."""
    return SequenceRandomSource
