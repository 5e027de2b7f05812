"""
Chit Fund Data Models

A chit group is a rotating savings pool: members pay into the pool
(GIVEN) and take turns receiving the lump sum (RECEIVED). Who receives
the next payout is decided by a lottery draw over the members who have
not won yet.

DESIGN DECISION: Totals such as "amount collected" are NOT stored on
these models. They are derived from the transaction log on every read
(see business_manager.reports.summary), so they can never drift from it.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


LOTTERY_PAYOUT_DESCRIPTION = "Lottery Win"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class InvalidStatusTransition(ValueError):
    """A member's lottery status was asked to move backwards."""
    pass


# =============================================================================
# ENUMS
# =============================================================================

class ChitStatus(str, Enum):
    """Lifecycle of a chit group."""
    ONGOING = "Ongoing"
    COMPLETED = "Completed"


class LotteryStatus(str, Enum):
    """
    Whether a member has received their payout.

    CRITICAL: PENDING -> WON happens exactly once per member.
    WON is terminal; there is no un-winning.
    """
    PENDING = "Pending"
    WON = "Won"


class TransactionType(str, Enum):
    """
    Direction of money, from the member's point of view.

    GIVEN: member pays into the pool.
    RECEIVED: member is paid out, including lottery payouts.
    """
    GIVEN = "Given"
    RECEIVED = "Received"


# =============================================================================
# CORE MODELS
# =============================================================================

class ChitGroup(BaseModel):
    """A chit fund group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Group name, e.g. 'Friends Chit'"
    )
    total_value: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Lump sum paid out to each lottery winner"
    )
    members_count: int = Field(
        ...,
        ge=1,
        description="Configured number of members"
    )
    duration_months: int = Field(
        ...,
        ge=1,
        description="How many months the chit runs"
    )
    start_date: Optional[date] = None
    status: ChitStatus = Field(default=ChitStatus.ONGOING)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def monthly_installment(self) -> Decimal:
        """What each member pays per month if contributions are equal."""
        return (self.total_value / self.members_count).quantize(Decimal("0.01"))


class ChitMember(BaseModel):
    """
    A member of one chit group.

    `group_id` is a back-reference only; the group does not embed
    its members.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    group_id: UUID
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=300)
    lottery_status: LotteryStatus = Field(default=LotteryStatus.PENDING)
    joined_at: datetime = Field(default_factory=utc_now)

    @property
    def has_won(self) -> bool:
        return self.lottery_status == LotteryStatus.WON

    def with_lottery_status(self, status: LotteryStatus) -> "ChitMember":
        """
        Return a copy of this member with a new lottery status.

        Raises:
            InvalidStatusTransition: If the member already won and the
                new status is PENDING.
        """
        if self.has_won and status == LotteryStatus.PENDING:
            raise InvalidStatusTransition(
                f"Member {self.name} already won; status cannot go back to Pending"
            )
        return self.model_copy(update={"lottery_status": status})


class MemberTransaction(BaseModel):
    """
    One ledger entry for a chit member.

    Transactions are immutable. Editing one means replacing it by id
    through the storage layer.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    member_id: UUID
    date: date
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount in minor-unit precision"
    )
    type: TransactionType
    description: str = Field(default="", max_length=200)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_lottery_payout(self) -> bool:
        return (
            self.type == TransactionType.RECEIVED
            and self.description.startswith(LOTTERY_PAYOUT_DESCRIPTION)
        )
