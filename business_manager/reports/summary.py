"""
Summary Aggregation

DESIGN DECISION: Totals are NEVER stored. Every screen (group list,
member ledger, summary report) folds the current transaction log
through this module, so there is exactly one place where "collected"
and "given out" are defined and no cached counter can drift.

Naming follows the pool's point of view:
- amount_collected: money members paid IN (GIVEN transactions)
- amount_given: money paid OUT to members (RECEIVED transactions)
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from business_manager.models.chit import (
    ChitGroup,
    ChitMember,
    ChitStatus,
    MemberTransaction,
    TransactionType,
)
from business_manager.models.ledger import (
    CustomerTransaction,
    HouseholdEntry,
    HouseholdEntryType,
    Loan,
    LoanType,
)


ZERO = Decimal("0")


# =============================================================================
# CHIT GROUP AGGREGATION
# =============================================================================

class MemberTotals(BaseModel):
    """Derived ledger totals for one member."""

    member_id: UUID
    total_given: Decimal = ZERO
    total_received: Decimal = ZERO
    last_transaction_date: Optional[date] = None

    @property
    def balance(self) -> Decimal:
        return self.total_given - self.total_received


class GroupTotals(BaseModel):
    amount_collected: Decimal = ZERO
    amount_given: Decimal = ZERO

    @property
    def savings(self) -> Decimal:
        """Money still held by the pool."""
        return self.amount_collected - self.amount_given


class GroupSummary(BaseModel):
    per_member: dict[UUID, MemberTotals] = Field(default_factory=dict)
    group: GroupTotals = Field(default_factory=GroupTotals)

    def for_member(self, member_id: UUID) -> MemberTotals:
        return self.per_member.get(member_id) or MemberTotals(member_id=member_id)


class SummaryAggregator:
    """
    Pure recomputation of member and group totals.

    Safe to call after every mutation. Transactions that belong to none
    of the given members are ignored, so a group-scoped summary cannot
    pick up another group's money.
    """

    def aggregate(
        self,
        members: Iterable[ChitMember],
        transactions: Iterable[MemberTransaction],
    ) -> GroupSummary:
        per_member = {m.id: MemberTotals(member_id=m.id) for m in members}
        collected = ZERO
        given = ZERO

        for tx in transactions:
            totals = per_member.get(tx.member_id)
            if totals is None:
                continue
            if tx.type == TransactionType.GIVEN:
                totals.total_given += tx.amount
                collected += tx.amount
            else:
                totals.total_received += tx.amount
                given += tx.amount
            if totals.last_transaction_date is None or tx.date > totals.last_transaction_date:
                totals.last_transaction_date = tx.date

        return GroupSummary(
            per_member=per_member,
            group=GroupTotals(amount_collected=collected, amount_given=given),
        )


_default_aggregator = SummaryAggregator()


def aggregate(
    members: Iterable[ChitMember],
    transactions: Iterable[MemberTransaction],
) -> GroupSummary:
    """Module-level shortcut for `SummaryAggregator().aggregate`."""
    return _default_aggregator.aggregate(members, transactions)


# =============================================================================
# SUMMARY REPORT
# =============================================================================

class BusinessSummary(BaseModel):
    total_given: Decimal = ZERO
    total_received: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        """Outstanding from customers."""
        return self.total_given - self.total_received


class ChitsSummary(BaseModel):
    """Totals across ongoing chit groups only."""
    total_value: Decimal = ZERO
    amount_collected: Decimal = ZERO
    amount_given: Decimal = ZERO

    @property
    def savings(self) -> Decimal:
        return self.amount_collected - self.amount_given


class HouseholdSummary(BaseModel):
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.total_income - self.total_expenses


class LoansSummary(BaseModel):
    total_taken: Decimal = ZERO
    total_given: Decimal = ZERO
    balance_to_pay: Decimal = ZERO
    balance_to_receive: Decimal = ZERO


class SummaryReport(BaseModel):
    business: BusinessSummary
    chits: ChitsSummary
    household: HouseholdSummary
    loans: LoansSummary


def build_summary_report(
    groups: Iterable[tuple[ChitGroup, GroupSummary]],
    customer_transactions: Iterable[CustomerTransaction],
    household_entries: Iterable[HouseholdEntry],
    loans: Iterable[Loan],
) -> SummaryReport:
    """
    Build the cross-ledger summary report.

    `groups` pairs each chit group with its already aggregated summary;
    completed groups are left out of the chit totals.
    """
    business = BusinessSummary()
    for tx in customer_transactions:
        if tx.type == TransactionType.GIVEN:
            business.total_given += tx.amount
        else:
            business.total_received += tx.amount

    chits = ChitsSummary()
    for group, summary in groups:
        if group.status != ChitStatus.ONGOING:
            continue
        chits.total_value += group.total_value
        chits.amount_collected += summary.group.amount_collected
        chits.amount_given += summary.group.amount_given

    household = HouseholdSummary()
    for entry in household_entries:
        if entry.type == HouseholdEntryType.INCOME:
            household.total_income += entry.amount
        else:
            household.total_expenses += entry.amount

    loans_summary = LoansSummary()
    for loan in loans:
        if loan.type == LoanType.TAKEN:
            loans_summary.total_taken += loan.principal
            loans_summary.balance_to_pay += loan.balance
        else:
            loans_summary.total_given += loan.principal
            loans_summary.balance_to_receive += loan.balance

    return SummaryReport(
        business=business,
        chits=chits,
        household=household,
        loans=loans_summary,
    )
