"""Tests for derived totals and the summary report."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from business_manager.models import (
    ChitGroup,
    ChitMember,
    ChitStatus,
    CustomerTransaction,
    HouseholdEntry,
    HouseholdEntryType,
    Loan,
    LoanType,
    MemberTransaction,
    TransactionType,
)
from business_manager.reports import (
    GroupSummary,
    GroupTotals,
    SummaryAggregator,
    aggregate,
    build_summary_report,
)


def tx(member, amount, type, on=date(2024, 1, 1)):
    return MemberTransaction(
        member_id=member.id,
        date=on,
        amount=Decimal(amount),
        type=type,
    )


@pytest.fixture
def members():
    group_id = uuid4()
    return [
        ChitMember(group_id=group_id, name="Amit"),
        ChitMember(group_id=group_id, name="Chetan"),
    ]


class TestSummaryAggregator:
    """Totals are a pure fold over the transaction log."""

    def test_per_member_totals(self, members):
        amit, chetan = members
        transactions = [
            tx(amit, "10000", TransactionType.GIVEN, date(2024, 1, 5)),
            tx(amit, "10000", TransactionType.GIVEN, date(2024, 2, 5)),
            tx(amit, "100000", TransactionType.RECEIVED, date(2024, 1, 20)),
            tx(chetan, "10000", TransactionType.GIVEN, date(2024, 1, 6)),
        ]

        summary = SummaryAggregator().aggregate(members, transactions)

        amit_totals = summary.for_member(amit.id)
        assert amit_totals.total_given == Decimal("20000")
        assert amit_totals.total_received == Decimal("100000")
        assert amit_totals.last_transaction_date == date(2024, 2, 5)
        assert summary.for_member(chetan.id).total_given == Decimal("10000")

    def test_group_totals(self, members):
        amit, chetan = members
        transactions = [
            tx(amit, "10000", TransactionType.GIVEN),
            tx(chetan, "10000", TransactionType.GIVEN),
            tx(chetan, "15000", TransactionType.RECEIVED),
        ]

        group = aggregate(members, transactions).group

        assert group.amount_collected == Decimal("20000")
        assert group.amount_given == Decimal("15000")
        assert group.savings == Decimal("5000")

    def test_member_without_transactions(self, members):
        summary = aggregate(members, [])
        totals = summary.for_member(members[0].id)
        assert totals.total_given == Decimal("0")
        assert totals.last_transaction_date is None
        assert summary.group.amount_collected == Decimal("0")

    def test_transactions_of_other_members_ignored(self, members):
        outsider = ChitMember(group_id=uuid4(), name="Outsider")
        summary = aggregate(members, [tx(outsider, "5000", TransactionType.GIVEN)])
        assert summary.group.amount_collected == Decimal("0")
        assert outsider.id not in summary.per_member

    def test_adding_a_transaction_moves_totals_by_its_amount(self, members):
        amit, chetan = members
        base = [
            tx(amit, "10000", TransactionType.GIVEN),
            tx(chetan, "2500.50", TransactionType.RECEIVED),
        ]
        extra = tx(chetan, "100000", TransactionType.RECEIVED)

        before = aggregate(members, base)
        after = aggregate(members, base + [extra])

        assert after.group.amount_given - before.group.amount_given == extra.amount
        assert after.group.amount_collected == before.group.amount_collected
        assert (
            after.for_member(chetan.id).total_received
            - before.for_member(chetan.id).total_received
        ) == extra.amount


class TestSummaryReport:
    """Tests for the cross-ledger report."""

    def _group(self, name, value, status=ChitStatus.ONGOING):
        return ChitGroup(
            name=name,
            total_value=Decimal(value),
            members_count=10,
            duration_months=10,
            status=status,
        )

    def _summary(self, collected, given):
        return GroupSummary(
            group=GroupTotals(
                amount_collected=Decimal(collected),
                amount_given=Decimal(given),
            )
        )

    def test_chits_cover_ongoing_groups_only(self):
        groups = [
            (self._group("Friends Chit", "100000"), self._summary("80000", "70000")),
            (self._group("Family Group", "50000"), self._summary("45000", "40000")),
            (
                self._group("Office Chit", "200000", ChitStatus.COMPLETED),
                self._summary("200000", "200000"),
            ),
        ]

        report = build_summary_report(groups, [], [], [])

        assert report.chits.total_value == Decimal("150000")
        assert report.chits.amount_collected == Decimal("125000")
        assert report.chits.amount_given == Decimal("110000")
        assert report.chits.savings == Decimal("15000")

    def test_business_section(self):
        customer_id = uuid4()
        transactions = [
            CustomerTransaction(customer_id=customer_id, date=date(2024, 1, 1), amount=Decimal("5000"), type=TransactionType.GIVEN),
            CustomerTransaction(customer_id=customer_id, date=date(2024, 1, 2), amount=Decimal("2000"), type=TransactionType.RECEIVED),
        ]

        business = build_summary_report([], transactions, [], []).business

        assert business.total_given == Decimal("5000")
        assert business.total_received == Decimal("2000")
        assert business.balance == Decimal("3000")

    def test_household_section(self):
        entries = [
            HouseholdEntry(date=date(2024, 1, 1), description="Salary", amount=Decimal("60000"), type=HouseholdEntryType.INCOME),
            HouseholdEntry(date=date(2024, 1, 3), description="Groceries", category="Food", amount=Decimal("8000"), type=HouseholdEntryType.EXPENSE),
        ]

        household = build_summary_report([], [], entries, []).household

        assert household.total_income == Decimal("60000")
        assert household.total_expenses == Decimal("8000")
        assert household.net == Decimal("52000")

    def test_loans_section(self):
        loans = [
            Loan(name="Home Loan", principal=Decimal("500000"), paid=Decimal("150000"), type=LoanType.TAKEN),
            Loan(name="To Ravi", principal=Decimal("20000"), paid=Decimal("5000"), type=LoanType.GIVEN),
        ]

        summary = build_summary_report([], [], [], loans).loans

        assert summary.total_taken == Decimal("500000")
        assert summary.balance_to_pay == Decimal("350000")
        assert summary.total_given == Decimal("20000")
        assert summary.balance_to_receive == Decimal("15000")
