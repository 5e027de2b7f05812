"""Derived totals and summary reports."""

from business_manager.reports.summary import (
    BusinessSummary,
    ChitsSummary,
    GroupSummary,
    GroupTotals,
    HouseholdSummary,
    LoansSummary,
    MemberTotals,
    SummaryAggregator,
    SummaryReport,
    aggregate,
    build_summary_report,
)

__all__ = [
    "BusinessSummary",
    "ChitsSummary",
    "GroupSummary",
    "GroupTotals",
    "HouseholdSummary",
    "LoansSummary",
    "MemberTotals",
    "SummaryAggregator",
    "SummaryReport",
    "aggregate",
    "build_summary_report",
]
