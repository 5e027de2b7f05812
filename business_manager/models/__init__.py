"""
Data Models Package

This package contains all Pydantic models used in Business Manager.
All data flowing through the system must conform to these schemas.
"""

from business_manager.models.chit import (
    LOTTERY_PAYOUT_DESCRIPTION,
    ChitGroup,
    ChitMember,
    ChitStatus,
    InvalidStatusTransition,
    LotteryStatus,
    MemberTransaction,
    TransactionType,
)
from business_manager.models.ledger import (
    Customer,
    CustomerStatus,
    CustomerTransaction,
    HouseholdEntry,
    HouseholdEntryType,
    Loan,
    LoanStatus,
    LoanType,
)
from business_manager.models.notification import (
    Notification,
    NotificationSeverity,
)
from business_manager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Chit models
    "LOTTERY_PAYOUT_DESCRIPTION",
    "ChitGroup",
    "ChitMember",
    "ChitStatus",
    "InvalidStatusTransition",
    "LotteryStatus",
    "MemberTransaction",
    "TransactionType",
    # Ledger models
    "Customer",
    "CustomerStatus",
    "CustomerTransaction",
    "HouseholdEntry",
    "HouseholdEntryType",
    "Loan",
    "LoanStatus",
    "LoanType",
    # Notifications
    "Notification",
    "NotificationSeverity",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
