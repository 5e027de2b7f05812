"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The lottery only needs four operations from a chit store:
list_members, list_transactions, update_member_status and
insert_transaction. Everything else here is plain record keeping.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from business_manager.models.audit import AuditEvent
from business_manager.models.chit import (
    ChitGroup,
    ChitMember,
    LotteryStatus,
    MemberTransaction,
)
from business_manager.models.ledger import (
    Customer,
    CustomerTransaction,
    HouseholdEntry,
    Loan,
)


class ChitStorageInterface(ABC):
    """
    Abstract interface for chit groups, members and their transactions.

    Backends that can apply several writes as one unit set
    `supports_atomic_commit` and implement `record_lottery_win`.
    """

    supports_atomic_commit: bool = False

    # --- groups -------------------------------------------------------------

    @abstractmethod
    async def list_groups(self) -> list[ChitGroup]:
        """List all chit groups, oldest first."""
        pass

    @abstractmethod
    async def get_group(self, group_id: UUID) -> Optional[ChitGroup]:
        """Retrieve a group by ID, or None."""
        pass

    @abstractmethod
    async def save_group(self, group: ChitGroup) -> bool:
        """
        Save a new group.

        Raises:
            DuplicateError: If a group with this ID exists
        """
        pass

    @abstractmethod
    async def update_group(self, group: ChitGroup) -> bool:
        """
        Replace an existing group.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    # --- members ------------------------------------------------------------

    @abstractmethod
    async def list_members(self, group_id: UUID) -> list[ChitMember]:
        """
        List the members of one group in the order they joined.

        Args:
            group_id: The owning group

        Returns:
            Members of the group (empty if none)
        """
        pass

    @abstractmethod
    async def save_member(self, member: ChitMember) -> bool:
        """
        Save a new member.

        Raises:
            NotFoundError: If the member's group doesn't exist
            DuplicateError: If a member with this ID exists
        """
        pass

    @abstractmethod
    async def update_member(self, member: ChitMember) -> bool:
        """
        Replace a member's details.

        Implementations must refuse to move a Won member back to Pending.

        Raises:
            NotFoundError: If the member doesn't exist
        """
        pass

    @abstractmethod
    async def update_member_status(
        self,
        member_id: UUID,
        status: LotteryStatus,
    ) -> bool:
        """
        Set a member's lottery status.

        Raises:
            NotFoundError: If the member doesn't exist
            AlreadyWonError: If the status is WON and the member already won
            StorageError: If the write fails or the transition is invalid
        """
        pass

    # --- transactions -------------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        member_id: Optional[UUID] = None,
        group_id: Optional[UUID] = None,
    ) -> list[MemberTransaction]:
        """
        List transactions for one member or for every member of a group.

        Exactly one of member_id / group_id must be given.
        Results are ordered by date, newest first.
        """
        pass

    @abstractmethod
    async def insert_transaction(self, transaction: MemberTransaction) -> bool:
        """
        Append a transaction to a member's ledger.

        Raises:
            NotFoundError: If the member doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: MemberTransaction) -> bool:
        """
        Replace a transaction by ID (explicit operator edit).

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Delete a transaction by ID. Returns False if it didn't exist."""
        pass

    async def record_lottery_win(
        self,
        member_id: UUID,
        payout: MemberTransaction,
    ) -> bool:
        """
        Mark a member Won and insert the payout as one unit.

        Only called when `supports_atomic_commit` is True. Either both
        writes are applied or neither is. The already-won check happens
        inside the same unit, so two racing commits cannot both pay out.

        Raises:
            AlreadyWonError: If the member has already won
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not support atomic lottery commits"
        )


class LedgerStorageInterface(ABC):
    """
    Abstract interface for customers, household entries and loans.
    """

    # --- customers ----------------------------------------------------------

    @abstractmethod
    async def list_customers(self) -> list[Customer]:
        pass

    @abstractmethod
    async def save_customer(self, customer: Customer) -> bool:
        pass

    @abstractmethod
    async def update_customer(self, customer: Customer) -> bool:
        pass

    @abstractmethod
    async def list_customer_transactions(
        self,
        customer_id: Optional[UUID] = None,
    ) -> list[CustomerTransaction]:
        """All customer transactions, or one customer's, newest first."""
        pass

    @abstractmethod
    async def insert_customer_transaction(
        self,
        transaction: CustomerTransaction,
    ) -> bool:
        pass

    @abstractmethod
    async def delete_customer_transaction(self, transaction_id: UUID) -> bool:
        pass

    # --- household ----------------------------------------------------------

    @abstractmethod
    async def list_household_entries(self) -> list[HouseholdEntry]:
        """All household entries, newest first."""
        pass

    @abstractmethod
    async def save_household_entry(self, entry: HouseholdEntry) -> bool:
        pass

    @abstractmethod
    async def update_household_entry(self, entry: HouseholdEntry) -> bool:
        pass

    @abstractmethod
    async def delete_household_entry(self, entry_id: UUID) -> bool:
        pass

    # --- loans --------------------------------------------------------------

    @abstractmethod
    async def list_loans(self) -> list[Loan]:
        pass

    @abstractmethod
    async def save_loan(self, loan: Loan) -> bool:
        pass

    @abstractmethod
    async def update_loan(self, loan: Loan) -> bool:
        pass

    @abstractmethod
    async def delete_loan(self, loan_id: UUID) -> bool:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class AlreadyWonError(StorageError):
    """The member has already won this chit; a second win is refused."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
