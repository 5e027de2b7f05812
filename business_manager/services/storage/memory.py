"""
In-Memory Storage Implementation

Keeps every record in process memory. Used when no remote backend is
configured and throughout the test suite.

DESIGN DECISION: All reads and writes happen under one re-entrant lock
and never await while holding it. Streamlit can run several script
threads against the same cached store, so this is a threading lock
rather than an asyncio one. Holding the lock across both writes of a
lottery win is what makes `record_lottery_win` atomic.
"""

import threading
from typing import Optional
from uuid import UUID

from business_manager.models.audit import AuditEvent
from business_manager.models.chit import (
    ChitGroup,
    ChitMember,
    InvalidStatusTransition,
    LotteryStatus,
    MemberTransaction,
)
from business_manager.models.ledger import (
    Customer,
    CustomerTransaction,
    HouseholdEntry,
    Loan,
)
from business_manager.services.storage.interface import (
    AlreadyWonError,
    AuditStorageInterface,
    ChitStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


def _newest_first(records: list) -> list:
    return sorted(records, key=lambda r: (r.date, r.created_at), reverse=True)


class InMemoryChitStorage(ChitStorageInterface):
    """Chit store backed by dicts keyed on record ID."""

    supports_atomic_commit = True

    def __init__(self):
        self._lock = threading.RLock()
        self._groups: dict[UUID, ChitGroup] = {}
        self._members: dict[UUID, ChitMember] = {}
        self._transactions: dict[UUID, MemberTransaction] = {}

    # --- groups -------------------------------------------------------------

    async def list_groups(self) -> list[ChitGroup]:
        with self._lock:
            return sorted(self._groups.values(), key=lambda g: g.created_at)

    async def get_group(self, group_id: UUID) -> Optional[ChitGroup]:
        with self._lock:
            return self._groups.get(group_id)

    async def save_group(self, group: ChitGroup) -> bool:
        with self._lock:
            if group.id in self._groups:
                raise DuplicateError(f"Chit group already exists: {group.id}")
            self._groups[group.id] = group
            return True

    async def update_group(self, group: ChitGroup) -> bool:
        with self._lock:
            if group.id not in self._groups:
                raise NotFoundError(f"Chit group not found: {group.id}")
            self._groups[group.id] = group
            return True

    # --- members ------------------------------------------------------------

    async def list_members(self, group_id: UUID) -> list[ChitMember]:
        with self._lock:
            return [m for m in self._members.values() if m.group_id == group_id]

    async def save_member(self, member: ChitMember) -> bool:
        with self._lock:
            if member.group_id not in self._groups:
                raise NotFoundError(f"Chit group not found: {member.group_id}")
            if member.id in self._members:
                raise DuplicateError(f"Member already exists: {member.id}")
            self._members[member.id] = member
            return True

    async def update_member(self, member: ChitMember) -> bool:
        with self._lock:
            current = self._get_member(member.id)
            try:
                current.with_lottery_status(member.lottery_status)
            except InvalidStatusTransition as e:
                raise StorageError(str(e))
            self._members[member.id] = member
            return True

    async def update_member_status(
        self,
        member_id: UUID,
        status: LotteryStatus,
    ) -> bool:
        with self._lock:
            member = self._get_member(member_id)
            if status == LotteryStatus.WON and member.has_won:
                raise AlreadyWonError(f"{member.name} has already won")
            try:
                self._members[member_id] = member.with_lottery_status(status)
            except InvalidStatusTransition as e:
                raise StorageError(str(e))
            return True

    def _get_member(self, member_id: UUID) -> ChitMember:
        member = self._members.get(member_id)
        if member is None:
            raise NotFoundError(f"Member not found: {member_id}")
        return member

    # --- transactions -------------------------------------------------------

    async def list_transactions(
        self,
        member_id: Optional[UUID] = None,
        group_id: Optional[UUID] = None,
    ) -> list[MemberTransaction]:
        if (member_id is None) == (group_id is None):
            raise ValueError("Pass exactly one of member_id or group_id")
        with self._lock:
            if member_id is not None:
                wanted = {member_id}
            else:
                wanted = {m.id for m in self._members.values() if m.group_id == group_id}
            return _newest_first(
                [t for t in self._transactions.values() if t.member_id in wanted]
            )

    async def insert_transaction(self, transaction: MemberTransaction) -> bool:
        with self._lock:
            self._get_member(transaction.member_id)
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            self._transactions[transaction.id] = transaction
            return True

    async def update_transaction(self, transaction: MemberTransaction) -> bool:
        with self._lock:
            if transaction.id not in self._transactions:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._get_member(transaction.member_id)
            self._transactions[transaction.id] = transaction
            return True

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        with self._lock:
            return self._transactions.pop(transaction_id, None) is not None

    async def record_lottery_win(
        self,
        member_id: UUID,
        payout: MemberTransaction,
    ) -> bool:
        with self._lock:
            # Validate everything before the first write so a failure
            # leaves both the member and the ledger untouched.
            member = self._get_member(member_id)
            if payout.member_id != member_id:
                raise StorageError("Payout belongs to a different member")
            if member.has_won:
                raise AlreadyWonError(f"{member.name} has already won")
            if payout.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {payout.id}")
            self._members[member_id] = member.with_lottery_status(LotteryStatus.WON)
            self._transactions[payout.id] = payout
            return True


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Customers, household entries and loans kept in dicts."""

    def __init__(self):
        self._lock = threading.RLock()
        self._customers: dict[UUID, Customer] = {}
        self._customer_transactions: dict[UUID, CustomerTransaction] = {}
        self._household: dict[UUID, HouseholdEntry] = {}
        self._loans: dict[UUID, Loan] = {}

    def _insert(self, table: dict, record, label: str) -> bool:
        with self._lock:
            if record.id in table:
                raise DuplicateError(f"{label} already exists: {record.id}")
            table[record.id] = record
            return True

    def _replace(self, table: dict, record, label: str) -> bool:
        with self._lock:
            if record.id not in table:
                raise NotFoundError(f"{label} not found: {record.id}")
            table[record.id] = record
            return True

    def _remove(self, table: dict, record_id: UUID) -> bool:
        with self._lock:
            return table.pop(record_id, None) is not None

    # --- customers ----------------------------------------------------------

    async def list_customers(self) -> list[Customer]:
        with self._lock:
            return sorted(self._customers.values(), key=lambda c: c.created_at)

    async def save_customer(self, customer: Customer) -> bool:
        return self._insert(self._customers, customer, "Customer")

    async def update_customer(self, customer: Customer) -> bool:
        return self._replace(self._customers, customer, "Customer")

    async def list_customer_transactions(
        self,
        customer_id: Optional[UUID] = None,
    ) -> list[CustomerTransaction]:
        with self._lock:
            return _newest_first([
                t for t in self._customer_transactions.values()
                if customer_id is None or t.customer_id == customer_id
            ])

    async def insert_customer_transaction(
        self,
        transaction: CustomerTransaction,
    ) -> bool:
        with self._lock:
            if transaction.customer_id not in self._customers:
                raise NotFoundError(f"Customer not found: {transaction.customer_id}")
            return self._insert(
                self._customer_transactions, transaction, "Customer transaction"
            )

    async def delete_customer_transaction(self, transaction_id: UUID) -> bool:
        return self._remove(self._customer_transactions, transaction_id)

    # --- household ----------------------------------------------------------

    async def list_household_entries(self) -> list[HouseholdEntry]:
        with self._lock:
            return _newest_first(list(self._household.values()))

    async def save_household_entry(self, entry: HouseholdEntry) -> bool:
        return self._insert(self._household, entry, "Household entry")

    async def update_household_entry(self, entry: HouseholdEntry) -> bool:
        return self._replace(self._household, entry, "Household entry")

    async def delete_household_entry(self, entry_id: UUID) -> bool:
        return self._remove(self._household, entry_id)

    # --- loans --------------------------------------------------------------

    async def list_loans(self) -> list[Loan]:
        with self._lock:
            return sorted(self._loans.values(), key=lambda l: l.created_at)

    async def save_loan(self, loan: Loan) -> bool:
        return self._insert(self._loans, loan, "Loan")

    async def update_loan(self, loan: Loan) -> bool:
        return self._replace(self._loans, loan, "Loan")

    async def delete_loan(self, loan_id: UUID) -> bool:
        return self._remove(self._loans, loan_id)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in a list."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
            return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        with self._lock:
            events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            events = list(self._events)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
