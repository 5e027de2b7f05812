"""
Main Orchestrator for Business Manager

This module ties together all the components and defines the
bookkeeping flows the UI calls:
1. Chit groups (groups, members, member ledgers, lottery draws)
2. Daily business, household and loans ledgers
3. The cross-ledger summary report

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every mutation goes through a flow and is audited
- Totals are always recomputed from the transaction log
- Storage is chosen once, here, and passed down explicitly

Storage errors are audited and then re-raised for the page to show.
The lottery is the exception: its controller turns every error into
a notification itself.
"""

from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from business_manager.audit import AuditLogger
from business_manager.config import Settings, get_settings
from business_manager.lottery import (
    LotteryController,
    RandomSource,
    WinnerCommitter,
)
from business_manager.models.chit import (
    ChitGroup,
    ChitMember,
    MemberTransaction,
    TransactionType,
)
from business_manager.models.ledger import (
    Customer,
    CustomerTransaction,
    HouseholdEntry,
    HouseholdEntryType,
    Loan,
    LoanType,
)
from business_manager.reports import (
    GroupSummary,
    MemberTotals,
    SummaryAggregator,
    SummaryReport,
    build_summary_report,
)
from business_manager.services.notifications import NotificationCenter
from business_manager.services.storage import (
    ChitStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsChitStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryChitStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _audited(
    audit_logger: AuditLogger,
    operation: str,
    call: Awaitable[T],
) -> T:
    """Await a storage call, auditing and re-raising any StorageError."""
    try:
        return await call
    except StorageError as e:
        await audit_logger.log_storage_error(operation=operation, error_message=str(e))
        raise


class ChitFlow:
    """
    Orchestrates chit group bookkeeping.

    Groups and members are created and edited here; the member ledger
    is edited transaction by transaction. Lottery draws are run through
    the controllers this flow hands out, which share its store,
    notifications and audit trail.
    """

    def __init__(
        self,
        storage: ChitStorageInterface,
        notifications: NotificationCenter,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        aggregator: Optional[SummaryAggregator] = None,
    ):
        self._storage = storage
        self._notifications = notifications
        self._settings = settings or get_settings()
        self._audit_logger = audit_logger or AuditLogger()
        self._aggregator = aggregator or SummaryAggregator()

    @property
    def storage(self) -> ChitStorageInterface:
        return self._storage

    # --- groups -------------------------------------------------------------

    async def create_group(
        self,
        name: str,
        total_value: Decimal,
        members_count: int,
        duration_months: int,
        start_date: Optional[date] = None,
    ) -> ChitGroup:
        group = ChitGroup(
            name=name,
            total_value=total_value,
            members_count=members_count,
            duration_months=duration_months,
            start_date=start_date,
        )
        await _audited(self._audit_logger, "save chit group", self._storage.save_group(group))
        await self._audit_logger.log_record_created(
            entity_type="chit_group",
            entity_id=group.id,
            description=f"Chit group created: {group.name}",
            details={"total_value": str(group.total_value)},
        )
        return group

    async def update_group(self, group: ChitGroup) -> ChitGroup:
        await _audited(self._audit_logger, "update chit group", self._storage.update_group(group))
        await self._audit_logger.log_record_updated(
            entity_type="chit_group",
            entity_id=group.id,
            description=f"Chit group updated: {group.name}",
            details={"status": group.status.value},
        )
        return group

    async def list_groups(self) -> list[ChitGroup]:
        return await _audited(self._audit_logger, "list chit groups", self._storage.list_groups())

    async def get_group(self, group_id: UUID) -> ChitGroup:
        group = await _audited(
            self._audit_logger, "load chit group", self._storage.get_group(group_id)
        )
        if group is None:
            raise NotFoundError(f"Chit group not found: {group_id}")
        return group

    async def group_summary(self, group_id: UUID) -> GroupSummary:
        members = await self.list_members(group_id)
        transactions = await _audited(
            self._audit_logger,
            "list group transactions",
            self._storage.list_transactions(group_id=group_id),
        )
        return self._aggregator.aggregate(members, transactions)

    async def list_group_overviews(self) -> list[tuple[ChitGroup, GroupSummary]]:
        """Every group paired with its freshly computed summary."""
        return [
            (group, await self.group_summary(group.id))
            for group in await self.list_groups()
        ]

    # --- members ------------------------------------------------------------

    async def add_member(
        self,
        group_id: UUID,
        name: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
    ) -> ChitMember:
        member = ChitMember(
            group_id=group_id,
            name=name,
            phone=phone or None,
            email=email or None,
            address=address or None,
        )
        await _audited(self._audit_logger, "save member", self._storage.save_member(member))
        await self._audit_logger.log_record_created(
            entity_type="chit_member",
            entity_id=member.id,
            description=f"Member added: {member.name}",
            details={"group_id": str(group_id)},
        )
        return member

    async def update_member(self, member: ChitMember) -> ChitMember:
        await _audited(self._audit_logger, "update member", self._storage.update_member(member))
        await self._audit_logger.log_record_updated(
            entity_type="chit_member",
            entity_id=member.id,
            description=f"Member updated: {member.name}",
        )
        return member

    async def list_members(self, group_id: UUID) -> list[ChitMember]:
        return await _audited(
            self._audit_logger, "list members", self._storage.list_members(group_id)
        )

    # --- member ledger ------------------------------------------------------

    async def member_ledger(
        self,
        member: ChitMember,
    ) -> tuple[list[MemberTransaction], MemberTotals]:
        """A member's transactions (newest first) and their totals."""
        transactions = await _audited(
            self._audit_logger,
            "list member transactions",
            self._storage.list_transactions(member_id=member.id),
        )
        summary = self._aggregator.aggregate([member], transactions)
        return transactions, summary.for_member(member.id)

    async def add_transaction(
        self,
        member_id: UUID,
        on: date,
        amount: Decimal,
        type: TransactionType,
        description: str = "",
    ) -> MemberTransaction:
        transaction = MemberTransaction(
            member_id=member_id,
            date=on,
            amount=amount,
            type=type,
            description=description,
        )
        await _audited(
            self._audit_logger, "insert transaction", self._storage.insert_transaction(transaction)
        )
        await self._audit_logger.log_record_created(
            entity_type="member_transaction",
            entity_id=transaction.id,
            description=f"Transaction added: {type.value} {amount}",
            details={"member_id": str(member_id)},
        )
        return transaction

    async def update_transaction(self, transaction: MemberTransaction) -> MemberTransaction:
        await _audited(
            self._audit_logger, "update transaction", self._storage.update_transaction(transaction)
        )
        await self._audit_logger.log_record_updated(
            entity_type="member_transaction",
            entity_id=transaction.id,
            description=f"Transaction edited: {transaction.type.value} {transaction.amount}",
        )
        return transaction

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        deleted = await _audited(
            self._audit_logger, "delete transaction", self._storage.delete_transaction(transaction_id)
        )
        if deleted:
            await self._audit_logger.log_record_deleted(
                entity_type="member_transaction",
                entity_id=transaction_id,
                description="Transaction deleted",
            )
        return deleted

    # --- lottery ------------------------------------------------------------

    def lottery_controller(
        self,
        random_source: Optional[RandomSource] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> LotteryController:
        """A fresh draw controller bound to this flow's store."""
        committer = WinnerCommitter(self._storage, audit_logger=self._audit_logger)
        kwargs = {}
        if clock is not None:
            kwargs["clock"] = clock
        if sleep is not None:
            kwargs["sleep"] = sleep
        return LotteryController(
            storage=self._storage,
            committer=committer,
            notifications=self._notifications,
            settings=self._settings.draw,
            random_source=random_source,
            audit_logger=self._audit_logger,
            aggregator=self._aggregator,
            **kwargs,
        )


class LedgerFlow:
    """
    Orchestrates the daily business, household and loans ledgers.

    These are plain record keeping: add, edit, delete, list. Payments
    against a loan are the only operation with a rule of its own.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()

    # --- daily business -----------------------------------------------------

    async def add_customer(self, name: str, phone: Optional[str] = None) -> Customer:
        customer = Customer(name=name, phone=phone or None)
        await _audited(self._audit_logger, "save customer", self._storage.save_customer(customer))
        await self._audit_logger.log_record_created(
            entity_type="customer",
            entity_id=customer.id,
            description=f"Customer added: {customer.name}",
        )
        return customer

    async def update_customer(self, customer: Customer) -> Customer:
        await _audited(
            self._audit_logger, "update customer", self._storage.update_customer(customer)
        )
        await self._audit_logger.log_record_updated(
            entity_type="customer",
            entity_id=customer.id,
            description=f"Customer updated: {customer.name}",
        )
        return customer

    async def list_customers(self) -> list[Customer]:
        return await _audited(self._audit_logger, "list customers", self._storage.list_customers())

    async def list_customer_transactions(
        self,
        customer_id: Optional[UUID] = None,
    ) -> list[CustomerTransaction]:
        return await _audited(
            self._audit_logger,
            "list customer transactions",
            self._storage.list_customer_transactions(customer_id),
        )

    async def add_customer_transaction(
        self,
        customer_id: UUID,
        on: date,
        amount: Decimal,
        type: TransactionType,
        description: str = "",
    ) -> CustomerTransaction:
        transaction = CustomerTransaction(
            customer_id=customer_id,
            date=on,
            amount=amount,
            type=type,
            description=description,
        )
        await _audited(
            self._audit_logger,
            "insert customer transaction",
            self._storage.insert_customer_transaction(transaction),
        )
        await self._audit_logger.log_record_created(
            entity_type="customer_transaction",
            entity_id=transaction.id,
            description=f"Customer transaction added: {type.value} {amount}",
            details={"customer_id": str(customer_id)},
        )
        return transaction

    async def delete_customer_transaction(self, transaction_id: UUID) -> bool:
        deleted = await _audited(
            self._audit_logger,
            "delete customer transaction",
            self._storage.delete_customer_transaction(transaction_id),
        )
        if deleted:
            await self._audit_logger.log_record_deleted(
                entity_type="customer_transaction",
                entity_id=transaction_id,
                description="Customer transaction deleted",
            )
        return deleted

    async def customer_balances(self) -> dict[UUID, Decimal]:
        """Outstanding per customer: given minus received."""
        balances: dict[UUID, Decimal] = {c.id: Decimal("0") for c in await self.list_customers()}
        for tx in await self.list_customer_transactions():
            if tx.customer_id not in balances:
                continue
            if tx.type == TransactionType.GIVEN:
                balances[tx.customer_id] += tx.amount
            else:
                balances[tx.customer_id] -= tx.amount
        return balances

    # --- household ----------------------------------------------------------

    async def add_household_entry(
        self,
        on: date,
        description: str,
        amount: Decimal,
        type: HouseholdEntryType,
        category: str = "Other",
    ) -> HouseholdEntry:
        entry = HouseholdEntry(
            date=on,
            description=description,
            category=category,
            amount=amount,
            type=type,
        )
        await _audited(
            self._audit_logger, "save household entry", self._storage.save_household_entry(entry)
        )
        await self._audit_logger.log_record_created(
            entity_type="household_entry",
            entity_id=entry.id,
            description=f"Household {type.value.lower()} added: {description}",
        )
        return entry

    async def update_household_entry(self, entry: HouseholdEntry) -> HouseholdEntry:
        await _audited(
            self._audit_logger,
            "update household entry",
            self._storage.update_household_entry(entry),
        )
        await self._audit_logger.log_record_updated(
            entity_type="household_entry",
            entity_id=entry.id,
            description=f"Household entry updated: {entry.description}",
        )
        return entry

    async def delete_household_entry(self, entry_id: UUID) -> bool:
        deleted = await _audited(
            self._audit_logger,
            "delete household entry",
            self._storage.delete_household_entry(entry_id),
        )
        if deleted:
            await self._audit_logger.log_record_deleted(
                entity_type="household_entry",
                entity_id=entry_id,
                description="Household entry deleted",
            )
        return deleted

    async def list_household_entries(self) -> list[HouseholdEntry]:
        return await _audited(
            self._audit_logger, "list household entries", self._storage.list_household_entries()
        )

    # --- loans --------------------------------------------------------------

    async def add_loan(self, name: str, principal: Decimal, type: LoanType) -> Loan:
        loan = Loan(name=name, principal=principal, type=type)
        await _audited(self._audit_logger, "save loan", self._storage.save_loan(loan))
        await self._audit_logger.log_record_created(
            entity_type="loan",
            entity_id=loan.id,
            description=f"Loan added: {loan.name}",
            details={"principal": str(principal), "type": type.value},
        )
        return loan

    async def update_loan(self, loan: Loan) -> Loan:
        await _audited(self._audit_logger, "update loan", self._storage.update_loan(loan))
        await self._audit_logger.log_record_updated(
            entity_type="loan",
            entity_id=loan.id,
            description=f"Loan updated: {loan.name}",
        )
        return loan

    async def delete_loan(self, loan_id: UUID) -> bool:
        deleted = await _audited(self._audit_logger, "delete loan", self._storage.delete_loan(loan_id))
        if deleted:
            await self._audit_logger.log_record_deleted(
                entity_type="loan",
                entity_id=loan_id,
                description="Loan deleted",
            )
        return deleted

    async def list_loans(self) -> list[Loan]:
        return await _audited(self._audit_logger, "list loans", self._storage.list_loans())

    async def record_loan_payment(self, loan_id: UUID, amount: Decimal) -> Loan:
        """
        Apply a payment to a loan.

        Raises:
            NotFoundError: no loan with this id
            ValueError: amount is not positive or exceeds the balance
        """
        loan = next((l for l in await self.list_loans() if l.id == loan_id), None)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")

        updated = loan.record_payment(amount)
        await _audited(self._audit_logger, "update loan", self._storage.update_loan(updated))
        await self._audit_logger.log_record_updated(
            entity_type="loan",
            entity_id=loan_id,
            description=f"Payment of {amount} recorded on {loan.name}",
            details={"paid": str(updated.paid), "status": updated.status.value},
        )
        return updated


async def build_report(chit_flow: ChitFlow, ledger_flow: LedgerFlow) -> SummaryReport:
    """Collect every ledger and fold it into the summary report."""
    return build_summary_report(
        groups=await chit_flow.list_group_overviews(),
        customer_transactions=await ledger_flow.list_customer_transactions(),
        household_entries=await ledger_flow.list_household_entries(),
        loans=await ledger_flow.list_loans(),
    )


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ChitFlow, LedgerFlow, NotificationCenter]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from. Defaults to `get_settings()`.

    Returns:
        (chit_flow, ledger_flow, notifications)

    Falls back to in-memory storage if Google Sheets is selected but
    cannot be set up.
    """
    settings = settings or get_settings()
    notifications = NotificationCenter(settings.notifications)

    chit_storage = None
    ledger_storage = None
    audit_storage = None

    if settings.storage.backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            sheets_client.get_spreadsheet()
            chit_storage = GoogleSheetsChitStorage(sheets_client)
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
            notifications.warning(
                "Google Sheets is not configured; records are kept in memory only"
            )
            chit_storage = None

    if chit_storage is None:
        chit_storage = InMemoryChitStorage()
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    chit_flow = ChitFlow(
        storage=chit_storage,
        notifications=notifications,
        settings=settings,
        audit_logger=audit_logger,
    )
    ledger_flow = LedgerFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
    )

    return chit_flow, ledger_flow, notifications
