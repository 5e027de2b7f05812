"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as the remote backend because:
1. The owner can view and back up the books directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one small business)
- No transactions. A lottery win is written as two separate calls
  (status, then payout row); see WinnerCommitter for how a failure
  between them is surfaced.
- Limited query capabilities (we filter in Python)

Each worksheet holds one model type, one record per row, with the
model's field names as the header row.
"""

import json
from typing import Generic, Optional, TypeVar
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from business_manager.config.settings import GoogleSheetsSettings
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
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Retry transient API failures (quota, 5xx) but not our own errors
sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and hands out worksheets, creating them with
    a header row on first use.
    """

    def __init__(self, settings: GoogleSheetsSettings):
        self._settings = settings
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @sheets_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except gspread.exceptions.APIError:
                raise
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is `columns`."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]


class SheetTable(Generic[ModelT]):
    """
    One worksheet mapped to one pydantic model.

    Cells hold the model's JSON-mode dump as text. Empty cells mean
    "not set" and fall back to the field default on read. Fields listed
    in `json_fields` (dicts, lists) are stored as JSON strings.
    """

    def __init__(
        self,
        client: GoogleSheetsClient,
        title: str,
        model: type[ModelT],
        json_fields: tuple[str, ...] = (),
        key_field: str = "id",
    ):
        self._client = client
        self._title = title
        self._model = model
        self._json_fields = set(json_fields)
        self._key_field = key_field
        self.columns = list(model.model_fields)
        self._key_index = self.columns.index(key_field)

    @property
    def sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, self.columns)

    def to_row(self, record: ModelT) -> list[str]:
        data = record.model_dump(mode="json")
        row = []
        for column in self.columns:
            value = data[column]
            if value is None:
                row.append("")
            elif column in self._json_fields:
                row.append(json.dumps(value))
            elif isinstance(value, bool):
                row.append("true" if value else "false")
            else:
                row.append(str(value))
        return row

    def from_row(self, row: list[str]) -> ModelT:
        data = {}
        for index, column in enumerate(self.columns):
            cell = row[index] if index < len(row) else ""
            if cell == "":
                continue
            data[column] = json.loads(cell) if column in self._json_fields else cell
        return self._model.model_validate(data)

    @sheets_retry
    def _values(self) -> list[list[str]]:
        return self.sheet.get_all_values()

    def all(self) -> list[ModelT]:
        """Every parseable record, in sheet order."""
        records = []
        for row in self._values()[1:]:  # Skip header
            if len(row) <= self._key_index or not row[self._key_index]:
                continue
            try:
                records.append(self.from_row(row))
            except ValueError as e:
                logger.warning(
                    "sheets_row_skipped",
                    sheet=self._title,
                    record_id=row[self._key_index],
                    error=str(e),
                )
        return records

    def get(self, record_id: UUID) -> Optional[ModelT]:
        for record in self.all():
            if getattr(record, self._key_field) == record_id:
                return record
        return None

    def _row_number(self, record_id: UUID) -> Optional[int]:
        key = str(record_id)
        # Row 1 is the header, so data starts at sheet row 2
        for number, row in enumerate(self._values()[1:], start=2):
            if len(row) > self._key_index and row[self._key_index] == key:
                return number
        return None

    @sheets_retry
    def append(self, record: ModelT) -> None:
        record_id = getattr(record, self._key_field)
        if self._row_number(record_id) is not None:
            raise DuplicateError(f"{self._title} already has {record_id}")
        self.sheet.append_row(self.to_row(record), value_input_option="RAW")

    @sheets_retry
    def replace(self, record: ModelT) -> None:
        record_id = getattr(record, self._key_field)
        number = self._row_number(record_id)
        if number is None:
            raise NotFoundError(f"{self._title} has no record {record_id}")
        cell_range = f"A{number}:{rowcol_to_a1(number, len(self.columns))}"
        self.sheet.update(
            range_name=cell_range,
            values=[self.to_row(record)],
            value_input_option="RAW",
        )

    @sheets_retry
    def delete(self, record_id: UUID) -> bool:
        number = self._row_number(record_id)
        if number is None:
            return False
        self.sheet.delete_rows(number)
        return True


def _wrap(operation: str, error: Exception) -> StorageError:
    """Keep our own storage errors, wrap everything else."""
    if isinstance(error, StorageError):
        return error
    return StorageError(f"Failed to {operation}: {error}")


class GoogleSheetsChitStorage(ChitStorageInterface):
    """
    Google Sheets implementation of chit storage.

    Groups, members and member transactions live in three worksheets.
    Sheets has no multi-row transactions, so `supports_atomic_commit`
    stays False.
    """

    def __init__(self, client: GoogleSheetsClient):
        settings = client.settings
        self._groups = SheetTable(client, settings.groups_sheet_name, ChitGroup)
        self._members = SheetTable(client, settings.members_sheet_name, ChitMember)
        self._transactions = SheetTable(
            client, settings.transactions_sheet_name, MemberTransaction
        )

    async def list_groups(self) -> list[ChitGroup]:
        try:
            return sorted(self._groups.all(), key=lambda g: g.created_at)
        except Exception as e:
            raise _wrap("list chit groups", e)

    async def get_group(self, group_id: UUID) -> Optional[ChitGroup]:
        try:
            return self._groups.get(group_id)
        except Exception as e:
            raise _wrap("get chit group", e)

    async def save_group(self, group: ChitGroup) -> bool:
        try:
            self._groups.append(group)
            return True
        except Exception as e:
            raise _wrap("save chit group", e)

    async def update_group(self, group: ChitGroup) -> bool:
        try:
            self._groups.replace(group)
            return True
        except Exception as e:
            raise _wrap("update chit group", e)

    async def list_members(self, group_id: UUID) -> list[ChitMember]:
        try:
            return [m for m in self._members.all() if m.group_id == group_id]
        except Exception as e:
            raise _wrap("list members", e)

    async def save_member(self, member: ChitMember) -> bool:
        try:
            if self._groups.get(member.group_id) is None:
                raise NotFoundError(f"Chit group not found: {member.group_id}")
            self._members.append(member)
            return True
        except Exception as e:
            raise _wrap("save member", e)

    async def update_member(self, member: ChitMember) -> bool:
        try:
            current = self._members.get(member.id)
            if current is None:
                raise NotFoundError(f"Member not found: {member.id}")
            current.with_lottery_status(member.lottery_status)
            self._members.replace(member)
            return True
        except InvalidStatusTransition as e:
            raise StorageError(str(e))
        except Exception as e:
            raise _wrap("update member", e)

    async def update_member_status(
        self,
        member_id: UUID,
        status: LotteryStatus,
    ) -> bool:
        try:
            member = self._members.get(member_id)
            if member is None:
                raise NotFoundError(f"Member not found: {member_id}")
            if status == LotteryStatus.WON and member.has_won:
                raise AlreadyWonError(f"{member.name} has already won")
            self._members.replace(member.with_lottery_status(status))
            return True
        except InvalidStatusTransition as e:
            raise StorageError(str(e))
        except Exception as e:
            raise _wrap("update member status", e)

    async def list_transactions(
        self,
        member_id: Optional[UUID] = None,
        group_id: Optional[UUID] = None,
    ) -> list[MemberTransaction]:
        if (member_id is None) == (group_id is None):
            raise ValueError("Pass exactly one of member_id or group_id")
        try:
            if member_id is not None:
                wanted = {member_id}
            else:
                wanted = {m.id for m in await self.list_members(group_id)}
            transactions = [t for t in self._transactions.all() if t.member_id in wanted]
            transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)
            return transactions
        except Exception as e:
            raise _wrap("list transactions", e)

    async def insert_transaction(self, transaction: MemberTransaction) -> bool:
        try:
            if self._members.get(transaction.member_id) is None:
                raise NotFoundError(f"Member not found: {transaction.member_id}")
            self._transactions.append(transaction)
            return True
        except Exception as e:
            raise _wrap("insert transaction", e)

    async def update_transaction(self, transaction: MemberTransaction) -> bool:
        try:
            self._transactions.replace(transaction)
            return True
        except Exception as e:
            raise _wrap("update transaction", e)

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            return self._transactions.delete(transaction_id)
        except Exception as e:
            raise _wrap("delete transaction", e)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """Customers, household entries and loans in their own worksheets."""

    def __init__(self, client: GoogleSheetsClient):
        settings = client.settings
        self._customers = SheetTable(client, settings.customers_sheet_name, Customer)
        self._customer_transactions = SheetTable(
            client, settings.customer_transactions_sheet_name, CustomerTransaction
        )
        self._household = SheetTable(client, settings.household_sheet_name, HouseholdEntry)
        self._loans = SheetTable(client, settings.loans_sheet_name, Loan)

    async def list_customers(self) -> list[Customer]:
        try:
            return sorted(self._customers.all(), key=lambda c: c.created_at)
        except Exception as e:
            raise _wrap("list customers", e)

    async def save_customer(self, customer: Customer) -> bool:
        try:
            self._customers.append(customer)
            return True
        except Exception as e:
            raise _wrap("save customer", e)

    async def update_customer(self, customer: Customer) -> bool:
        try:
            self._customers.replace(customer)
            return True
        except Exception as e:
            raise _wrap("update customer", e)

    async def list_customer_transactions(
        self,
        customer_id: Optional[UUID] = None,
    ) -> list[CustomerTransaction]:
        try:
            transactions = [
                t for t in self._customer_transactions.all()
                if customer_id is None or t.customer_id == customer_id
            ]
            transactions.sort(key=lambda t: (t.date, t.created_at), reverse=True)
            return transactions
        except Exception as e:
            raise _wrap("list customer transactions", e)

    async def insert_customer_transaction(
        self,
        transaction: CustomerTransaction,
    ) -> bool:
        try:
            if self._customers.get(transaction.customer_id) is None:
                raise NotFoundError(f"Customer not found: {transaction.customer_id}")
            self._customer_transactions.append(transaction)
            return True
        except Exception as e:
            raise _wrap("insert customer transaction", e)

    async def delete_customer_transaction(self, transaction_id: UUID) -> bool:
        try:
            return self._customer_transactions.delete(transaction_id)
        except Exception as e:
            raise _wrap("delete customer transaction", e)

    async def list_household_entries(self) -> list[HouseholdEntry]:
        try:
            entries = self._household.all()
            entries.sort(key=lambda e: (e.date, e.created_at), reverse=True)
            return entries
        except Exception as e:
            raise _wrap("list household entries", e)

    async def save_household_entry(self, entry: HouseholdEntry) -> bool:
        try:
            self._household.append(entry)
            return True
        except Exception as e:
            raise _wrap("save household entry", e)

    async def update_household_entry(self, entry: HouseholdEntry) -> bool:
        try:
            self._household.replace(entry)
            return True
        except Exception as e:
            raise _wrap("update household entry", e)

    async def delete_household_entry(self, entry_id: UUID) -> bool:
        try:
            return self._household.delete(entry_id)
        except Exception as e:
            raise _wrap("delete household entry", e)

    async def list_loans(self) -> list[Loan]:
        try:
            return sorted(self._loans.all(), key=lambda l: l.created_at)
        except Exception as e:
            raise _wrap("list loans", e)

    async def save_loan(self, loan: Loan) -> bool:
        try:
            self._loans.append(loan)
            return True
        except Exception as e:
            raise _wrap("save loan", e)

    async def update_loan(self, loan: Loan) -> bool:
        try:
            self._loans.replace(loan)
            return True
        except Exception as e:
            raise _wrap("update loan", e)

    async def delete_loan(self, loan_id: UUID) -> bool:
        try:
            return self._loans.delete(loan_id)
        except Exception as e:
            raise _wrap("delete loan", e)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._events = SheetTable(
            client,
            client.settings.audit_sheet_name,
            AuditEvent,
            json_fields=("details",),
            key_field="event_id",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._events.append(event)
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_event_not_saved", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._events.all() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise _wrap("get audit events", e)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            events = self._events.all()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise _wrap("get audit events", e)
