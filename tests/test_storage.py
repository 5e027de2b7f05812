"""
Tests for storage backends

The in-memory store is tested directly. The Google Sheets store is
tested against a fake worksheet so no network is touched.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from business_manager.config import GoogleSheetsSettings
from business_manager.models import (
    AuditEvent,
    AuditEventType,
    ChitMember,
    Customer,
    CustomerTransaction,
    Loan,
    LoanType,
    LotteryStatus,
    MemberTransaction,
    TransactionType,
)
from business_manager.services import (
    AlreadyWonError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChitStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
    StorageError,
)
from business_manager.services.storage import SheetTable


def run(coro):
    return asyncio.run(coro)


def payout_for(member, amount="100000"):
    return MemberTransaction(
        member_id=member.id,
        date=date(2024, 3, 1),
        amount=Decimal(amount),
        type=TransactionType.RECEIVED,
        description="Lottery Win - Friends Chit",
    )


class TestInMemoryChitStorage:
    """Tests for the in-process chit store."""

    def test_members_listed_per_group(self, friends_chit):
        members = run(friends_chit.storage.list_members(friends_chit.group.id))
        assert [m.name for m in members] == ["Amit", "Bhavna", "Chetan", "Divya"]
        assert run(friends_chit.storage.list_members(uuid4())) == []

    def test_duplicate_member_rejected(self, friends_chit):
        with pytest.raises(DuplicateError):
            run(friends_chit.storage.save_member(friends_chit["Amit"]))

    def test_member_needs_existing_group(self, friends_chit):
        with pytest.raises(NotFoundError):
            run(friends_chit.storage.save_member(ChitMember(group_id=uuid4(), name="Lost")))

    def test_won_cannot_be_reverted(self, friends_chit):
        with pytest.raises(StorageError):
            run(friends_chit.storage.update_member_status(
                friends_chit["Bhavna"].id, LotteryStatus.PENDING
            ))

    def test_list_transactions_needs_exactly_one_filter(self, friends_chit):
        with pytest.raises(ValueError):
            run(friends_chit.storage.list_transactions())
        with pytest.raises(ValueError):
            run(friends_chit.storage.list_transactions(
                member_id=friends_chit["Amit"].id, group_id=friends_chit.group.id
            ))

    def test_transactions_newest_first(self, friends_chit):
        amit = friends_chit["Amit"]
        for day in (3, 1, 2):
            run(friends_chit.storage.insert_transaction(MemberTransaction(
                member_id=amit.id,
                date=date(2024, 1, day),
                amount=Decimal("10000"),
                type=TransactionType.GIVEN,
            )))
        listed = run(friends_chit.storage.list_transactions(member_id=amit.id))
        assert [t.date.day for t in listed] == [3, 2, 1]

    def test_group_transactions_cover_all_members(self, friends_chit):
        for name in ("Amit", "Chetan"):
            run(friends_chit.storage.insert_transaction(MemberTransaction(
                member_id=friends_chit[name].id,
                date=date(2024, 1, 1),
                amount=Decimal("10000"),
                type=TransactionType.GIVEN,
            )))
        listed = run(friends_chit.storage.list_transactions(group_id=friends_chit.group.id))
        assert len(listed) == 2

    def test_record_lottery_win_writes_both(self, friends_chit):
        amit = friends_chit["Amit"]
        run(friends_chit.storage.record_lottery_win(amit.id, payout_for(amit)))

        members = run(friends_chit.storage.list_members(friends_chit.group.id))
        assert next(m for m in members if m.id == amit.id).has_won
        assert len(run(friends_chit.storage.list_transactions(member_id=amit.id))) == 1

    def test_record_lottery_win_is_all_or_nothing(self, friends_chit):
        amit = friends_chit["Amit"]
        payout = payout_for(amit)
        run(friends_chit.storage.insert_transaction(payout))

        with pytest.raises(DuplicateError):
            run(friends_chit.storage.record_lottery_win(amit.id, payout))

        members = run(friends_chit.storage.list_members(friends_chit.group.id))
        assert not next(m for m in members if m.id == amit.id).has_won

    def test_second_lottery_win_refused(self, friends_chit):
        amit = friends_chit["Amit"]
        run(friends_chit.storage.record_lottery_win(amit.id, payout_for(amit)))

        with pytest.raises(AlreadyWonError):
            run(friends_chit.storage.record_lottery_win(amit.id, payout_for(amit)))

        assert len(run(friends_chit.storage.list_transactions(member_id=amit.id))) == 1

    def test_winner_cannot_be_marked_won_again(self, friends_chit):
        with pytest.raises(AlreadyWonError):
            run(friends_chit.storage.update_member_status(
                friends_chit["Bhavna"].id, LotteryStatus.WON
            ))

    def test_record_lottery_win_rejects_foreign_payout(self, friends_chit):
        chetan = friends_chit["Chetan"]
        with pytest.raises(StorageError):
            run(friends_chit.storage.record_lottery_win(chetan.id, payout_for(friends_chit["Amit"])))

        members = run(friends_chit.storage.list_members(friends_chit.group.id))
        assert not next(m for m in members if m.id == chetan.id).has_won


class TestInMemoryLedgerStorage:

    def test_customer_transaction_needs_customer(self):
        storage = InMemoryLedgerStorage()
        with pytest.raises(NotFoundError):
            run(storage.insert_customer_transaction(CustomerTransaction(
                customer_id=uuid4(),
                date=date(2024, 1, 1),
                amount=Decimal("100"),
                type=TransactionType.GIVEN,
            )))

    def test_customer_transactions_filtered(self):
        storage = InMemoryLedgerStorage()
        ravi, sita = Customer(name="Ravi"), Customer(name="Sita")
        for customer in (ravi, sita):
            run(storage.save_customer(customer))
            run(storage.insert_customer_transaction(CustomerTransaction(
                customer_id=customer.id,
                date=date(2024, 1, 1),
                amount=Decimal("100"),
                type=TransactionType.GIVEN,
            )))
        assert len(run(storage.list_customer_transactions())) == 2
        assert len(run(storage.list_customer_transactions(ravi.id))) == 1

    def test_loan_update_and_delete(self):
        storage = InMemoryLedgerStorage()
        loan = Loan(name="Car", principal=Decimal("300000"), type=LoanType.TAKEN)
        run(storage.save_loan(loan))
        run(storage.update_loan(loan.record_payment(Decimal("1000"))))

        assert run(storage.list_loans())[0].paid == Decimal("1000")
        assert run(storage.delete_loan(loan.id)) is True
        assert run(storage.delete_loan(loan.id)) is False

    def test_update_unknown_loan(self):
        storage = InMemoryLedgerStorage()
        with pytest.raises(NotFoundError):
            run(storage.update_loan(Loan(name="Ghost", principal=Decimal("1"), type=LoanType.GIVEN)))


class TestInMemoryAuditStorage:

    def test_events_by_correlation_id(self):
        storage = InMemoryAuditStorage()
        session = uuid4()
        run(storage.append_event(AuditEvent(event_type=AuditEventType.DRAW_STARTED, description="a", correlation_id=session)))
        run(storage.append_event(AuditEvent(event_type=AuditEventType.RECORD_CREATED, description="b")))

        events = run(storage.get_events_by_correlation_id(session))
        assert [e.description for e in events] == ["a"]

    def test_recent_events_limit(self):
        storage = InMemoryAuditStorage()
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            run(storage.append_event(AuditEvent(
                event_type=AuditEventType.RECORD_CREATED,
                description=str(i),
                timestamp=start + timedelta(minutes=i),
            )))
        assert [e.description for e in run(storage.get_recent_events(limit=2))] == ["4", "3"]


# =============================================================================
# GOOGLE SHEETS (FAKED)
# =============================================================================

class FakeWorksheet:
    """Just enough of gspread.Worksheet for SheetTable."""

    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        row_number = int(range_name.split(":")[0][1:])
        self.rows[row_number - 1] = list(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.settings = GoogleSheetsSettings.model_construct(
            credentials_path="unused.json",
            spreadsheet_id="test-sheet",
        )
        self.worksheets = {}

    def get_worksheet(self, title, columns):
        if title not in self.worksheets:
            self.worksheets[title] = FakeWorksheet(columns)
        return self.worksheets[title]


class TestSheetTable:
    """Tests for the row <-> model mapping."""

    def test_member_survives_a_row(self):
        table = SheetTable(FakeSheetsClient(), "ChitMembers", ChitMember)
        member = ChitMember(group_id=uuid4(), name="Amit", phone="98450 12345")

        table.append(member)

        assert table.get(member.id) == member
        row = table.sheet.rows[1]
        assert row[table.columns.index("email")] == ""

    def test_append_duplicate_rejected(self):
        table = SheetTable(FakeSheetsClient(), "ChitMembers", ChitMember)
        member = ChitMember(group_id=uuid4(), name="Amit")
        table.append(member)
        with pytest.raises(DuplicateError):
            table.append(member)

    def test_replace_and_delete(self):
        table = SheetTable(FakeSheetsClient(), "ChitMembers", ChitMember)
        member = ChitMember(group_id=uuid4(), name="Amit")
        table.append(member)

        table.replace(member.with_lottery_status(LotteryStatus.WON))
        assert table.get(member.id).has_won

        assert table.delete(member.id) is True
        assert table.all() == []

    def test_replace_missing_row(self):
        table = SheetTable(FakeSheetsClient(), "ChitMembers", ChitMember)
        with pytest.raises(NotFoundError):
            table.replace(ChitMember(group_id=uuid4(), name="Ghost"))

    def test_malformed_rows_skipped(self):
        table = SheetTable(FakeSheetsClient(), "ChitMembers", ChitMember)
        good = ChitMember(group_id=uuid4(), name="Amit")
        table.append(good)
        bad = table.to_row(good)
        bad[table.columns.index("id")] = str(uuid4())
        bad[table.columns.index("lottery_status")] = "Maybe"
        table.sheet.append_row(bad)

        assert table.all() == [good]

    def test_audit_details_stored_as_json(self):
        table = SheetTable(
            FakeSheetsClient(), "AuditLog", AuditEvent,
            json_fields=("details",), key_field="event_id",
        )
        event = AuditEvent(
            event_type=AuditEventType.DRAW_STARTED,
            description="Lottery draw started",
            details={"participants": ["Amit", "Chetan"]},
        )
        table.append(event)
        assert table.get(event.event_id).details == {"participants": ["Amit", "Chetan"]}


class TestGoogleSheetsChitStorage:

    def test_is_not_atomic(self):
        assert GoogleSheetsChitStorage(FakeSheetsClient()).supports_atomic_commit is False

    def test_status_and_payout_round_trip(self, make_friends_chit):
        storage = GoogleSheetsChitStorage(FakeSheetsClient())
        chit = make_friends_chit(storage)
        chetan = chit["Chetan"]

        run(storage.update_member_status(chetan.id, LotteryStatus.WON))
        run(storage.insert_transaction(payout_for(chetan)))

        members = run(storage.list_members(chit.group.id))
        assert next(m for m in members if m.id == chetan.id).has_won
        listed = run(storage.list_transactions(group_id=chit.group.id))
        assert [t.amount for t in listed] == [Decimal("100000")]

    def test_won_cannot_be_reverted(self, make_friends_chit):
        storage = GoogleSheetsChitStorage(FakeSheetsClient())
        chit = make_friends_chit(storage)
        with pytest.raises(StorageError):
            run(storage.update_member_status(chit["Bhavna"].id, LotteryStatus.PENDING))

    def test_winner_cannot_be_marked_won_again(self, make_friends_chit):
        storage = GoogleSheetsChitStorage(FakeSheetsClient())
        chit = make_friends_chit(storage)
        with pytest.raises(AlreadyWonError):
            run(storage.update_member_status(chit["Bhavna"].id, LotteryStatus.WON))

    def test_insert_for_unknown_member(self, make_friends_chit):
        storage = GoogleSheetsChitStorage(FakeSheetsClient())
        make_friends_chit(storage)
        stranger = ChitMember(group_id=uuid4(), name="Stranger")
        with pytest.raises(NotFoundError):
            run(storage.insert_transaction(payout_for(stranger)))


class TestGoogleSheetsAuditStorage:

    def test_append_failure_does_not_raise(self):
        class BrokenClient(FakeSheetsClient):
            def get_worksheet(self, title, columns):
                raise RuntimeError("sheet unavailable")

        storage = GoogleSheetsAuditStorage(BrokenClient())
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
        assert run(storage.append_event(event)) is False
