"""
Tests for Business Manager models

Test strategy:
1. Unit tests for individual components (models, lottery, aggregation)
2. Flow tests against in-memory storage
3. No real API calls in tests (Google Sheets is faked)
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from business_manager.config import AppSettings, DrawSettings
from business_manager.models import (
    LOTTERY_PAYOUT_DESCRIPTION,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    ChitGroup,
    ChitMember,
    ChitStatus,
    InvalidStatusTransition,
    LoanStatus,
    LoanType,
    Loan,
    LotteryStatus,
    MemberTransaction,
    Notification,
    TransactionType,
)


class TestChitModels:
    """Tests for chit group, member and transaction models."""

    def test_group_creation(self):
        """Test ChitGroup defaults."""
        group = ChitGroup(
            name="  Friends Chit  ",
            total_value=Decimal("100000"),
            members_count=10,
            duration_months=10,
        )
        assert group.name == "Friends Chit"
        assert group.status == ChitStatus.ONGOING
        assert group.monthly_installment == Decimal("10000.00")

    def test_group_rejects_non_positive_value(self):
        """Test that a chit needs a positive total value."""
        with pytest.raises(ValidationError):
            ChitGroup(name="Bad", total_value=Decimal("0"), members_count=5, duration_months=5)

    def test_member_defaults_to_pending(self):
        member = ChitMember(group_id=uuid4(), name="Amit")
        assert member.lottery_status == LotteryStatus.PENDING
        assert member.has_won is False

    def test_member_can_move_to_won(self):
        member = ChitMember(group_id=uuid4(), name="Amit")
        won = member.with_lottery_status(LotteryStatus.WON)
        assert won.has_won is True
        assert member.has_won is False  # original untouched

    def test_won_is_terminal(self):
        """Test that a winner can never go back to Pending."""
        member = ChitMember(group_id=uuid4(), name="Bhavna", lottery_status=LotteryStatus.WON)
        with pytest.raises(InvalidStatusTransition):
            member.with_lottery_status(LotteryStatus.PENDING)

    def test_transaction_is_immutable(self):
        tx = MemberTransaction(
            member_id=uuid4(),
            date=date(2024, 1, 5),
            amount=Decimal("10000.00"),
            type=TransactionType.GIVEN,
        )
        with pytest.raises(ValidationError):
            tx.amount = Decimal("1.00")

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            MemberTransaction(
                member_id=uuid4(),
                date=date(2024, 1, 5),
                amount=Decimal("-100"),
                type=TransactionType.GIVEN,
            )

    def test_transaction_rejects_sub_paise_precision(self):
        with pytest.raises(ValidationError):
            MemberTransaction(
                member_id=uuid4(),
                date=date(2024, 1, 5),
                amount=Decimal("10.001"),
                type=TransactionType.GIVEN,
            )

    def test_lottery_payout_detection(self):
        payout = MemberTransaction(
            member_id=uuid4(),
            date=date(2024, 2, 1),
            amount=Decimal("100000"),
            type=TransactionType.RECEIVED,
            description=f"{LOTTERY_PAYOUT_DESCRIPTION} - Friends Chit",
        )
        contribution = payout.model_copy(update={"type": TransactionType.GIVEN})
        assert payout.is_lottery_payout is True
        assert contribution.is_lottery_payout is False


class TestLoanModel:
    """Tests for loan repayments."""

    def test_balance(self):
        loan = Loan(name="Home Loan", principal=Decimal("500000"), paid=Decimal("150000"), type=LoanType.TAKEN)
        assert loan.balance == Decimal("350000")

    def test_paid_cannot_exceed_principal(self):
        with pytest.raises(ValidationError):
            Loan(name="Bad", principal=Decimal("100"), paid=Decimal("200"), type=LoanType.GIVEN)

    def test_payment_that_clears_balance_marks_paid_off(self):
        loan = Loan(name="Friend", principal=Decimal("20000"), paid=Decimal("15000"), type=LoanType.GIVEN)
        updated = loan.record_payment(Decimal("5000"))
        assert updated.balance == Decimal("0")
        assert updated.status == LoanStatus.PAID_OFF
        assert loan.status == LoanStatus.ACTIVE

    def test_overpayment_rejected(self):
        loan = Loan(name="Friend", principal=Decimal("20000"), type=LoanType.GIVEN)
        with pytest.raises(ValueError, match="exceeds"):
            loan.record_payment(Decimal("20000.01"))


class TestNotificationModel:

    def test_expires_after_dismiss_delay(self):
        created = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        note = Notification(message="Saved", created_at=created, dismiss_after_seconds=3.0)
        assert note.is_expired(created + timedelta(seconds=2.9)) is False
        assert note.is_expired(created + timedelta(seconds=3)) is True


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            description="Loan added",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.WINNER_COMMITTED,
            description="Lottery winner recorded",
            details={"amount": "100000.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "winner_committed"
        assert log_dict["details"]["amount"] == "100000.00"

    def test_draw_events_share_session_correlation(self):
        session_id = uuid4()
        group_id = uuid4()

        started = AuditEventBuilder.draw_started(session_id, group_id, ["Amit", "Chetan"])
        settled = AuditEventBuilder.draw_settled(session_id, group_id, "Chetan")

        assert started.correlation_id == settled.correlation_id == session_id
        assert started.details["participants"] == ["Amit", "Chetan"]
        assert "Chetan" in settled.description

    def test_payout_record_failed_is_an_error(self):
        event = AuditEventBuilder.payout_record_failed(
            member_id=uuid4(),
            transaction_id=uuid4(),
            amount="100000.00",
            error_message="quota exceeded",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "quota exceeded"


class TestSettings:
    """Tests for configuration validation."""

    def test_draw_defaults(self):
        settings = DrawSettings()
        assert settings.fast_interval_seconds < settings.slow_interval_seconds
        assert settings.slow_down_after_seconds < settings.settle_after_seconds
        assert settings.min_participants == 2

    def test_slowdown_must_precede_settle(self):
        with pytest.raises(ValidationError):
            DrawSettings(slow_down_after_seconds=5.0, settle_after_seconds=5.0)

    def test_fast_cannot_be_slower_than_slow(self):
        with pytest.raises(ValidationError):
            DrawSettings(fast_interval_seconds=0.5, slow_interval_seconds=0.3)

    def test_min_participants_cannot_drop_below_two(self):
        with pytest.raises(ValidationError):
            DrawSettings(min_participants=1)

    def test_format_amount(self):
        assert AppSettings(currency_symbol="₹").format_amount(Decimal("100000")) == "₹100,000.00"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
