"""
Ledger Models for the rest of the bookkeeping

Customer ledgers (daily business), household income/expenses and loans.
Like the chit models, these carry no running totals; the summary report
folds over them when it is rendered.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from business_manager.models.chit import TransactionType, utc_now


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class HouseholdEntryType(str, Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


class LoanType(str, Enum):
    """TAKEN: we borrowed. GIVEN: we lent."""
    TAKEN = "Taken"
    GIVEN = "Given"


class LoanStatus(str, Enum):
    ACTIVE = "Active"
    PAID_OFF = "Paid Off"


# =============================================================================
# DAILY BUSINESS
# =============================================================================

class Customer(BaseModel):
    """A customer with a running credit ledger."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    status: CustomerStatus = Field(default=CustomerStatus.ACTIVE)
    created_at: datetime = Field(default_factory=utc_now)


class CustomerTransaction(BaseModel):
    """
    Money given to or received from a customer.

    Immutable, same as chit member transactions.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    customer_id: UUID
    date: date
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: TransactionType
    description: str = Field(default="", max_length=200)
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# HOUSEHOLD
# =============================================================================

class HouseholdEntry(BaseModel):
    """A single household income or expense line."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    date: date
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(
        default="Other",
        max_length=50,
        description="Free-text category, e.g. Food, Utilities, Housing"
    )
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: HouseholdEntryType
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# LOANS
# =============================================================================

class Loan(BaseModel):
    """A loan taken or given, with the amount repaid so far."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    principal: Decimal = Field(..., gt=0, decimal_places=2)
    paid: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    type: LoanType
    status: LoanStatus = Field(default=LoanStatus.ACTIVE)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_paid(self) -> 'Loan':
        if self.paid > self.principal:
            raise ValueError("Paid amount cannot exceed principal")
        return self

    @property
    def balance(self) -> Decimal:
        return self.principal - self.paid

    def record_payment(self, amount: Decimal) -> "Loan":
        """
        Return a copy of the loan with a repayment applied.

        The loan is marked PAID_OFF once nothing is left to pay.
        """
        if amount <= 0:
            raise ValueError("Payment must be positive")
        if amount > self.balance:
            raise ValueError(
                f"Payment {amount} exceeds remaining balance {self.balance}"
            )
        paid = self.paid + amount
        status = LoanStatus.PAID_OFF if paid == self.principal else LoanStatus.ACTIVE
        return self.model_copy(update={"paid": paid, "status": status})
