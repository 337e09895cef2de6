'''

'''
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..database.db_enums import TransactionTypeEnum, ChargeStatusEnum

# entry types an operator may post by hand; the others come from their own flows
MANUAL_TRANSACTION_TYPES = frozenset({
    TransactionTypeEnum.CREDIT,
    TransactionTypeEnum.TRANSFER_IN,
    TransactionTypeEnum.BONUS,
    TransactionTypeEnum.ADJUSTMENT,
    TransactionTypeEnum.DEBIT,
})

# --- 1. API Input Models ---

class ManualEntryCreate(BaseModel):
    """
    Validates the request body for a hand-posted ledger entry
    (top-up, carried-over funds, bonus, correction).
    """
    amount: Decimal = Decimal("0")
    academic_hours: Decimal = Decimal("0")
    transaction_type: TransactionTypeEnum
    description: Optional[str] = None
    payment_id: Optional[UUID] = None
    lesson_session_id: Optional[UUID] = None

    @field_validator("transaction_type")
    @classmethod
    def only_manual_types(cls, value: TransactionTypeEnum) -> TransactionTypeEnum:
        if value not in MANUAL_TRANSACTION_TYPES:
            raise ValueError(f"'{value.value}' entries are created by their own operation, not posted by hand.")
        return value

# --- 2. API Output Models ---

class BalanceTransactionRead(BaseModel):
    id: UUID
    student_id: UUID
    amount: Decimal
    academic_hours: Decimal
    transaction_type: TransactionTypeEnum
    description: Optional[str] = None
    payment_id: Optional[UUID] = None
    lesson_session_id: Optional[UUID] = None
    tuition_charge_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class BalanceRead(BaseModel):
    """The student's balance, always summed from the ledger at read time."""
    student_id: UUID
    academic_hours: Decimal
    amount: Decimal
    currency: str

class ChargeAuditRead(BaseModel):
    """A charge whose ledger entries do not net to what its status requires."""
    charge_id: UUID
    student_id: UUID
    status: ChargeStatusEnum
    expected_amount: Decimal
    expected_academic_hours: Decimal
    ledger_amount: Decimal
    ledger_academic_hours: Decimal

class LedgerAuditReport(BaseModel):
    checked_charges: int
    violations: list[ChargeAuditRead] = Field(default_factory=list)
