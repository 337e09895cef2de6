'''

'''
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import LearningUnitTypeEnum, ChargeStatusEnum
from .ledger import BalanceRead

# --- 1. API Input Models ---

class TuitionChargeCreate(BaseModel):
    """
    Validates the request body for billing a learning unit.
    """
    # identifiers and amounts are checked by the issuer so the errors stay domain errors
    student_id: Optional[UUID] = None
    learning_unit_type: LearningUnitTypeEnum
    learning_unit_id: Optional[UUID] = None
    amount: Decimal
    academic_hours: Decimal
    charge_date: Optional[date] = None
    description: Optional[str] = None
    payment_id: Optional[UUID] = None
    # student discount bindings that priced this charge; their usage is counted
    discount_binding_ids: list[UUID] = Field(default_factory=list)

# --- 2. API Output Models ---

class PaymentLinkRead(BaseModel):
    id: UUID
    payment_id: UUID
    tuition_charge_id: UUID
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)

class TuitionChargeRead(BaseModel):
    id: UUID
    student_id: UUID
    learning_unit_type: LearningUnitTypeEnum
    learning_unit_id: UUID
    amount: Decimal
    currency: str
    academic_hours: Decimal
    charge_date: date
    status: ChargeStatusEnum
    description: Optional[str] = None
    created_at: datetime
    payment_links: list[PaymentLinkRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

class ChargeIssueResult(BaseModel):
    """Authoritative post-write state of an issued charge."""
    charge: TuitionChargeRead
    transaction_id: UUID
    balance: BalanceRead

class ChargeCancelResult(BaseModel):
    charge: TuitionChargeRead
    refund_transaction_id: Optional[UUID] = None
    already_cancelled: bool
    balance: BalanceRead
