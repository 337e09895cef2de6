'''

'''
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..database.db_enums import PaymentMethodEnum
from .charges import PaymentLinkRead

# --- 1. API Input Models ---

class PaymentCreate(BaseModel):
    """
    Validates the request body for recording a payment.
    """
    student_id: UUID
    amount: Decimal
    academic_hours: Decimal = Decimal("0")
    method: PaymentMethodEnum = PaymentMethodEnum.CASH
    payment_date: Optional[date] = None
    description: Optional[str] = None

class PaymentAllocationCreate(BaseModel):
    tuition_charge_id: UUID
    amount: Decimal = Field(..., gt=0)

# --- 2. API Output Models ---

class PaymentRead(BaseModel):
    id: UUID
    student_id: UUID
    amount: Decimal
    academic_hours: Decimal
    method: PaymentMethodEnum
    payment_date: date
    description: Optional[str] = None
    created_at: datetime
    tuition_links: list[PaymentLinkRead] = Field(default_factory=list)

    @computed_field
    @property
    def allocated_amount(self) -> Decimal:
        return sum((link.amount for link in self.tuition_links), Decimal("0"))

    @computed_field
    @property
    def unallocated_amount(self) -> Decimal:
        return self.amount - self.allocated_amount

    model_config = ConfigDict(from_attributes=True)
