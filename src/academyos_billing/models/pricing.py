'''

'''
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..database.db_enums import DiscountTypeEnum, DiscountValueTypeEnum

# --- 1. API Input Models ---

class PriceCalculationRequest(BaseModel):
    base_price: Decimal
    student_id: UUID
    discount_ids: Optional[list[UUID]] = None
    on_date: Optional[date] = None

class DiscountRuleCreate(BaseModel):
    """
    Validates the request body for a new catalogue rule.
    """
    name: str = Field(..., min_length=1)
    type: DiscountTypeEnum
    value_type: DiscountValueTypeEnum
    value: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    is_permanent: bool = False
    auto_apply: bool = False
    apply_priority: int = 0
    is_active: bool = True

class DiscountRuleUpdate(BaseModel):
    """Partial update; only the fields that were sent are written."""
    name: Optional[str] = Field(default=None, min_length=1)
    value: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None
    is_permanent: Optional[bool] = None
    auto_apply: Optional[bool] = None
    apply_priority: Optional[int] = None
    is_active: Optional[bool] = None

class StudentDiscountCreate(BaseModel):
    discount_surcharge_id: UUID
    is_permanent: bool = False
    max_uses: Optional[int] = Field(default=None, gt=0)
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def check_window(self) -> 'StudentDiscountCreate':
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError("valid_until cannot be earlier than valid_from.")
        return self

# --- 2. API Output Models ---

class DiscountRuleRead(BaseModel):
    id: UUID
    name: str
    type: DiscountTypeEnum
    value_type: DiscountValueTypeEnum
    value: Decimal
    description: Optional[str] = None
    is_permanent: bool
    auto_apply: bool
    apply_priority: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class StudentDiscountRead(BaseModel):
    id: UUID
    student_id: UUID
    discount_surcharge_id: UUID
    is_permanent: bool
    times_used: int
    max_uses: Optional[int] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    discount_surcharge: DiscountRuleRead

    model_config = ConfigDict(from_attributes=True)

class PriceStep(BaseModel):
    """One rule applied to the running price."""
    discount_id: UUID
    name: str
    type: DiscountTypeEnum
    value_type: DiscountValueTypeEnum
    value: Decimal
    applied: Decimal
    price_after: Decimal

class PriceCalculation(BaseModel):
    base_price: Decimal
    final_price: Decimal
    total_discount: Decimal
    total_surcharge: Decimal
    # what the zero clamp added back when the fold ended below zero
    floor_adjustment: Decimal = Decimal("0.00")
    calculations: list[PriceStep] = Field(default_factory=list)
