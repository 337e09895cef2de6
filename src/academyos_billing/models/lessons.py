'''

'''
import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..core.reallocation import minutes_to_academic_hours
from ..database.db_enums import SessionStatusEnum

# --- 1. API Input Models ---

class IndividualLessonCreate(BaseModel):
    """
    Validates the request body for creating an individual lesson together
    with its initial (unpaid, scheduled) sessions.
    """
    student_id: UUID
    subject: str = Field(..., min_length=1)
    teacher_name: Optional[str] = None
    default_duration: int = Field(default=60, gt=0)
    session_dates: list[date] = Field(default_factory=list)

class LessonSessionCreate(BaseModel):
    lesson_date: date
    duration: Optional[int] = Field(default=None, gt=0)
    paid_minutes: int = Field(default=0, ge=0)

class DurationChangeRequest(BaseModel):
    # positivity is checked by the reconciler so it surfaces as InvalidAmount
    new_duration: int

class SessionStatusChangeRequest(BaseModel):
    new_status: SessionStatusEnum

class SessionStatusBulkRequest(BaseModel):
    """Several dates of one lesson moved to the same status at once."""
    lesson_dates: list[date] = Field(..., min_length=1)
    new_status: SessionStatusEnum

class PaidMinutesApply(BaseModel):
    minutes: int = Field(..., gt=0)
    payment_id: Optional[UUID] = None

# --- 2. API Output Models ---

class LessonSessionRead(BaseModel):
    id: UUID
    individual_lesson_id: UUID
    lesson_date: date
    duration: int
    paid_minutes: int
    status: SessionStatusEnum
    payment_id: Optional[UUID] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def paid_academic_hours(self) -> Decimal:
        return minutes_to_academic_hours(self.paid_minutes)

    @computed_field
    @property
    def is_fully_paid(self) -> bool:
        return self.paid_minutes >= self.duration

class IndividualLessonRead(BaseModel):
    id: UUID
    student_id: UUID
    subject: str
    teacher_name: Optional[str] = None
    default_duration: int
    created_at: datetime
    sessions: list[LessonSessionRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

class ReallocatedSession(BaseModel):
    session_id: UUID
    lesson_date: date
    minutes_applied: int

class ReconcileOutcomeEnum(str, enum.Enum):
    NO_CHANGE = "no_change"
    REALLOCATED = "reallocated"
    PARTIALLY_UNALLOCATED = "partially_unallocated"

class DurationChangeResult(BaseModel):
    """
    Outcome of a duration change. `freed_minutes` always equals the sum of
    `reallocated[].minutes_applied` plus `unallocated_minutes`.
    """
    session_id: UUID
    old_duration: int
    new_duration: int
    freed_minutes: int = 0
    reallocated: list[ReallocatedSession] = Field(default_factory=list)
    unallocated_minutes: int = 0
    outcome: ReconcileOutcomeEnum = ReconcileOutcomeEnum.NO_CHANGE

class SessionStatusChangeResult(BaseModel):
    session_id: UUID
    old_status: SessionStatusEnum
    new_status: SessionStatusEnum
    freed_minutes: int = 0
    restored_minutes: int = 0
    # positive minutes were pushed onto a session, negative were taken back from it
    moved: list[ReallocatedSession] = Field(default_factory=list)
    unallocated_minutes: int = 0
    outcome: ReconcileOutcomeEnum = ReconcileOutcomeEnum.NO_CHANGE

class SessionStatusBulkResult(BaseModel):
    lesson_id: UUID
    new_status: SessionStatusEnum
    session_ids: list[UUID] = Field(default_factory=list)
    freed_minutes: int = 0
    moved: list[ReallocatedSession] = Field(default_factory=list)
    unallocated_minutes: int = 0
    outcome: ReconcileOutcomeEnum = ReconcileOutcomeEnum.NO_CHANGE

class PaidMinutesResult(BaseModel):
    lesson_id: UUID
    applied: list[ReallocatedSession] = Field(default_factory=list)
    leftover_minutes: int = 0
