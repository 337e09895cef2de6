'''
Pure paid-minutes allocation logic for individual lesson sessions.

Nothing here touches the database: the services load the candidate sessions,
ask these helpers how the minutes should move, then write the result back
inside one transaction.
'''
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict, computed_field

from ..common.config import settings


class SessionSlot(BaseModel):
    """The allocation-relevant view of one lesson session."""
    session_id: UUID
    lesson_date: date
    duration: int
    paid_minutes: int
    status: str = "scheduled"

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def unpaid_minutes(self) -> int:
        return max(self.duration - self.paid_minutes, 0)


class MinuteMove(BaseModel):
    """Minutes added to (or taken from) a single session."""
    session_id: UUID
    lesson_date: date
    minutes: int


class AllocationOutcome(BaseModel):
    moves: list[MinuteMove]
    remaining: int

    @computed_field
    @property
    def moved(self) -> int:
        return sum(move.minutes for move in self.moves)


def distribute_forward(
    slots: Iterable[SessionSlot],
    minutes: int,
    skip_statuses: frozenset[str] = frozenset()
) -> AllocationOutcome:
    """
    Walks the slots in the given order and fills each one's unpaid remainder
    until the minutes run out. Slots whose status is in `skip_statuses` are
    passed over. The input slots are not modified.
    """
    if minutes < 0:
        raise ValueError("minutes to distribute cannot be negative")

    remaining = minutes
    moves: list[MinuteMove] = []
    for slot in slots:
        if remaining == 0:
            break
        if slot.status in skip_statuses:
            continue
        can_pay = slot.duration - slot.paid_minutes
        if can_pay > 0:
            minutes_to_pay = min(can_pay, remaining)
            moves.append(MinuteMove(session_id=slot.session_id, lesson_date=slot.lesson_date, minutes=minutes_to_pay))
            remaining -= minutes_to_pay

    return AllocationOutcome(moves=moves, remaining=remaining)


def collect_back(
    slots: Iterable[SessionSlot],
    minutes_needed: int,
    skip_statuses: frozenset[str] = frozenset()
) -> AllocationOutcome:
    """
    The reverse walk: takes already-paid minutes from the slots, in order,
    until `minutes_needed` have been gathered. `remaining` is what could not
    be collected.
    """
    if minutes_needed < 0:
        raise ValueError("minutes to collect cannot be negative")

    remaining = minutes_needed
    moves: list[MinuteMove] = []
    for slot in slots:
        if remaining == 0:
            break
        if slot.status in skip_statuses:
            continue
        if slot.paid_minutes > 0:
            minutes_to_take = min(slot.paid_minutes, remaining)
            moves.append(MinuteMove(session_id=slot.session_id, lesson_date=slot.lesson_date, minutes=minutes_to_take))
            remaining -= minutes_to_take

    return AllocationOutcome(moves=moves, remaining=remaining)


def academic_hours_to_minutes(academic_hours: Decimal) -> int:
    """Converts academic hours into whole minutes (rounded half up)."""
    minutes = Decimal(academic_hours) * settings.MINUTES_PER_ACADEMIC_HOUR
    return int(minutes.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minutes_to_academic_hours(minutes: int) -> Decimal:
    hours = Decimal(minutes) / Decimal(settings.MINUTES_PER_ACADEMIC_HOUR)
    return hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
