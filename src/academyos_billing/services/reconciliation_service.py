'''

'''
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.exceptions import InvalidAmount, InsufficientData, SessionNotFound
from ..common.logger import log
from ..core.reallocation import distribute_forward, collect_back, AllocationOutcome
from ..database import models as db_models
from ..database.db_enums import SessionStatusEnum, INACTIVE_SESSION_STATUSES
from ..database.engine import get_db_session, atomic
from ..models import lessons as lesson_models
from ..models.tenancy import TenantContext
from .lesson_service import LessonService, to_slot
from .student_service import StudentService

# moving a session into one of these releases all of its paid minutes
RELEASING_STATUSES = frozenset({SessionStatusEnum.CANCELLED.value, SessionStatusEnum.FREE.value})


def _to_reallocated(outcome: AllocationOutcome, sign: int = 1) -> list[lesson_models.ReallocatedSession]:
    return [
        lesson_models.ReallocatedSession(session_id=m.session_id, lesson_date=m.lesson_date, minutes_applied=sign * m.minutes)
        for m in outcome.moves
    ]


def _outcome_for(moved: int, unallocated: int) -> lesson_models.ReconcileOutcomeEnum:
    if unallocated > 0:
        return lesson_models.ReconcileOutcomeEnum.PARTIALLY_UNALLOCATED
    if moved > 0:
        return lesson_models.ReconcileOutcomeEnum.REALLOCATED
    return lesson_models.ReconcileOutcomeEnum.NO_CHANGE


class ReconciliationService:
    """
    Keeps prepaid minutes in use when a session changes shape.

    Shrinking a paid session below what was paid for pushes the excess onto
    the next sessions of the same lesson; cancelling or freeing a session
    pushes all of its paid minutes forward; un-cancelling pulls them back.
    Minutes are conserved: whatever cannot be placed inside the lookahead
    window is reported back, never dropped silently.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        self.db = db
        self.student_service = student_service
        self.lesson_service = lesson_service

    async def _load_locked(self, ctx: TenantContext, session_id: UUID) -> db_models.IndividualLessonSessions:
        session = await self.lesson_service.get_session_orm(ctx, session_id)
        await self.student_service.lock_student(ctx, session.individual_lesson.student_id)
        # re-read under the lock so paid_minutes is current
        return await self.lesson_service.get_session_orm(ctx, session_id)

    async def change_duration(
        self,
        ctx: TenantContext,
        session_id: UUID,
        new_duration: int
    ) -> lesson_models.DurationChangeResult:
        """
        1. Load the session (old duration, old paid minutes).
        2. Persist the new duration.
        3. Stop when the session grew, or still holds everything that was paid.
        4. Otherwise cap paid_minutes at the new duration; the excess is freed.
        5. Fetch the next sessions of the lesson (lookahead) by ascending date.
        6. Fill each one's unpaid remainder in order.
        7. Stop once nothing is left; report what did not fit.
        """
        log.info(f"Actor {ctx.actor_id} changing duration of session {session_id} to {new_duration}.")
        if new_duration is None or new_duration <= 0:
            log.warning(f"Refused non-positive duration {new_duration} for session {session_id}.")
            raise InvalidAmount("A session duration must be greater than zero.")

        # 1. Load
        session = await self._load_locked(ctx, session_id)
        old_duration = session.duration
        old_paid = session.paid_minutes

        async with atomic(self.db, "change lesson duration"):
            # 2. Persist the new duration
            session.duration = new_duration

            # 3. Nothing to free
            if new_duration >= old_duration or old_paid <= new_duration:
                await self.db.flush()
                log.info(f"Session {session_id}: {old_duration} -> {new_duration} min, no paid minutes freed.")
                return lesson_models.DurationChangeResult(
                    session_id=session.id,
                    old_duration=old_duration,
                    new_duration=new_duration
                )

            # 4. Cap and free
            freed_minutes = old_paid - new_duration
            session.paid_minutes = new_duration

            # 5. Lookahead
            candidates = await self.lesson_service.get_later_sessions(
                session, limit=settings.RECONCILE_LOOKAHEAD_SESSIONS
            )

            # 6-7. Walk and fill
            outcome = distribute_forward([to_slot(c) for c in candidates], freed_minutes)
            by_id = {c.id: c for c in candidates}
            for move in outcome.moves:
                by_id[move.session_id].paid_minutes += move.minutes

            await self.db.flush()

        if outcome.remaining:
            log.warning(f"Session {session_id}: {outcome.remaining} of {freed_minutes} freed minutes could not be reallocated.")
        else:
            log.info(f"Session {session_id}: {freed_minutes} freed minutes reallocated to {len(outcome.moves)} session(s).")

        return lesson_models.DurationChangeResult(
            session_id=session.id,
            old_duration=old_duration,
            new_duration=new_duration,
            freed_minutes=freed_minutes,
            reallocated=_to_reallocated(outcome),
            unallocated_minutes=outcome.remaining,
            outcome=_outcome_for(outcome.moved, outcome.remaining)
        )

    async def change_status(
        self,
        ctx: TenantContext,
        session_id: UUID,
        new_status: SessionStatusEnum
    ) -> lesson_models.SessionStatusChangeResult:
        new_status = SessionStatusEnum(new_status)
        log.info(f"Actor {ctx.actor_id} changing status of session {session_id} to {new_status.value}.")

        session = await self._load_locked(ctx, session_id)
        old_status = SessionStatusEnum(session.status)
        result = lesson_models.SessionStatusChangeResult(
            session_id=session.id,
            old_status=old_status,
            new_status=new_status
        )
        if old_status == new_status:
            return result

        async with atomic(self.db, "change session status"):
            releasing = new_status.value in RELEASING_STATUSES and old_status.value not in RELEASING_STATUSES
            # any move back to scheduled refunds an underfunded session from later ones
            restoring = new_status == SessionStatusEnum.SCHEDULED
            candidates = []
            if releasing or restoring:
                candidates = await self.lesson_service.get_later_sessions(
                    session,
                    limit=settings.RECONCILE_LOOKAHEAD_SESSIONS,
                    skip_statuses=INACTIVE_SESSION_STATUSES
                )
            by_id = {c.id: c for c in candidates}

            if releasing and session.paid_minutes > 0:
                # push every paid minute forward, the session keeps none
                freed = session.paid_minutes
                outcome = distribute_forward([to_slot(c) for c in candidates], freed)
                for move in outcome.moves:
                    receiver = by_id[move.session_id]
                    receiver.paid_minutes += move.minutes
                    if receiver.payment_id is None:
                        receiver.payment_id = session.payment_id
                session.paid_minutes = 0
                session.payment_id = None

                result.freed_minutes = freed
                result.moved = _to_reallocated(outcome)
                result.unallocated_minutes = outcome.remaining
                result.outcome = _outcome_for(outcome.moved, outcome.remaining)

            elif restoring and session.paid_minutes < session.duration:
                # pull minutes back from later sessions until this one is funded
                needed = session.duration - session.paid_minutes
                outcome = collect_back([to_slot(c) for c in candidates], needed)
                for move in outcome.moves:
                    by_id[move.session_id].paid_minutes -= move.minutes
                if outcome.moves:
                    session.paid_minutes += outcome.moved
                    # first payment seen on the walk, up to the last donor
                    last_donor = outcome.moves[-1].session_id
                    for candidate in candidates:
                        if candidate.payment_id is not None:
                            session.payment_id = candidate.payment_id
                            break
                        if candidate.id == last_donor:
                            break

                result.restored_minutes = outcome.moved
                result.moved = _to_reallocated(outcome, sign=-1)
                result.unallocated_minutes = outcome.remaining
                result.outcome = _outcome_for(outcome.moved, outcome.remaining)

            session.status = new_status.value
            await self.db.flush()

        if result.unallocated_minutes:
            log.warning(f"Session {session_id} status change left {result.unallocated_minutes} minutes unplaced.")
        return result

    async def change_status_many(
        self,
        ctx: TenantContext,
        lesson_id: UUID,
        lesson_dates: list[date],
        new_status: SessionStatusEnum
    ) -> lesson_models.SessionStatusBulkResult:
        """
        Moves several sessions of one lesson to `new_status` in one unit.
        When they are being cancelled or freed, their paid minutes are pooled
        and pushed forward from the latest selected date. Other statuses are
        set without touching paid minutes.
        """
        new_status = SessionStatusEnum(new_status)
        dates = sorted(set(lesson_dates))
        if not dates:
            raise InsufficientData("At least one lesson date is required.")
        log.info(f"Actor {ctx.actor_id} setting {len(dates)} session(s) of lesson {lesson_id} to {new_status.value}.")

        lesson = await self.lesson_service.get_lesson_orm(ctx, lesson_id)
        await self.student_service.lock_student(ctx, lesson.student_id)
        lesson = await self.lesson_service.get_lesson_orm(ctx, lesson_id)

        by_date = {s.lesson_date: s for s in lesson.sessions}
        missing = [d.isoformat() for d in dates if d not in by_date]
        if missing:
            log.warning(f"Lesson {lesson_id} has no sessions on {', '.join(missing)}.")
            raise SessionNotFound(f"Lesson {lesson_id} has no sessions on {', '.join(missing)}.")
        selected = [by_date[d] for d in dates]

        result = lesson_models.SessionStatusBulkResult(
            lesson_id=lesson.id,
            new_status=new_status,
            session_ids=[s.id for s in selected]
        )

        async with atomic(self.db, "change session statuses"):
            freed = 0
            if new_status.value in RELEASING_STATUSES:
                for session in selected:
                    freed += session.paid_minutes
                    session.paid_minutes = 0
                    session.payment_id = None
            for session in selected:
                session.status = new_status.value

            if freed:
                candidates = await self.lesson_service.get_later_sessions(
                    selected[-1],
                    limit=settings.RECONCILE_LOOKAHEAD_SESSIONS,
                    skip_statuses=INACTIVE_SESSION_STATUSES
                )
                outcome = distribute_forward([to_slot(c) for c in candidates], freed)
                by_id = {c.id: c for c in candidates}
                for move in outcome.moves:
                    by_id[move.session_id].paid_minutes += move.minutes

                result.freed_minutes = freed
                result.moved = _to_reallocated(outcome)
                result.unallocated_minutes = outcome.remaining
                result.outcome = _outcome_for(outcome.moved, outcome.remaining)

            await self.db.flush()

        if result.unallocated_minutes:
            log.warning(f"Lesson {lesson_id}: {result.unallocated_minutes} of {result.freed_minutes} freed minutes could not be placed.")
        return result
