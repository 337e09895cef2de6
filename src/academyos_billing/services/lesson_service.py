'''

'''
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..common.exceptions import SessionNotFound, InvalidAmount, InsufficientData
from ..common.logger import log
from ..core.reallocation import SessionSlot, distribute_forward
from ..database import models as db_models
from ..database.db_enums import SessionStatusEnum, INACTIVE_SESSION_STATUSES
from ..database.engine import get_db_session, atomic
from ..models import lessons as lesson_models
from ..models.tenancy import TenantContext
from .payment_service import PaymentService
from .student_service import StudentService


def to_slot(session: db_models.IndividualLessonSessions) -> SessionSlot:
    return SessionSlot(
        session_id=session.id,
        lesson_date=session.lesson_date,
        duration=session.duration,
        paid_minutes=session.paid_minutes,
        status=session.status
    )


class LessonService:
    """
    Individual lessons and their dated sessions, including how much of each
    session is already paid for (`paid_minutes`).
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        payment_service: Annotated[PaymentService, Depends(PaymentService)]
    ):
        self.db = db
        self.student_service = student_service
        self.payment_service = payment_service

    # --- 1. Internal fetchers ---

    async def get_lesson_orm(self, ctx: TenantContext, lesson_id: UUID) -> db_models.IndividualLessons:
        stmt = select(db_models.IndividualLessons).options(
            selectinload(db_models.IndividualLessons.sessions)
        ).filter(
            db_models.IndividualLessons.id == lesson_id,
            db_models.IndividualLessons.organization_id == ctx.organization_id
        ).execution_options(populate_existing=True)
        lesson = (await self.db.execute(stmt)).scalars().first()
        if not lesson:
            log.warning(f"Individual lesson {lesson_id} not found in organization {ctx.organization_id}.")
            raise SessionNotFound(f"Individual lesson {lesson_id} not found.")
        return lesson

    async def get_session_orm(self, ctx: TenantContext, session_id: UUID) -> db_models.IndividualLessonSessions:
        """Loads a session together with its lesson. Raises SessionNotFound if either is missing."""
        stmt = select(db_models.IndividualLessonSessions).join(
            db_models.IndividualLessons,
            db_models.IndividualLessons.id == db_models.IndividualLessonSessions.individual_lesson_id
        ).options(
            selectinload(db_models.IndividualLessonSessions.individual_lesson)
        ).filter(
            db_models.IndividualLessonSessions.id == session_id,
            db_models.IndividualLessonSessions.organization_id == ctx.organization_id
        ).execution_options(populate_existing=True)
        session = (await self.db.execute(stmt)).scalars().first()
        if not session:
            log.warning(f"Lesson session {session_id} not found in organization {ctx.organization_id}.")
            raise SessionNotFound(f"Lesson session {session_id} not found.")
        return session

    async def get_later_sessions(
        self,
        session: db_models.IndividualLessonSessions,
        limit: Optional[int] = None,
        skip_statuses: frozenset[str] = frozenset()
    ) -> list[db_models.IndividualLessonSessions]:
        """Sessions of the same lesson dated after `session`, earliest first."""
        stmt = select(db_models.IndividualLessonSessions).filter(
            db_models.IndividualLessonSessions.individual_lesson_id == session.individual_lesson_id,
            db_models.IndividualLessonSessions.lesson_date > session.lesson_date
        )
        if skip_statuses:
            stmt = stmt.filter(db_models.IndividualLessonSessions.status.not_in(sorted(skip_statuses)))
        stmt = stmt.order_by(db_models.IndividualLessonSessions.lesson_date)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list((await self.db.execute(stmt)).scalars().all())

    # --- 2. API-facing methods ---

    async def create_lesson(
        self,
        ctx: TenantContext,
        data: lesson_models.IndividualLessonCreate
    ) -> lesson_models.IndividualLessonRead:
        log.info(f"Actor {ctx.actor_id} creating '{data.subject}' lesson for student {data.student_id} with {len(data.session_dates)} session(s).")
        await self.student_service.get_student_orm(ctx, data.student_id)

        async with atomic(self.db, "create individual lesson"):
            lesson = db_models.IndividualLessons(
                organization_id=ctx.organization_id,
                student_id=data.student_id,
                subject=data.subject,
                teacher_name=data.teacher_name,
                default_duration=data.default_duration
            )
            self.db.add(lesson)
            await self.db.flush()

            for lesson_date in sorted(set(data.session_dates)):
                self.db.add(db_models.IndividualLessonSessions(
                    organization_id=ctx.organization_id,
                    individual_lesson_id=lesson.id,
                    lesson_date=lesson_date,
                    duration=data.default_duration,
                    paid_minutes=0,
                    status=SessionStatusEnum.SCHEDULED.value
                ))
            await self.db.flush()

        lesson = await self.get_lesson_orm(ctx, lesson.id)
        return lesson_models.IndividualLessonRead.model_validate(lesson)

    async def add_session(
        self,
        ctx: TenantContext,
        lesson_id: UUID,
        data: lesson_models.LessonSessionCreate
    ) -> lesson_models.LessonSessionRead:
        lesson = await self.get_lesson_orm(ctx, lesson_id)
        duration = data.duration or lesson.default_duration
        if data.paid_minutes < 0 or data.paid_minutes > duration:
            raise InvalidAmount(f"paid_minutes must be between 0 and {duration}.")
        if any(s.lesson_date == data.lesson_date for s in lesson.sessions):
            log.warning(f"Lesson {lesson_id} already has a session on {data.lesson_date}.")
            raise InsufficientData(f"Lesson {lesson_id} already has a session on {data.lesson_date}.")

        log.info(f"Actor {ctx.actor_id} adding session on {data.lesson_date} to lesson {lesson_id}.")
        await self.student_service.lock_student(ctx, lesson.student_id)
        async with atomic(self.db, "add lesson session"):
            session = db_models.IndividualLessonSessions(
                organization_id=ctx.organization_id,
                individual_lesson_id=lesson.id,
                lesson_date=data.lesson_date,
                duration=duration,
                paid_minutes=data.paid_minutes,
                status=SessionStatusEnum.SCHEDULED.value
            )
            self.db.add(session)
            await self.db.flush()

        await self.db.refresh(session)
        return lesson_models.LessonSessionRead.model_validate(session)

    async def list_sessions(self, ctx: TenantContext, lesson_id: UUID) -> list[lesson_models.LessonSessionRead]:
        lesson = await self.get_lesson_orm(ctx, lesson_id)
        return [lesson_models.LessonSessionRead.model_validate(s) for s in lesson.sessions]

    async def get_session(self, ctx: TenantContext, session_id: UUID) -> lesson_models.LessonSessionRead:
        session = await self.get_session_orm(ctx, session_id)
        return lesson_models.LessonSessionRead.model_validate(session)

    async def apply_paid_minutes(
        self,
        ctx: TenantContext,
        lesson_id: UUID,
        data: lesson_models.PaidMinutesApply
    ) -> lesson_models.PaidMinutesResult:
        """
        Funds the lesson's sessions in date order with `minutes` of prepaid
        time. Cancelled, free and rescheduled sessions are passed over.
        Whatever does not fit is returned as leftover.
        """
        log.info(f"Actor {ctx.actor_id} applying {data.minutes} paid minutes to lesson {lesson_id}.")
        if data.minutes <= 0:
            raise InvalidAmount("Minutes to apply must be greater than zero.")

        lesson = await self.get_lesson_orm(ctx, lesson_id)
        await self.student_service.lock_student(ctx, lesson.student_id)
        if data.payment_id is not None:
            payment = await self.payment_service.get_payment_orm(ctx, data.payment_id)
            if payment.student_id != lesson.student_id:
                raise InvalidAmount("The payment belongs to another student.")

        lesson = await self.get_lesson_orm(ctx, lesson_id)
        sessions = {s.id: s for s in lesson.sessions}
        outcome = distribute_forward(
            [to_slot(s) for s in lesson.sessions],
            data.minutes,
            skip_statuses=INACTIVE_SESSION_STATUSES
        )

        async with atomic(self.db, "apply paid minutes"):
            for move in outcome.moves:
                session = sessions[move.session_id]
                session.paid_minutes += move.minutes
                if data.payment_id is not None:
                    session.payment_id = data.payment_id
            await self.db.flush()

        if outcome.remaining:
            log.warning(f"{outcome.remaining} paid minutes did not fit into lesson {lesson_id}.")
        return lesson_models.PaidMinutesResult(
            lesson_id=lesson_id,
            applied=[
                lesson_models.ReallocatedSession(session_id=m.session_id, lesson_date=m.lesson_date, minutes_applied=m.minutes)
                for m in outcome.moves
            ],
            leftover_minutes=outcome.remaining
        )
