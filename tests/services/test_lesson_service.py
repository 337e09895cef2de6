import pytest
import datetime
from decimal import Decimal
from uuid import uuid4

from academyos_billing.common.exceptions import SessionNotFound, InvalidAmount, InsufficientData
from academyos_billing.database import models as db_models
from academyos_billing.database.db_enums import SessionStatusEnum
from academyos_billing.models import lessons as lesson_models
from academyos_billing.services.lesson_service import LessonService


@pytest.mark.anyio
class TestLessonSchedule:

    async def test_create_lesson_with_sessions(
        self,
        lesson_service: LessonService,
        test_student_orm: db_models.Students,
        ctx
    ):
        print("\n--- Testing create_lesson ---")
        dates = [datetime.date(2025, 9, 15), datetime.date(2025, 9, 1), datetime.date(2025, 9, 8)]

        lesson = await lesson_service.create_lesson(ctx, lesson_models.IndividualLessonCreate(
            student_id=test_student_orm.id,
            subject="Математика",
            default_duration=90,
            session_dates=dates
        ))

        assert [s.lesson_date for s in lesson.sessions] == sorted(dates)
        assert all(s.duration == 90 and s.paid_minutes == 0 for s in lesson.sessions)
        assert all(s.status == SessionStatusEnum.SCHEDULED for s in lesson.sessions)

    async def test_add_session_defaults_to_lesson_duration(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx
    ):
        lesson, _ = await make_lesson((60, 0))

        session = await lesson_service.add_session(ctx, lesson.id, lesson_models.LessonSessionCreate(
            lesson_date=datetime.date(2025, 12, 1), paid_minutes=40
        ))

        assert session.duration == 60
        assert session.paid_minutes == 40
        assert session.paid_academic_hours == Decimal("1.00")
        assert session.is_fully_paid is False

    async def test_add_session_rejects_over_payment(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx
    ):
        lesson, _ = await make_lesson((60, 0))
        with pytest.raises(InvalidAmount):
            await lesson_service.add_session(ctx, lesson.id, lesson_models.LessonSessionCreate(
                lesson_date=datetime.date(2025, 12, 1), duration=45, paid_minutes=60
            ))

    async def test_add_session_on_taken_date(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx
    ):
        lesson, sessions = await make_lesson((60, 0))
        with pytest.raises(InsufficientData):
            await lesson_service.add_session(ctx, lesson.id, lesson_models.LessonSessionCreate(
                lesson_date=sessions[0].lesson_date
            ))

    async def test_list_sessions_in_date_order(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx
    ):
        lesson, sessions = await make_lesson((60, 0), (45, 45), (90, 30))
        listed = await lesson_service.list_sessions(ctx, lesson.id)
        assert [s.id for s in listed] == [s.id for s in sessions]

    async def test_unknown_session_and_other_org(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx,
        other_ctx
    ):
        _, sessions = await make_lesson((60, 0))
        with pytest.raises(SessionNotFound):
            await lesson_service.get_session(ctx, uuid4())
        with pytest.raises(SessionNotFound):
            await lesson_service.get_session(other_ctx, sessions[0].id)


@pytest.mark.anyio
class TestApplyPaidMinutes:

    async def test_minutes_fund_sessions_in_order(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx
    ):
        lesson, sessions = await make_lesson((60, 60), (60, 0, "cancelled"), (60, 20), (90, 0))

        result = await lesson_service.apply_paid_minutes(ctx, lesson.id, lesson_models.PaidMinutesApply(minutes=100))

        assert [(a.session_id, a.minutes_applied) for a in result.applied] == [
            (sessions[2].id, 40),
            (sessions[3].id, 60),
        ]
        assert result.leftover_minutes == 0
        assert sessions[1].paid_minutes == 0

    async def test_leftover_minutes_are_reported(
        self,
        lesson_service: LessonService,
        make_lesson,
        ctx
    ):
        lesson, _ = await make_lesson((60, 0))
        result = await lesson_service.apply_paid_minutes(ctx, lesson.id, lesson_models.PaidMinutesApply(minutes=100))
        assert result.leftover_minutes == 40
