'''
API endpoints for Individual Lessons and their sessions.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status

from ..models import lessons as lesson_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.lesson_service import LessonService
from ..services.reconciliation_service import ReconciliationService

class IndividualLessonsAPI:
    """
    A class to encapsulate endpoints for Individual Lessons.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/individual-lessons",
            tags=["Individual Lessons"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.create_lesson,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=lesson_models.IndividualLessonRead)
        self.router.add_api_route(
                "/{lesson_id}/sessions",
                self.list_sessions,
                methods=["GET"],
                response_model=list[lesson_models.LessonSessionRead])
        self.router.add_api_route(
                "/{lesson_id}/sessions",
                self.add_session,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=lesson_models.LessonSessionRead)
        self.router.add_api_route(
                "/{lesson_id}/paid-minutes",
                self.apply_paid_minutes,
                methods=["POST"],
                response_model=lesson_models.PaidMinutesResult)
        self.router.add_api_route(
                "/{lesson_id}/sessions/status",
                self.change_session_statuses,
                methods=["PATCH"],
                response_model=lesson_models.SessionStatusBulkResult)

    async def create_lesson(
        self,
        lesson_data: lesson_models.IndividualLessonCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> Any:
        """
        Creates a lesson with one unpaid, scheduled session per given date.
        """
        return await lesson_service.create_lesson(ctx, lesson_data)

    async def list_sessions(
        self,
        lesson_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> list[Any]:
        return await lesson_service.list_sessions(ctx, lesson_id)

    async def add_session(
        self,
        lesson_id: UUID,
        session_data: lesson_models.LessonSessionCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> Any:
        return await lesson_service.add_session(ctx, lesson_id, session_data)

    async def apply_paid_minutes(
        self,
        lesson_id: UUID,
        minutes_data: lesson_models.PaidMinutesApply,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> Any:
        """
        Funds the lesson's sessions in date order with prepaid minutes.
        """
        return await lesson_service.apply_paid_minutes(ctx, lesson_id, minutes_data)

    async def change_session_statuses(
        self,
        lesson_id: UUID,
        status_data: lesson_models.SessionStatusBulkRequest,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        reconciliation_service: Annotated[ReconciliationService, Depends(ReconciliationService)]
    ) -> Any:
        """
        Sets the status of the sessions on the given dates. Cancelling or
        freeing them moves their paid minutes onto the following sessions.
        """
        return await reconciliation_service.change_status_many(
            ctx, lesson_id, status_data.lesson_dates, status_data.new_status
        )

# Instantiate the class and export its router
individual_lessons_api = IndividualLessonsAPI()
router = individual_lessons_api.router
