'''
API endpoints acting on a single lesson session: duration and status
changes, which move prepaid minutes between sessions.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends

from ..models import lessons as lesson_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.lesson_service import LessonService
from ..services.reconciliation_service import ReconciliationService

class LessonSessionsAPI:
    """
    A class to encapsulate endpoints for Lesson Sessions.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/lesson-sessions",
            tags=["Lesson Sessions"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/{session_id}",
                self.get_session,
                methods=["GET"],
                response_model=lesson_models.LessonSessionRead)
        self.router.add_api_route(
                "/{session_id}/duration",
                self.change_duration,
                methods=["PATCH"],
                response_model=lesson_models.DurationChangeResult)
        self.router.add_api_route(
                "/{session_id}/status",
                self.change_status,
                methods=["PATCH"],
                response_model=lesson_models.SessionStatusChangeResult)

    async def get_session(
        self,
        session_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ) -> Any:
        return await lesson_service.get_session(ctx, session_id)

    async def change_duration(
        self,
        session_id: UUID,
        change_data: lesson_models.DurationChangeRequest,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        reconciliation_service: Annotated[ReconciliationService, Depends(ReconciliationService)]
    ) -> Any:
        """
        Changes a session's duration. Paid minutes that no longer fit move to
        the following sessions; `outcome` tells whether all of them found a place.
        """
        return await reconciliation_service.change_duration(ctx, session_id, change_data.new_duration)

    async def change_status(
        self,
        session_id: UUID,
        change_data: lesson_models.SessionStatusChangeRequest,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        reconciliation_service: Annotated[ReconciliationService, Depends(ReconciliationService)]
    ) -> Any:
        return await reconciliation_service.change_status(ctx, session_id, change_data.new_status)

# Instantiate the class and export its router
lesson_sessions_api = LessonSessionsAPI()
router = lesson_sessions_api.router
