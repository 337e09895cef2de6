'''
API endpoints for the student registry and everything hanging off a
student: balance, ledger history, manual entries and discount bindings.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..database.db_enums import TransactionTypeEnum
from ..models import students as student_models
from ..models import ledger as ledger_models
from ..models import pricing as pricing_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.student_service import StudentService
from ..services.ledger_service import LedgerService
from ..services.pricing_service import PricingService

class StudentsAPI:
    """
    A class to encapsulate endpoints for Students.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/students",
            tags=["Students"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.enroll_student,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=student_models.StudentRead)
        self.router.add_api_route(
                "/",
                self.list_students,
                methods=["GET"],
                response_model=list[student_models.StudentRead])
        self.router.add_api_route(
                "/{student_id}",
                self.get_student,
                methods=["GET"],
                response_model=student_models.StudentRead)
        self.router.add_api_route(
                "/{student_id}/archive",
                self.archive_student,
                methods=["PATCH"],
                response_model=student_models.StudentRead)
        self.router.add_api_route(
                "/{student_id}/balance",
                self.get_balance,
                methods=["GET"],
                response_model=ledger_models.BalanceRead)
        self.router.add_api_route(
                "/{student_id}/transactions",
                self.list_transactions,
                methods=["GET"],
                response_model=list[ledger_models.BalanceTransactionRead])
        self.router.add_api_route(
                "/{student_id}/transactions",
                self.post_ledger_entry,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ledger_models.BalanceTransactionRead)
        self.router.add_api_route(
                "/{student_id}/discounts",
                self.assign_discount,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=pricing_models.StudentDiscountRead)
        self.router.add_api_route(
                "/{student_id}/discounts",
                self.list_discounts,
                methods=["GET"],
                response_model=list[pricing_models.StudentDiscountRead])

    async def enroll_student(
        self,
        student_data: student_models.StudentCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.enroll_student(ctx, student_data)

    async def list_students(
        self,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        student_service: Annotated[StudentService, Depends(StudentService)],
        include_archived: Annotated[bool, Query(description="Include archived students")] = False
    ) -> list[Any]:
        return await student_service.list_students(ctx, include_archived=include_archived)

    async def get_student(
        self,
        student_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.get_student(ctx, student_id)

    async def archive_student(
        self,
        student_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        """
        Archives a student. The student and their ledger are kept.
        """
        return await student_service.archive_student(ctx, student_id)

    async def get_balance(
        self,
        student_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        """
        Returns the current balance, summed from the ledger.
        """
        return await ledger_service.get_balance(ctx, student_id)

    async def list_transactions(
        self,
        student_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)],
        limit: Annotated[int | None, Query(gt=0, description="Return at most this many entries")] = None,
        transaction_type: Annotated[TransactionTypeEnum | None, Query(description="Optional filter by entry type")] = None
    ) -> list[Any]:
        """
        Returns the student's ledger history, newest first.
        """
        return await ledger_service.list_transactions(ctx, student_id, limit=limit, transaction_type=transaction_type)

    async def post_ledger_entry(
        self,
        student_id: UUID,
        entry_data: ledger_models.ManualEntryCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        """
        Posts a hand-made entry (top-up, bonus, correction...).
        """
        return await ledger_service.post_manual_entry(ctx, student_id, entry_data)

    async def assign_discount(
        self,
        student_id: UUID,
        binding_data: pricing_models.StudentDiscountCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ) -> Any:
        return await pricing_service.assign_to_student(ctx, student_id, binding_data)

    async def list_discounts(
        self,
        student_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ) -> list[Any]:
        return await pricing_service.list_student_bindings(ctx, student_id)

# Instantiate the class and export its router
students_api = StudentsAPI()
router = students_api.router
