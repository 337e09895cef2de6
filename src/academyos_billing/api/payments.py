'''
API endpoints for recording Payments and allocating them to charges.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..models import payments as payment_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.payment_service import PaymentService

class PaymentsAPI:
    """
    A class to encapsulate endpoints for Payments.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/payments",
            tags=["Payments"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_payments,
                methods=["GET"],
                response_model=list[payment_models.PaymentRead])
        self.router.add_api_route(
                "/{payment_id}",
                self.get_payment,
                methods=["GET"],
                response_model=payment_models.PaymentRead)
        self.router.add_api_route(
                "/",
                self.record_payment,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=payment_models.PaymentRead)
        self.router.add_api_route(
                "/{payment_id}/allocations",
                self.allocate_payment,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=payment_models.PaymentRead)

    async def list_payments(
        self,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        payment_service: Annotated[PaymentService, Depends(PaymentService)],
        student_id: Annotated[UUID, Query(description="Student whose payments to list")]
    ) -> list[Any]:
        return await payment_service.list_payments(ctx, student_id)

    async def get_payment(
        self,
        payment_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        payment_service: Annotated[PaymentService, Depends(PaymentService)]
    ) -> Any:
        return await payment_service.get_payment(ctx, payment_id)

    async def record_payment(
        self,
        payment_data: payment_models.PaymentCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        payment_service: Annotated[PaymentService, Depends(PaymentService)]
    ) -> Any:
        """
        Records a payment and credits the student's ledger with it.
        """
        return await payment_service.record_payment(ctx, payment_data)

    async def allocate_payment(
        self,
        payment_id: UUID,
        allocation_data: payment_models.PaymentAllocationCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        payment_service: Annotated[PaymentService, Depends(PaymentService)]
    ) -> Any:
        """
        Covers (part of) a tuition charge with this payment.
        """
        return await payment_service.allocate(ctx, payment_id, allocation_data)

# Instantiate the class and export its router
payments_api = PaymentsAPI()
router = payments_api.router
