'''
API endpoints for issuing and cancelling Tuition Charges.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..database.db_enums import ChargeStatusEnum
from ..models import charges as charge_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.charge_service import ChargeService

class TuitionChargesAPI:
    """
    A class to encapsulate endpoints for Tuition Charges.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/tuition-charges",
            tags=["Tuition Charges"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_charges,
                methods=["GET"],
                response_model=list[charge_models.TuitionChargeRead])
        self.router.add_api_route(
                "/{charge_id}",
                self.get_charge,
                methods=["GET"],
                response_model=charge_models.TuitionChargeRead)
        self.router.add_api_route(
                "/",
                self.issue_charge,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=charge_models.ChargeIssueResult)
        self.router.add_api_route(
                "/{charge_id}/cancel",
                self.cancel_charge,
                methods=["PATCH"],
                response_model=charge_models.ChargeCancelResult)

    async def list_charges(
        self,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        charge_service: Annotated[ChargeService, Depends(ChargeService)],
        student_id: Annotated[UUID, Query(description="Student whose charges to list")],
        charge_status: Annotated[ChargeStatusEnum | None, Query(alias="status", description="Optional filter by status")] = None
    ) -> list[Any]:
        return await charge_service.list_charges(ctx, student_id, status=charge_status)

    async def get_charge(
        self,
        charge_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        charge_service: Annotated[ChargeService, Depends(ChargeService)]
    ) -> Any:
        return await charge_service.get_charge(ctx, charge_id)

    async def issue_charge(
        self,
        charge_data: charge_models.TuitionChargeCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        charge_service: Annotated[ChargeService, Depends(ChargeService)]
    ) -> Any:
        """
        Issues a charge and debits the student's ledger.
        Returns the charge, the ledger entry id and the new balance.
        """
        return await charge_service.charge(ctx, charge_data)

    async def cancel_charge(
        self,
        charge_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        charge_service: Annotated[ChargeService, Depends(ChargeService)]
    ) -> Any:
        """
        Cancels a charge and refunds it. Safe to repeat: a charge is refunded once.
        """
        return await charge_service.cancel(ctx, charge_id)

# Instantiate the class and export its router
tuition_charges_api = TuitionChargesAPI()
router = tuition_charges_api.router
