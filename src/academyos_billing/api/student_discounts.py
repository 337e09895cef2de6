'''
API endpoint for removing a discount/surcharge from a student.
'''
from typing import Annotated
from uuid import UUID
from fastapi import APIRouter, Depends

from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.pricing_service import PricingService

class StudentDiscountsAPI:
    """
    A class to encapsulate endpoints for Student Discount bindings.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/student-discounts",
            tags=["Discounts"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/{binding_id}",
                self.unassign_discount,
                methods=["DELETE"])

    async def unassign_discount(
        self,
        binding_id: UUID,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ):
        """
        Removes the binding. Charges already priced with it are not affected.
        """
        await pricing_service.unassign(ctx, binding_id)
        return {"message": "Discount removed from student successfully."}

# Instantiate the class and export its router
student_discounts_api = StudentDiscountsAPI()
router = student_discounts_api.router
