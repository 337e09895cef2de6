'''
API endpoint for the discount/surcharge price calculator.
'''
from typing import Annotated, Any
from fastapi import APIRouter, Depends

from ..models import pricing as pricing_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.pricing_service import PricingService

class PricingAPI:
    """
    A class to encapsulate endpoints for Pricing.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/pricing",
            tags=["Pricing"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/calculate",
                self.calculate_price,
                methods=["POST"],
                response_model=pricing_models.PriceCalculation)

    async def calculate_price(
        self,
        request_data: pricing_models.PriceCalculationRequest,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ) -> Any:
        """
        Applies the student's discounts and surcharges to a base price,
        one after the other in priority order.
        """
        return await pricing_service.calculate(ctx, request_data)

# Instantiate the class and export its router
pricing_api = PricingAPI()
router = pricing_api.router
