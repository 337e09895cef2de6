'''
API endpoints for the discount/surcharge catalogue.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status, Query

from ..database.db_enums import DiscountTypeEnum
from ..models import pricing as pricing_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.pricing_service import PricingService

class DiscountsAPI:
    """
    A class to encapsulate endpoints for Discounts and Surcharges.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/discounts",
            tags=["Discounts"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_rules,
                methods=["GET"],
                response_model=list[pricing_models.DiscountRuleRead])
        self.router.add_api_route(
                "/",
                self.create_rule,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=pricing_models.DiscountRuleRead)
        self.router.add_api_route(
                "/{rule_id}",
                self.update_rule,
                methods=["PATCH"],
                response_model=pricing_models.DiscountRuleRead)

    async def list_rules(
        self,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)],
        rule_type: Annotated[DiscountTypeEnum | None, Query(alias="type", description="Optional filter: discount or surcharge")] = None,
        include_inactive: Annotated[bool, Query(description="Include deactivated rules")] = False
    ) -> list[Any]:
        return await pricing_service.list_rules(ctx, rule_type=rule_type, include_inactive=include_inactive)

    async def create_rule(
        self,
        rule_data: pricing_models.DiscountRuleCreate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ) -> Any:
        return await pricing_service.create_rule(ctx, rule_data)

    async def update_rule(
        self,
        rule_id: UUID,
        rule_data: pricing_models.DiscountRuleUpdate,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        pricing_service: Annotated[PricingService, Depends(PricingService)]
    ) -> Any:
        """
        Partially updates a rule. Only the fields present in the body change.
        """
        return await pricing_service.update_rule(ctx, rule_id, rule_data)

# Instantiate the class and export its router
discounts_api = DiscountsAPI()
router = discounts_api.router
