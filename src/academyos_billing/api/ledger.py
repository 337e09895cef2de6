'''
API endpoint for the ledger integrity audit.
'''
from typing import Annotated, Any
from fastapi import APIRouter, Depends

from ..models import ledger as ledger_models
from ..models.tenancy import TenantContext
from ..services.tenancy import resolve_tenant_context
from ..services.ledger_service import LedgerService

class LedgerAPI:
    """
    A class to encapsulate organization-wide ledger endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/ledger",
            tags=["Ledger"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/audit",
                self.audit_charges,
                methods=["GET"],
                response_model=ledger_models.LedgerAuditReport)

    async def audit_charges(
        self,
        ctx: Annotated[TenantContext, Depends(resolve_tenant_context)],
        ledger_service: Annotated[LedgerService, Depends(LedgerService)]
    ) -> Any:
        """
        Lists the charges whose ledger entries do not net to what their status requires.
        """
        return await ledger_service.audit_charges(ctx)

# Instantiate the class and export its router
ledger_api = LedgerAPI()
router = ledger_api.router
