'''

'''
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Header

from ..common.exceptions import InsufficientData
from ..common.logger import log
from ..models.tenancy import TenantContext


def _parse_uuid(raw: str, header_name: str) -> UUID:
    try:
        return UUID(raw)
    except ValueError:
        log.warning(f"Rejected request with malformed {header_name} header: {raw!r}")
        raise InsufficientData(f"{header_name} must be a valid UUID.")


async def resolve_tenant_context(
    x_organization_id: Annotated[Optional[str], Header()] = None,
    x_actor_id: Annotated[Optional[str], Header()] = None
) -> TenantContext:
    """
    Dependency that builds the TenantContext from the request headers.
    X-Organization-Id is mandatory; X-Actor-Id is recorded as `created_by`
    on the rows the request writes.
    """
    if not x_organization_id:
        log.warning("Rejected request without an X-Organization-Id header.")
        raise InsufficientData("The X-Organization-Id header is required.")

    organization_id = _parse_uuid(x_organization_id, "X-Organization-Id")
    actor_id = _parse_uuid(x_actor_id, "X-Actor-Id") if x_actor_id else None
    return TenantContext(organization_id=organization_id, actor_id=actor_id)
