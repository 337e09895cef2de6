'''

'''
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class TenantContext(BaseModel):
    """
    The organization every billing operation runs inside.
    Passed explicitly into each service call; rows of other organizations
    are invisible to it.
    """
    organization_id: UUID
    actor_id: Optional[UUID] = None

    model_config = ConfigDict(frozen=True)
