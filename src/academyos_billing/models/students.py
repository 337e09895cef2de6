'''

'''
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from ..database.db_enums import StudentStatusEnum

# --- API Input Models ---

class StudentCreate(BaseModel):
    """Validates the request body for enrolling a student."""
    first_name: str = Field(..., min_length=1)
    last_name: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)

# --- API Output Models ---

class StudentRead(BaseModel):
    id: UUID
    organization_id: UUID
    first_name: str
    last_name: Optional[str] = None
    currency: str
    status: StudentStatusEnum
    created_at: datetime

    @computed_field
    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    model_config = ConfigDict(from_attributes=True)
