"""Admin domain schemas - Pydantic models for admin identity and role assignments"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...shared.validators import validate_email

AdminRoleName = Literal["super_admin", "admin", "viewer"]


class AdminMeResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    capabilities: list[str]


class AdminRoleCreate(BaseModel):
    """Schema for granting a role"""

    email: str
    role: AdminRoleName

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class AdminRoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
