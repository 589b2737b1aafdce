"""Supervision domain schemas - Pydantic models for supervision relationship operations"""

from datetime import date as DateType
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Designation = Literal["primary", "secondary"]
RelationshipStatus = Literal["active", "inactive", "pending"]
SupervisionLevel = Literal["sign_off_only", "first_visit_in_person", "co_visit_required"]
Modality = Literal["telehealth", "in_person", "home_visit"]


def _dedupe_modalities(v):
    if v is None:
        return v
    return list(dict.fromkeys(v))


class SupervisionRelationshipCreate(BaseModel):
    """Schema for creating a supervision relationship"""

    resident_provider_id: str = Field(..., min_length=1)
    attending_provider_id: str = Field(..., min_length=1)
    designation: Designation = "primary"
    effective_date: DateType
    expiration_date: Optional[DateType] = None
    modality_constraints: list[Modality] = Field(default_factory=list)
    concurrency_cap: Optional[int] = None
    supervision_level: Optional[SupervisionLevel] = "sign_off_only"
    notes: Optional[str] = None

    @field_validator("modality_constraints")
    @classmethod
    def validate_modalities(cls, v):
        return _dedupe_modalities(v)


class SupervisionRelationshipUpdate(BaseModel):
    """Schema for partially updating a supervision relationship"""

    attending_provider_id: Optional[str] = Field(None, min_length=1)
    designation: Optional[Designation] = None
    effective_date: Optional[DateType] = None
    expiration_date: Optional[DateType] = None
    modality_constraints: Optional[list[Modality]] = None
    concurrency_cap: Optional[int] = None
    supervision_level: Optional[SupervisionLevel] = None
    status: Optional[RelationshipStatus] = None
    notes: Optional[str] = None

    @field_validator("modality_constraints")
    @classmethod
    def validate_modalities(cls, v):
        return _dedupe_modalities(v)


class SupervisionCandidate(BaseModel):
    """A relationship as it would be after a write, checked before the write happens"""

    id: Optional[str] = None
    resident_provider_id: Optional[str] = None
    attending_provider_id: Optional[str] = None
    designation: Designation = "primary"
    effective_date: DateType
    expiration_date: Optional[DateType] = None
    concurrency_cap: Optional[Union[int, str]] = None
    status: RelationshipStatus = "active"


class SupervisionValidationRequest(SupervisionCandidate):
    """Schema for the advisory validation endpoint"""

    editing_id: Optional[str] = None


class SupervisionValidationResponse(BaseModel):
    valid: bool
    errors: list[str]


class SupervisionRelationshipResponse(BaseModel):
    """Schema for supervision relationship response"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    resident_provider_id: str
    attending_provider_id: str
    designation: str
    effective_date: DateType
    expiration_date: Optional[DateType] = None
    modality_constraints: list[str] = Field(default_factory=list)
    concurrency_cap: Optional[int] = None
    supervision_level: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resident_name: str
    attending_name: str
    modality_display: str

    @field_validator("modality_constraints", mode="before")
    @classmethod
    def default_modalities(cls, v):
        return v or []
