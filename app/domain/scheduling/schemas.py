"""Scheduling domain schemas - Pydantic models for slots and availability requests"""

from datetime import date as DateType
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...config import DEFAULT_APPOINTMENT_DURATION
from ...shared.validators import validate_clock_time


class TimeSlot(BaseModel):
    """One provider's open interval (ISO strings, already localized)"""

    start_time: str
    end_time: str
    provider_id: str
    available: bool = True


class ConsolidatedTimeSlot(BaseModel):
    """All TimeSlots that share a clock time, offered to the patient as one option"""

    time: str
    displayTime: str
    availableSlots: list[TimeSlot]
    isSelected: bool = False


class AvailableSlot(BaseModel):
    """Slot generated from a provider's weekly availability"""

    date: DateType
    time: str
    duration: int
    provider_id: str
    provider_name: Optional[str] = None
    available: bool = True

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return validate_clock_time(v)


class MergedAvailabilityRequest(BaseModel):
    """Schema for merged availability lookup"""

    payer_id: str
    date: DateType
    provider_id: Optional[str] = None
    appointment_duration: int = Field(DEFAULT_APPOINTMENT_DURATION, ge=5, le=480)


class BookableProvider(BaseModel):
    id: str
    name: str
    title: Optional[str] = None
    role: Optional[str] = None


class MergedAvailabilityData(BaseModel):
    """
    totalSlots counts every open slot. availableSlots is capped at
    MAX_AVAILABLE_SLOTS (truncated is set when the cap applied);
    consolidatedSlots is never capped.
    """

    totalSlots: int
    date: DateType
    availableSlots: list[TimeSlot]
    truncated: bool = False
    consolidatedSlots: list[ConsolidatedTimeSlot]
    providers: list[BookableProvider]
    message: str


class MergedAvailabilityResponse(BaseModel):
    success: bool = True
    data: MergedAvailabilityData


class ConsolidateSlotsRequest(BaseModel):
    """Schema for consolidating caller-supplied slots"""

    slots: list[TimeSlot]
    selected_time: Optional[str] = None
    provider_id: Optional[str] = None

    @field_validator("selected_time")
    @classmethod
    def validate_selected_time(cls, v):
        if v:
            return validate_clock_time(v)
        return v


class ConsolidateSlotsResponse(BaseModel):
    consolidatedSlots: list[ConsolidatedTimeSlot]
    selectedSlot: Optional[TimeSlot] = None
